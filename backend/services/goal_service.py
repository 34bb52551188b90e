"""
goal_service.py - Goal CRUD
Ownership checks, date-range rules, listing with filters/search/pagination.
Goal progress itself is only ever written by progress_service.
"""

import logging
import math
from datetime import date

from sqlalchemy import asc, desc, or_
from sqlalchemy.orm import Session

from errors import Forbidden, NotFound, ValidationFailed
from models.goal import Goal
from models.milestone import Milestone
from services.progress_service import apply_manual_progress

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "created_at", "updated_at", "title", "start_date", "end_date",
    "priority", "status", "progress_percentage",
}
UPDATABLE_FIELDS = ("title", "description", "start_date", "end_date", "priority")
NULLABLE_FIELDS = {"description"}


def _check_date_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ValidationFailed.for_field(
            "end_date", "End date must be after or equal to start date", message="Invalid date range"
        )


def _ordering(sort_by: str | None, sort_order: str | None):
    column = getattr(Goal, sort_by if sort_by in SORTABLE_FIELDS else "created_at")
    direction = asc if (sort_order or "desc").lower() == "asc" else desc
    return direction(column), direction(Goal.id)


def _search(query, term: str | None):
    if term:
        like = f"%{term}%"
        query = query.filter(or_(Goal.title.ilike(like), Goal.description.ilike(like)))
    return query


class GoalService:
    @staticmethod
    def get_owned(db: Session, user_id: int, goal_id: int, action: str = "view") -> Goal:
        goal = db.get(Goal, goal_id)
        if goal is None:
            raise NotFound("Goal not found")
        if goal.user_id != user_id:
            raise Forbidden(f"You do not have permission to {action} this goal")
        return goal

    @staticmethod
    def create(db: Session, user_id: int, data: dict) -> Goal:
        _check_date_range(data["start_date"], data["end_date"])
        try:
            goal = Goal(
                user_id=user_id,
                title=data["title"],
                description=data.get("description"),
                start_date=data["start_date"],
                end_date=data["end_date"],
                priority=data.get("priority") or "medium",
            )
            db.add(goal)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(goal)
        logger.info("Goal %s created for user %s", goal.id, user_id)
        return goal

    @staticmethod
    def get_all(db: Session, user_id: int, filters: dict | None = None) -> tuple[list[Goal], dict]:
        """Filtered, searched, sorted and paginated goals plus pagination metadata."""
        filters = filters or {}
        query = db.query(Goal).filter(Goal.user_id == user_id)

        if filters.get("status"):
            query = query.filter(Goal.status == filters["status"])
        if filters.get("priority"):
            query = query.filter(Goal.priority == filters["priority"])
        if filters.get("start_date"):
            query = query.filter(Goal.start_date >= filters["start_date"])
        if filters.get("end_date"):
            query = query.filter(Goal.end_date <= filters["end_date"])
        query = _search(query, filters.get("search"))

        total = query.count()
        per_page = max(1, int(filters.get("per_page") or 10))
        page = max(1, int(filters.get("page") or 1))
        offset = (page - 1) * per_page

        goals = (
            query.order_by(*_ordering(filters.get("sort_by"), filters.get("sort_order")))
            .offset(offset)
            .limit(per_page)
            .all()
        )
        meta = {
            "current_page": page,
            "from": offset + 1 if goals else None,
            "to": offset + len(goals) if goals else None,
            "last_page": max(1, math.ceil(total / per_page)),
            "per_page": per_page,
            "total": total,
        }
        return goals, meta

    @staticmethod
    def get_unpaginated(db: Session, user_id: int, search: str | None = None,
                        sort_by: str | None = None, sort_order: str | None = None) -> list[Goal]:
        query = _search(db.query(Goal).filter(Goal.user_id == user_id), search)
        return query.order_by(*_ordering(sort_by, sort_order)).all()

    @staticmethod
    def update(db: Session, user_id: int, goal_id: int, data: dict) -> Goal:
        goal = GoalService.get_owned(db, user_id, goal_id, action="update")

        _check_date_range(
            data.get("start_date") or goal.start_date,
            data.get("end_date") or goal.end_date,
        )

        manual = {k: data[k] for k in ("status", "progress_percentage") if data.get(k) is not None}
        if manual:
            has_milestones = db.query(Milestone.id).filter(Milestone.goal_id == goal.id).first() is not None
            if has_milestones:
                field = next(iter(manual))
                raise ValidationFailed.for_field(
                    field,
                    "Progress is calculated from the goal's milestones",
                    message="Goal progress cannot be set manually",
                )

        try:
            for key in UPDATABLE_FIELDS:
                if key not in data:
                    continue
                if data[key] is None and key not in NULLABLE_FIELDS:
                    continue
                setattr(goal, key, data[key])
            apply_manual_progress(goal, manual.get("status"), manual.get("progress_percentage"))
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(goal)
        return goal

    @staticmethod
    def delete(db: Session, user_id: int, goal_id: int) -> None:
        goal = GoalService.get_owned(db, user_id, goal_id, action="delete")
        try:
            db.delete(goal)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Goal %s deleted by user %s", goal_id, user_id)
