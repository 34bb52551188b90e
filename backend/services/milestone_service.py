"""
milestone_service.py - Milestone CRUD scoped to a goal
Create, delete and status-changing updates re-derive the parent goal.
"""

import logging
from datetime import date

from sqlalchemy.orm import Session

from errors import NotFound, ValidationFailed
from models.goal import Goal
from models.milestone import Milestone
from models.task import Task
from services.goal_service import GoalService
from services.progress_service import AggregationPolicy, apply_manual_progress, milestone_changed

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "due_date", "priority")
NULLABLE_FIELDS = {"description"}


def _check_due_date(goal: Goal, due_date: date) -> None:
    if due_date < goal.start_date or due_date > goal.end_date:
        raise ValidationFailed.for_field(
            "due_date",
            "Due date must be between goal's start date and end date",
            message="Invalid due date",
        )


def has_tasks(db: Session, milestone: Milestone) -> bool:
    return db.query(Task.id).filter(Task.milestone_id == milestone.id).first() is not None


class MilestoneService:
    @staticmethod
    def get_all(db: Session, user_id: int, goal_id: int) -> list[Milestone]:
        goal = GoalService.get_owned(db, user_id, goal_id)
        return (
            db.query(Milestone)
            .filter(Milestone.goal_id == goal.id)
            .order_by(Milestone.due_date, Milestone.id)
            .all()
        )

    @staticmethod
    def get_by_id(db: Session, user_id: int, goal_id: int, milestone_id: int, action: str = "view") -> Milestone:
        goal = GoalService.get_owned(db, user_id, goal_id, action=action)
        milestone = db.get(Milestone, milestone_id)
        if milestone is None or milestone.goal_id != goal.id:
            raise NotFound("Milestone not found for this goal")
        return milestone

    @staticmethod
    def create(db: Session, user_id: int, goal_id: int, data: dict, policy: AggregationPolicy) -> Milestone:
        goal = GoalService.get_owned(db, user_id, goal_id, action="update")
        _check_due_date(goal, data["due_date"])

        try:
            milestone = Milestone(
                goal=goal,
                title=data["title"],
                description=data.get("description"),
                due_date=data["due_date"],
                priority=data.get("priority") or "medium",
            )
            apply_manual_progress(milestone, data.get("status"), data.get("progress_percentage"))
            db.add(milestone)
            db.flush()
            milestone_changed(db, goal, policy)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(milestone)
        logger.info("Milestone %s created under goal %s", milestone.id, goal.id)
        return milestone

    @staticmethod
    def update(db: Session, user_id: int, goal_id: int, milestone_id: int, data: dict,
               policy: AggregationPolicy) -> Milestone:
        milestone = MilestoneService.get_by_id(db, user_id, goal_id, milestone_id, action="update")

        manual = {k: data[k] for k in ("status", "progress_percentage") if data.get(k) is not None}
        if manual and has_tasks(db, milestone):
            field = "status" if "status" in manual else "progress_percentage"
            raise ValidationFailed.for_field(
                field,
                "Status is automatically determined by task completion",
                message="Status cannot be manually updated when milestone has tasks",
            )
        if data.get("due_date") is not None:
            _check_due_date(milestone.goal, data["due_date"])

        previous_status = milestone.status
        try:
            for key in UPDATABLE_FIELDS:
                if key not in data:
                    continue
                if data[key] is None and key not in NULLABLE_FIELDS:
                    continue
                setattr(milestone, key, data[key])
            apply_manual_progress(milestone, manual.get("status"), manual.get("progress_percentage"))
            db.flush()
            milestone_changed(db, milestone.goal, policy, status_changed=milestone.status != previous_status)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(milestone)
        return milestone

    @staticmethod
    def delete(db: Session, user_id: int, goal_id: int, milestone_id: int, policy: AggregationPolicy) -> None:
        milestone = MilestoneService.get_by_id(db, user_id, goal_id, milestone_id, action="update")
        goal = milestone.goal
        try:
            db.delete(milestone)
            db.flush()
            milestone_changed(db, goal, policy)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Milestone %s deleted from goal %s", milestone_id, goal.id)
