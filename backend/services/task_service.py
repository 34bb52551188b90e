"""
task_service.py - Task management
CRUD for tasks under a milestone. Every write runs the task hook so the
milestone and goal percentages follow in the same transaction.
"""

import logging
from datetime import date

from sqlalchemy import asc
from sqlalchemy.orm import Session

from errors import Forbidden, NotFound, ValidationFailed
from models.goal import Goal
from models.milestone import Milestone
from models.task import Task
from services.progress_service import AggregationPolicy, task_changed

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "status", "priority", "due_date")
NULLABLE_FIELDS = {"description", "due_date"}


def _check_due_date(milestone: Milestone, due_date: date | None) -> None:
    if due_date is None:
        return
    goal_start = milestone.goal.start_date
    if due_date < goal_start:
        raise ValidationFailed.for_field(
            "due_date",
            f"Task due date cannot be earlier than the goal start date ({goal_start.isoformat()})",
            message="Invalid due date",
        )
    if due_date > milestone.due_date:
        raise ValidationFailed.for_field(
            "due_date",
            f"Task due date cannot be later than the milestone due date ({milestone.due_date.isoformat()})",
            message="Invalid due date",
        )


class TaskService:
    @staticmethod
    def get_milestone(db: Session, user_id: int, milestone_id: int, action: str = "view") -> Milestone:
        milestone = db.get(Milestone, milestone_id)
        if milestone is None:
            raise NotFound("Milestone not found")
        if milestone.goal.user_id != user_id:
            raise Forbidden(f"You do not have permission to {action} tasks of this milestone")
        return milestone

    @staticmethod
    def get_all(db: Session, user_id: int, milestone_id: int) -> list[Task]:
        milestone = TaskService.get_milestone(db, user_id, milestone_id)
        return (
            db.query(Task)
            .filter(Task.milestone_id == milestone.id)
            .order_by(asc(Task.due_date), asc(Task.id))
            .all()
        )

    @staticmethod
    def get_for_user(db: Session, user_id: int, filters: dict | None = None) -> list[Task]:
        """Every task across the user's goals."""
        filters = filters or {}
        query = (
            db.query(Task)
            .join(Milestone, Task.milestone_id == Milestone.id)
            .join(Goal, Milestone.goal_id == Goal.id)
            .filter(Goal.user_id == user_id)
        )
        if filters.get("status"):
            query = query.filter(Task.status == filters["status"])
        if filters.get("priority"):
            query = query.filter(Task.priority == filters["priority"])
        return query.order_by(asc(Task.due_date), asc(Task.id)).all()

    @staticmethod
    def get_by_id(db: Session, user_id: int, milestone_id: int, task_id: int, action: str = "view") -> Task:
        milestone = TaskService.get_milestone(db, user_id, milestone_id, action=action)
        task = db.query(Task).filter_by(id=task_id, milestone_id=milestone.id).first()
        if task is None:
            raise NotFound("Task not found in this milestone")
        return task

    @staticmethod
    def create(db: Session, user_id: int, milestone_id: int, data: dict, policy: AggregationPolicy) -> Task:
        milestone = TaskService.get_milestone(db, user_id, milestone_id, action="update")
        _check_due_date(milestone, data.get("due_date"))

        try:
            task = Task(
                milestone=milestone,
                title=data["title"],
                description=data.get("description"),
                status=data.get("status") or "pending",
                priority=data.get("priority") or "medium",
                due_date=data.get("due_date"),
            )
            db.add(task)
            db.flush()
            task_changed(db, milestone, policy)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(task)
        logger.info("Task %s created under milestone %s", task.id, milestone.id)
        return task

    @staticmethod
    def update(db: Session, user_id: int, milestone_id: int, task_id: int, data: dict,
               policy: AggregationPolicy) -> Task:
        task = TaskService.get_by_id(db, user_id, milestone_id, task_id, action="update")
        if data.get("due_date") is not None:
            _check_due_date(task.milestone, data["due_date"])

        try:
            for key in UPDATABLE_FIELDS:
                if key not in data:
                    continue
                if data[key] is None and key not in NULLABLE_FIELDS:
                    continue
                setattr(task, key, data[key])
            db.flush()
            task_changed(db, task.milestone, policy)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(task)
        return task

    @staticmethod
    def delete(db: Session, user_id: int, milestone_id: int, task_id: int, policy: AggregationPolicy) -> None:
        task = TaskService.get_by_id(db, user_id, milestone_id, task_id, action="update")
        milestone = task.milestone
        try:
            db.delete(task)
            db.flush()
            task_changed(db, milestone, policy)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Task %s deleted from milestone %s", task_id, milestone_id)
