"""
resources.py - Response shaping for goals, milestones, tasks and users.
The counts here are read-only projections computed on demand; they never
write and never trigger progress recomputation.
"""

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from models.goal import Goal
from models.milestone import Milestone
from models.status import COMPLETED
from models.task import Task
from models.user import User


def user_resource(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


def task_resource(task: Task, include_milestone: bool = False) -> dict:
    data = {
        "id": task.id,
        "milestone_id": task.milestone_id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "priority": task.priority,
        "due_date": task.due_date,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
    }
    if include_milestone and task.milestone is not None:
        m = task.milestone
        data["milestone"] = {
            "id": m.id,
            "goal_id": m.goal_id,
            "title": m.title,
            "status": m.status,
            "progress_percentage": m.progress_percentage,
            "due_date": m.due_date,
        }
    return data


def task_count(db: Session, milestone_id: int) -> int:
    return db.query(func.count(Task.id)).filter(Task.milestone_id == milestone_id).scalar()


def milestone_resource(db: Session, milestone: Milestone, include_tasks: bool = False) -> dict:
    data = {
        "id": milestone.id,
        "goal_id": milestone.goal_id,
        "title": milestone.title,
        "description": milestone.description,
        "due_date": milestone.due_date,
        "status": milestone.status,
        "priority": milestone.priority,
        "progress_percentage": milestone.progress_percentage,
        "created_at": milestone.created_at,
        "updated_at": milestone.updated_at,
        "task_count": task_count(db, milestone.id),
    }
    if include_tasks:
        tasks = (
            db.query(Task)
            .filter(Task.milestone_id == milestone.id)
            .order_by(Task.due_date, Task.id)
            .all()
        )
        data["tasks"] = [task_resource(t) for t in tasks]
    return data


def goal_task_stats(db: Session, goal_id: int) -> dict:
    total, completed = (
        db.query(func.count(Task.id), func.count(case((Task.status == COMPLETED, Task.id))))
        .join(Milestone, Task.milestone_id == Milestone.id)
        .filter(Milestone.goal_id == goal_id)
        .one()
    )
    return {"total": total, "completed": completed, "in_progress": total - completed}


def goal_milestone_stats(db: Session, goal_id: int) -> dict:
    total, completed = (
        db.query(func.count(Milestone.id), func.count(case((Milestone.status == COMPLETED, Milestone.id))))
        .filter(Milestone.goal_id == goal_id)
        .one()
    )
    return {"total": total, "completed": completed, "in_progress": total - completed}


def goal_resource(db: Session, goal: Goal, include_milestones: bool = False) -> dict:
    milestone_stats = goal_milestone_stats(db, goal.id)
    data = {
        "id": goal.id,
        "user_id": goal.user_id,
        "title": goal.title,
        "description": goal.description,
        "start_date": goal.start_date,
        "end_date": goal.end_date,
        "priority": goal.priority,
        "status": goal.status,
        "progress_percentage": round(goal.progress_percentage or 0.0, 2),
        "created_at": goal.created_at,
        "updated_at": goal.updated_at,
        "milestone_count": milestone_stats["total"],
        "task_stats": goal_task_stats(db, goal.id),
        "milestone_stats": milestone_stats,
    }
    if include_milestones:
        milestones = (
            db.query(Milestone)
            .filter(Milestone.goal_id == goal.id)
            .order_by(Milestone.due_date, Milestone.id)
            .all()
        )
        data["milestones"] = [milestone_resource(db, m) for m in milestones]
    return data
