from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auth import get_current_user
from database import get_db
from dependencies import get_aggregation_policy
from resources import task_resource
from responses import send_created, send_success, DEFAULT_DELETED_MESSAGE
from services.progress_service import AggregationPolicy
from services.task_service import TaskService

router = APIRouter(prefix="/api/v1", tags=["Tasks"])

Priority = Literal["low", "medium", "high"]
Status = Literal["pending", "in_progress", "completed"]


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    status: Status = "pending"
    priority: Priority = "medium"
    due_date: Optional[date] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[Status] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = None


@router.get("/tasks")
async def list_all_tasks(
    status: Optional[Status] = None,
    priority: Optional[Priority] = None,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    tasks = TaskService.get_for_user(db, user_id, {"status": status, "priority": priority})
    return send_success({"tasks": [task_resource(t) for t in tasks]}, "Tasks retrieved successfully")


@router.get("/milestones/{milestone_id}/tasks")
async def list_tasks(milestone_id: int, user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    tasks = TaskService.get_all(db, user_id, milestone_id)
    return send_success({"tasks": [task_resource(t) for t in tasks]}, "Tasks retrieved successfully")


@router.post("/milestones/{milestone_id}/tasks", status_code=201)
async def create_task(
    milestone_id: int,
    body: TaskCreate,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
    policy: AggregationPolicy = Depends(get_aggregation_policy),
):
    task = TaskService.create(db, user_id, milestone_id, body.model_dump(), policy)
    return send_created(task_resource(task, include_milestone=True), "Task created successfully")


@router.get("/milestones/{milestone_id}/tasks/{task_id}")
async def get_task(milestone_id: int, task_id: int, user_id: int = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    task = TaskService.get_by_id(db, user_id, milestone_id, task_id)
    return send_success(task_resource(task, include_milestone=True))


@router.put("/milestones/{milestone_id}/tasks/{task_id}")
async def update_task(
    milestone_id: int,
    task_id: int,
    body: TaskUpdate,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
    policy: AggregationPolicy = Depends(get_aggregation_policy),
):
    task = TaskService.update(db, user_id, milestone_id, task_id, body.model_dump(exclude_unset=True), policy)
    return send_success(task_resource(task, include_milestone=True), "Task updated successfully")


@router.delete("/milestones/{milestone_id}/tasks/{task_id}")
async def delete_task(
    milestone_id: int,
    task_id: int,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
    policy: AggregationPolicy = Depends(get_aggregation_policy),
):
    TaskService.delete(db, user_id, milestone_id, task_id, policy)
    return send_success(None, DEFAULT_DELETED_MESSAGE)
