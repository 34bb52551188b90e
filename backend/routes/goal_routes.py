from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auth import get_current_user
from database import get_db
from resources import goal_resource
from responses import send_created, send_success
from services.goal_service import GoalService

router = APIRouter(prefix="/api/v1/goals", tags=["Goals"])

Priority = Literal["low", "medium", "high"]
Status = Literal["pending", "in_progress", "completed"]


class GoalCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: date
    end_date: date
    priority: Priority = "medium"


class GoalUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    priority: Optional[Priority] = None
    # Only accepted while the goal has no milestones
    status: Optional[Status] = None
    progress_percentage: Optional[int] = Field(default=None, ge=0, le=100)


@router.get("")
async def list_goals(
    status: Optional[Status] = None,
    priority: Optional[Priority] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    filters = {
        "status": status, "priority": priority, "start_date": start_date, "end_date": end_date,
        "search": search, "sort_by": sort_by, "sort_order": sort_order,
        "page": page, "per_page": per_page,
    }
    goals, pagination = GoalService.get_all(db, user_id, filters)
    return send_success(
        {"goals": [goal_resource(db, g) for g in goals], "pagination": pagination},
        "Goals retrieved successfully",
    )


@router.get("/all")
async def all_goals(
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    goals = GoalService.get_unpaginated(db, user_id, search, sort_by, sort_order)
    return send_success({"goals": [goal_resource(db, g) for g in goals]}, "Goals retrieved successfully")


@router.post("", status_code=201)
async def create_goal(body: GoalCreate, user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    goal = GoalService.create(db, user_id, body.model_dump())
    return send_created(goal_resource(db, goal), "Goal created successfully")


@router.get("/{goal_id}")
async def get_goal(goal_id: int, user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    goal = GoalService.get_owned(db, user_id, goal_id)
    return send_success(goal_resource(db, goal, include_milestones=True), "Goal retrieved successfully")


@router.put("/{goal_id}")
async def update_goal(goal_id: int, body: GoalUpdate, user_id: int = Depends(get_current_user),
                      db: Session = Depends(get_db)):
    goal = GoalService.update(db, user_id, goal_id, body.model_dump(exclude_unset=True))
    return send_success(goal_resource(db, goal, include_milestones=True), "Goal updated successfully")


@router.delete("/{goal_id}")
async def delete_goal(goal_id: int, user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    GoalService.delete(db, user_id, goal_id)
    return send_success(None, "Goal deleted successfully")
