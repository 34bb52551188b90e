from datetime import date
from typing import Annotated, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import AfterValidator, BaseModel, Field
from sqlalchemy.orm import Session

from auth import get_current_user
from database import get_db
from dependencies import get_aggregation_policy
from resources import goal_resource, milestone_resource
from responses import send_created, send_success
from services.milestone_service import MilestoneService
from services.progress_service import AggregationPolicy

router = APIRouter(prefix="/api/v1/goals/{goal_id}/milestones", tags=["Milestones"])

Priority = Literal["low", "medium", "high"]
Status = Literal["pending", "in_progress", "completed"]


def _after_today(value: date) -> date:
    if value <= date.today():
        raise ValueError("The due date must be a future date.")
    return value


FutureDate = Annotated[date, AfterValidator(_after_today)]


class MilestoneCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: FutureDate
    priority: Priority = "medium"
    status: Optional[Status] = None
    progress_percentage: Optional[int] = Field(default=None, ge=0, le=100)


class MilestoneUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[FutureDate] = None
    priority: Optional[Priority] = None
    # Rejected once the milestone has tasks
    status: Optional[Status] = None
    progress_percentage: Optional[int] = Field(default=None, ge=0, le=100)


@router.get("")
async def list_milestones(goal_id: int, user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    milestones = MilestoneService.get_all(db, user_id, goal_id)
    return send_success(
        {"milestones": [milestone_resource(db, m, include_tasks=True) for m in milestones]},
        "Milestones retrieved successfully",
    )


@router.post("", status_code=201)
async def create_milestone(
    goal_id: int,
    body: MilestoneCreate,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
    policy: AggregationPolicy = Depends(get_aggregation_policy),
):
    milestone = MilestoneService.create(db, user_id, goal_id, body.model_dump(), policy)
    return send_created(
        {"milestone": milestone_resource(db, milestone), "goal": goal_resource(db, milestone.goal)},
        "Milestone created successfully",
    )


@router.get("/{milestone_id}")
async def get_milestone(goal_id: int, milestone_id: int, user_id: int = Depends(get_current_user),
                        db: Session = Depends(get_db)):
    milestone = MilestoneService.get_by_id(db, user_id, goal_id, milestone_id)
    return send_success({"milestone": milestone_resource(db, milestone, include_tasks=True)})


@router.put("/{milestone_id}")
async def update_milestone(
    goal_id: int,
    milestone_id: int,
    body: MilestoneUpdate,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
    policy: AggregationPolicy = Depends(get_aggregation_policy),
):
    milestone = MilestoneService.update(
        db, user_id, goal_id, milestone_id, body.model_dump(exclude_unset=True), policy
    )
    return send_success(
        {"milestone": milestone_resource(db, milestone, include_tasks=True),
         "goal": goal_resource(db, milestone.goal)},
        "Milestone updated successfully",
    )


@router.delete("/{milestone_id}")
async def delete_milestone(
    goal_id: int,
    milestone_id: int,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
    policy: AggregationPolicy = Depends(get_aggregation_policy),
):
    MilestoneService.delete(db, user_id, goal_id, milestone_id, policy)
    return send_success(None, "Milestone deleted successfully")
