"""
progress_service.py - Progress roll-up engine
Recomputes Task -> Milestone -> Goal completion. The CRUD services call
task_changed() / milestone_changed() explicitly at the end of every write
path, inside the same transaction, so a write and its roll-up commit or
roll back together.

The goal aggregation formula is an AggregationPolicy object handed in by
the caller (see build_policy); nothing here reads global configuration.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from models.goal import Goal
from models.milestone import Milestone
from models.task import Task
from models.status import PENDING, IN_PROGRESS, COMPLETED

logger = logging.getLogger(__name__)


def percent_of(part: int, whole: int) -> int:
    """100 * part / whole rounded half-up to an integer; 0 when whole is 0."""
    if whole == 0:
        return 0
    exact = Decimal(100 * part) / Decimal(whole)
    return int(exact.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def status_for_percentage(percentage: float) -> str:
    if percentage <= 0:
        return PENDING
    if percentage >= 100:
        return COMPLETED
    return IN_PROGRESS


@dataclass(frozen=True)
class MilestoneTally:
    status: str
    total_tasks: int
    completed_tasks: int

    @property
    def standalone(self) -> bool:
        return self.total_tasks == 0


class AggregationPolicy(ABC):
    """How a goal's percentage is computed from its milestones."""

    name: str = ""
    # True when the result moves with task counts, not only milestone status
    depends_on_tasks: bool = True
    # Smallest change in the stored value that is worth a write
    tolerance: float = 0.0

    @abstractmethod
    def percentage(self, tallies: list[MilestoneTally]) -> float:
        ...

    def status_for(self, percentage: float) -> str:
        return status_for_percentage(percentage)

    def differs(self, stored: float | None, computed: float) -> bool:
        return abs((stored or 0) - computed) > self.tolerance


class TaskWeightedPolicy(AggregationPolicy):
    """
    Every task weighs 1; a milestone without tasks weighs 1 and counts as
    done when its own status is completed.
    """

    name = "task_weighted"
    depends_on_tasks = True
    tolerance = 0.001

    def _weights(self, tallies: list[MilestoneTally]) -> tuple[int, int]:
        completed = total = 0
        for tally in tallies:
            if tally.standalone:
                total += 1
                completed += 1 if tally.status == COMPLETED else 0
            else:
                total += tally.total_tasks
                completed += tally.completed_tasks
        return completed, total

    def percentage(self, tallies: list[MilestoneTally]) -> float:
        completed, total = self._weights(tallies)
        if total == 0:
            return 0.0
        return completed * 100 / total

    def status_for(self, percentage: float) -> str:
        if percentage < 0.1:
            return PENDING
        if percentage >= 99.9:
            return COMPLETED
        return IN_PROGRESS


class TasksOnlyPolicy(TaskWeightedPolicy):
    """Task counts only; milestones without tasks are ignored."""

    name = "tasks_only"

    def _weights(self, tallies: list[MilestoneTally]) -> tuple[int, int]:
        completed = sum(t.completed_tasks for t in tallies)
        total = sum(t.total_tasks for t in tallies)
        return completed, total


class MilestoneCountPolicy(AggregationPolicy):
    """Share of milestones whose status is completed, as a whole number."""

    name = "milestone_count"
    depends_on_tasks = False
    tolerance = 0.0

    def percentage(self, tallies: list[MilestoneTally]) -> float:
        completed = sum(1 for t in tallies if t.status == COMPLETED)
        return percent_of(completed, len(tallies))


POLICIES = {
    policy.name: policy
    for policy in (TaskWeightedPolicy, TasksOnlyPolicy, MilestoneCountPolicy)
}


def build_policy(name: str) -> AggregationPolicy:
    try:
        return POLICIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown goal aggregation policy {name!r}; expected one of {sorted(POLICIES)}"
        ) from None


def _task_counts(db: Session, milestone_id: int) -> tuple[int, int]:
    total, completed = (
        db.query(
            func.count(Task.id),
            func.count(case((Task.status == COMPLETED, Task.id))),
        )
        .filter(Task.milestone_id == milestone_id)
        .one()
    )
    return total, completed


def milestone_tallies(db: Session, goal_id: int) -> list[MilestoneTally]:
    rows = (
        db.query(
            Milestone.status,
            func.count(Task.id),
            func.count(case((Task.status == COMPLETED, Task.id))),
        )
        .outerjoin(Task, Task.milestone_id == Milestone.id)
        .filter(Milestone.goal_id == goal_id)
        .group_by(Milestone.id, Milestone.status)
        .all()
    )
    return [MilestoneTally(status, total, completed) for status, total, completed in rows]


def derive_goal(db: Session, goal: Goal, policy: AggregationPolicy) -> bool:
    """Recompute a goal from its milestones. Returns True if the goal was written."""
    db.flush()
    percentage = policy.percentage(milestone_tallies(db, goal.id))
    if not policy.differs(goal.progress_percentage, percentage):
        return False

    goal.progress_percentage = percentage
    goal.status = policy.status_for(percentage)
    db.flush()
    logger.debug("Goal %s -> %.3f%% (%s) [%s]", goal.id, percentage, goal.status, policy.name)
    return True


def derive_milestone(db: Session, milestone: Milestone, policy: AggregationPolicy) -> bool:
    """
    Recompute a milestone from its tasks. A milestone with no tasks falls
    back to 0% / pending. When the stored percentage is unchanged nothing
    is written and the goal is left alone; otherwise the goal is re-derived.
    """
    db.flush()
    total, completed = _task_counts(db, milestone.id)
    percentage = percent_of(completed, total)
    if percentage == milestone.progress_percentage:
        return False

    milestone.progress_percentage = percentage
    milestone.status = status_for_percentage(percentage)
    db.flush()
    logger.debug("Milestone %s -> %s%% (%s)", milestone.id, percentage, milestone.status)

    if milestone.goal is not None:
        derive_goal(db, milestone.goal, policy)
    return True


def task_changed(db: Session, milestone: Milestone | None, policy: AggregationPolicy) -> None:
    """Hook for every task create/update/delete."""
    if milestone is None:
        return
    written = derive_milestone(db, milestone, policy)
    # Same milestone percentage can still move a task-weighted goal
    if not written and policy.depends_on_tasks and milestone.goal is not None:
        derive_goal(db, milestone.goal, policy)


def milestone_changed(
    db: Session,
    goal: Goal | None,
    policy: AggregationPolicy,
    status_changed: bool = True,
) -> None:
    """Hook for milestone create/delete and status-changing updates."""
    if goal is None or not status_changed:
        return
    derive_goal(db, goal, policy)


def apply_manual_progress(entity, status: str | None = None, percentage: float | None = None) -> None:
    """
    Direct status/percentage assignment for entities without children.
    completed forces 100, pending forces 0, in_progress keeps the given (or
    current) percentage inside 1..99. A bare percentage picks its status.
    """
    if status is None and percentage is None:
        return

    if status == COMPLETED:
        percentage = 100
    elif status == PENDING:
        percentage = 0
    elif status == IN_PROGRESS:
        current = percentage if percentage is not None else (entity.progress_percentage or 0)
        percentage = min(max(current, 1), 99)
    else:
        status = status_for_percentage(percentage)

    entity.progress_percentage = percentage
    entity.status = status
