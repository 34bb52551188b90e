"""
seed.py - load a demo account with two goals, their milestones and tasks.
Everything goes through the services, so every stored percentage is derived.

    python seed.py
"""
import logging
from datetime import date, timedelta

from config import GOAL_AGGREGATION_POLICY
from database import SessionLocal, init_db
from models.user import User
from services.goal_service import GoalService
from services.milestone_service import MilestoneService
from services.progress_service import build_policy
from services.task_service import TaskService
from services.user_service import UserService

logger = logging.getLogger(__name__)

DEMO_EMAIL = "john.doe@example.com"
DEMO_PASSWORD = "password123"


def _plan(today: date) -> list[dict]:
    def weeks(n: int) -> date:
        return today + timedelta(weeks=n)

    return [
        {
            "title": "Learn Web Development",
            "description": "Master full-stack web development including frontend and backend technologies",
            "start_date": today,
            "end_date": today + timedelta(days=180),
            "priority": "high",
            "milestones": [
                {
                    "title": "Frontend Development Basics",
                    "description": "Learn HTML, CSS, and JavaScript fundamentals",
                    "due_date": weeks(9),
                    "priority": "high",
                    "tasks": [
                        ("Complete HTML5 Course", "completed", "high", weeks(2)),
                        ("Master CSS3 Fundamentals", "in_progress", "high", weeks(4)),
                        ("JavaScript Basics", "pending", "medium", weeks(6)),
                        ("Build Practice Projects", "pending", "medium", weeks(8)),
                    ],
                },
                {
                    "title": "Backend Development Fundamentals",
                    "description": "Learn a web framework and relational databases",
                    "due_date": weeks(17),
                    "priority": "high",
                    "tasks": [
                        ("Language Basics", "pending", "high", weeks(10)),
                        ("Framework Installation & Setup", "pending", "high", weeks(11)),
                        ("Routing & Controllers", "pending", "medium", weeks(13)),
                        ("Database & ORM", "pending", "medium", weeks(15)),
                    ],
                },
            ],
        },
        {
            "title": "Get Fit and Healthy",
            "description": "Achieve better physical health through regular exercise and proper nutrition",
            "start_date": today,
            "end_date": today + timedelta(days=90),
            "priority": "medium",
            "milestones": [
                {
                    "title": "Establish Exercise Routine",
                    "description": "Create and maintain a regular workout schedule",
                    "due_date": weeks(4),
                    "priority": "high",
                    "tasks": [
                        ("Create Workout Schedule", "completed", "high", today + timedelta(days=3)),
                        ("Join Gym", "completed", "high", weeks(1)),
                        ("Complete First Week of Workouts", "in_progress", "medium", weeks(2)),
                        ("Track Progress", "pending", "medium", weeks(4)),
                    ],
                },
                {
                    "title": "Nutrition Planning",
                    "description": "Develop and follow a balanced meal plan",
                    "due_date": weeks(8),
                    "priority": "medium",
                    "status": "in_progress",
                    "progress_percentage": 30,
                    "tasks": [],
                },
            ],
        },
    ]


def seed() -> None:
    init_db()
    policy = build_policy(GOAL_AGGREGATION_POLICY)
    db = SessionLocal()
    try:
        if db.query(User).filter(User.email == DEMO_EMAIL).first():
            logger.info("Demo user %s already exists, nothing to do.", DEMO_EMAIL)
            return

        user, _ = UserService.register(db, "John Doe", DEMO_EMAIL, DEMO_PASSWORD, ip="seed", user_agent="seed")
        for goal_data in _plan(date.today()):
            milestones = goal_data.pop("milestones")
            goal = GoalService.create(db, user.id, goal_data)
            for milestone_data in milestones:
                tasks = milestone_data.pop("tasks")
                milestone = MilestoneService.create(db, user.id, goal.id, milestone_data, policy)
                for title, status, priority, due in tasks:
                    TaskService.create(db, user.id, milestone.id, {
                        "title": title, "status": status, "priority": priority, "due_date": due,
                    }, policy)
            db.refresh(goal)
            logger.info("Seeded goal %r at %.1f%% (%s)", goal.title, goal.progress_percentage, goal.status)
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed()
