# Import all models so they register with SQLAlchemy Base.metadata
# This ensures Base.metadata.create_all() creates all tables

from models.user import User
from models.session import Session
from models.security_log import SecurityLog
from models.goal import Goal
from models.milestone import Milestone
from models.task import Task

__all__ = [
    "User",
    "Session",
    "SecurityLog",
    "Goal",
    "Milestone",
    "Task",
]
