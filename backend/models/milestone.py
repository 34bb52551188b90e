from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from database import Base
from models.status import PENDING


class Milestone(Base):
    __tablename__ = "milestones"

    id = Column(Integer, primary_key=True, autoincrement=True)
    goal_id = Column(Integer, ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=False)  # within [goal.start_date, goal.end_date]
    status = Column(String(20), default=PENDING, nullable=False)  # pending/in_progress/completed
    priority = Column(String(20), default="medium", nullable=False)  # low/medium/high
    progress_percentage = Column(Integer, default=0, nullable=False)  # 0..100
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))

    goal = relationship("Goal", back_populates="milestones")
    tasks = relationship(
        "Task",
        back_populates="milestone",
        cascade="all, delete-orphan",
        order_by="Task.due_date",
    )

    def __repr__(self) -> str:
        return f"<Milestone(id={self.id}, goal_id={self.goal_id}, progress={self.progress_percentage})>"
