from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Float, ForeignKey
from sqlalchemy.orm import relationship

from database import Base
from models.status import PENDING


class Goal(Base):
    __tablename__ = "goals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    priority = Column(String(20), default="medium", nullable=False)  # low/medium/high
    status = Column(String(20), default=PENDING, nullable=False)  # pending/in_progress/completed
    # Written only by the progress engine once the goal has milestones
    progress_percentage = Column(Float, default=0.0, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))

    user = relationship("User", back_populates="goals")
    milestones = relationship(
        "Milestone",
        back_populates="goal",
        cascade="all, delete-orphan",
        order_by="Milestone.due_date",
    )

    def __repr__(self) -> str:
        return f"<Goal(id={self.id}, title={self.title!r}, progress={self.progress_percentage})>"
