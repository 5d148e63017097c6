"""Notification model - outbound events for the notification component"""
from sqlalchemy import Column, String, Integer, DateTime, Index, JSON
from sqlalchemy.sql import func

from scheduling_engine.database import Base


class Notification(Base):
    """Event queued for delivery to a user"""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False)
    event_type = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_notifications_user", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<Notification(user={self.user_id}, type={self.event_type})>"
