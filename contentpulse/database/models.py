"""
SQLAlchemy Models for ContentPulse

One table: generated content owned by a user. Engagement metrics are
derived on read and never stored; potential_reach_metric is the one
simulated figure assigned at generation time.
"""

from datetime import datetime

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Text,
    Enum, Index,
)
from sqlalchemy.orm import declarative_base

from contentpulse.analytics.helpers import ContentStatus, ContentType, PlatformTarget

Base = declarative_base()


class Content(Base):
    """A generated blog post or social caption."""
    __tablename__ = "content"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False)

    # Request
    topic = Column(String(255), nullable=False)
    keyword = Column(String(255))
    content_type = Column(Enum(ContentType), nullable=False)
    platform_target = Column(Enum(PlatformTarget))  # None for blog posts

    # Output
    generated_text = Column(Text, nullable=False)
    word_count = Column(Integer, default=0)
    character_count = Column(Integer, default=0)
    user_edited = Column(Boolean, default=False)

    # Lifecycle
    status = Column(Enum(ContentStatus), default=ContentStatus.DRAFT, nullable=False)
    scheduled_at = Column(DateTime)
    potential_reach_metric = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_content_user_created", "user_id", "created_at"),
        Index("idx_content_user_status", "user_id", "status"),
    )

    def __repr__(self):
        return f"<Content {self.id} {self.content_type} user={self.user_id}>"
