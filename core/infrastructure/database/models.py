"""
SQLAlchemy ORM Models.

Maps workflow status records and site state to database tables.
"""
from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    Column, String, DateTime, Integer, Text, Boolean, Index, ForeignKey, JSON
)
from sqlalchemy.orm import declarative_base


Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# IDEA MODEL
# =============================================================================

class IdeaModel(Base):
    """
    Agent idea.

    The engine only reads the id and flips status to "adopted".
    """

    __tablename__ = "agent_ideas"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_token = Column(String(255), nullable=False, index=True)
    site_url = Column(String(512), nullable=False)
    title = Column(String(512), nullable=False)
    hypothesis = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, default="proposed")
    adopted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)


# =============================================================================
# ACTION MODEL
# =============================================================================

class ActionModel(Base):
    """Workflow action queued for a user's site."""

    __tablename__ = "agent_actions"

    id = Column(String(36), primary_key=True, default=_uuid)
    idea_id = Column(String(36), ForeignKey("agent_ideas.id"), nullable=True, index=True)
    user_token = Column(String(255), nullable=False, index=True)
    site_url = Column(String(512), nullable=False)

    action_type = Column(String(100), nullable=False, index=True)
    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    payload = Column(JSON, nullable=False, default=dict)
    policy = Column(JSON, nullable=False, default=dict)
    priority_score = Column(Integer, nullable=False, default=50)

    status = Column(String(50), nullable=False, default="proposed", index=True)
    error_message = Column(Text, nullable=True)

    # Timestamps
    queued_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    __table_args__ = (
        Index("ix_agent_actions_user_status", "user_token", "status"),
    )


# =============================================================================
# RUN MODEL
# =============================================================================

class RunModel(Base):
    """One execution attempt of an action."""

    __tablename__ = "agent_runs"

    id = Column(String(36), primary_key=True, default=_uuid)
    action_id = Column(String(36), ForeignKey("agent_actions.id"), nullable=False, index=True)
    user_token = Column(String(255), nullable=False, index=True)
    idempotency_key = Column(String(255), unique=True, nullable=False, index=True)
    policy = Column(JSON, nullable=False, default=dict)

    status = Column(String(50), nullable=False, default="queued", index=True)
    stats = Column(JSON, nullable=False, default=dict)
    output_data = Column(JSON, nullable=False, default=dict)
    error_details = Column(Text, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)


# =============================================================================
# SITE STATE MODELS
# =============================================================================

class WebsiteModel(Base):
    """Website registered by a user."""

    __tablename__ = "websites"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_token = Column(String(255), nullable=False, index=True)
    domain = Column(String(512), nullable=False)
    is_managed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)


class IntegrationConnectionModel(Base):
    """Third-party connection (Search Console, CMS, ...) bound to a site."""

    __tablename__ = "integration_connections"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_token = Column(String(255), nullable=False)
    site_url = Column(String(512), nullable=False)
    provider = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)

    __table_args__ = (
        Index("ix_integration_connections_lookup", "user_token", "site_url", "provider"),
    )


class PerformanceDataModel(Base):
    """Imported search performance row."""

    __tablename__ = "gsc_performance_data"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_token = Column(String(255), nullable=False, index=True)
    site_url = Column(String(512), nullable=False)
    date_start = Column(DateTime(timezone=True), nullable=False, index=True)
    clicks = Column(Integer, nullable=False, default=0)
    impressions = Column(Integer, nullable=False, default=0)
