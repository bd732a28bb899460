from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, JSON, DateTime, func

from .authz import Base  # reuse same metadata

class AuditLog(Base):
    """One state-changing API call; `meta.changes.state` holds before/after tokens."""
    __tablename__ = 'audit_logs'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity: Mapped[str] = mapped_column(String(64), nullable=True)
    # repository full names and plugin files are longer than numeric ids
    entity_id: Mapped[str] = mapped_column(String(255), nullable=True, index=True)
    perms_snapshot: Mapped[dict] = mapped_column(JSON, default=dict)
    meta: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
