from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, JSON, DateTime, Text, func
from typing import Optional, Dict, Any
from .authz import Base
from batch_installer.constants.plugin_state import PluginState, is_installed, is_plugin_by_state


class Repository(Base):
    """A discovered `owner/repo` and its last known plugin install state."""
    __tablename__ = 'repositories'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    owner: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    state: Mapped[str] = mapped_column(String(32), nullable=False, default=PluginState.UNKNOWN.value, index=True)
    main_file: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    plugin_headers: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def slug(self) -> str:
        return self.full_name.rsplit('/', 1)[-1]

    def to_json(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'full_name': self.full_name,
            'owner': self.owner,
            'name': self.name,
            'state': self.state,
            'is_installed': is_installed(self.state),
            'is_plugin': is_plugin_by_state(self.state),
            'main_file': self.main_file,
            'plugin_headers': self.plugin_headers or {},
            'last_error': self.last_error,
        }
