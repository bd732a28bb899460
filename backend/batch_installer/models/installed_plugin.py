from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Boolean, DateTime, ForeignKey, func
from typing import Optional
from .authz import Base


class InstalledPlugin(Base):
    __tablename__ = 'installed_plugins'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # relative to the plugins directory, e.g. "hello-dolly/hello.php"
    plugin_file: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    # null for plugins installed outside this service
    repository_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey('repositories.id', ondelete='SET NULL'), nullable=True, index=True)
    slug: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_json(self):
        return {
            'id': self.id,
            'plugin_file': self.plugin_file,
            'repository_id': self.repository_id,
            'slug': self.slug,
            'name': self.name,
            'version': self.version,
            'active': self.active,
        }
