"""Accounts and role based permissions.

Permission codes are `SERVICE.ACTION` strings (see constants/permissions.py);
a user's effective permissions are the union over the roles assigned to them
and are copied into the JWT at login.
"""
from __future__ import annotations
from sqlalchemy.orm import declarative_base, relationship, Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, ForeignKey, JSON, UniqueConstraint, DateTime, func
from typing import Dict, Any, List

Base = declarative_base()


def _updated_at():
    return mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Permission(Base):
    __tablename__ = 'permissions'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    service: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    # {"en": "..."}; free text shown by admin tooling
    description: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    updated_at: Mapped[str] = _updated_at()

    @classmethod
    def from_code(cls, code: str, label: str = None) -> 'Permission':
        service, action = code.split('.', 1)
        return cls(code=code, service=service, action=action, description={'en': label or code})


class Role(Base):
    __tablename__ = 'roles'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    # seeded presets (Viewer / Installer / Owner)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False)
    permissions = relationship('RolePermission', back_populates='role', cascade='all, delete-orphan')
    user_roles = relationship('UserRole', back_populates='role', cascade='all, delete-orphan')
    updated_at: Mapped[str] = _updated_at()

    def permission_codes(self) -> List[str]:
        return sorted(rp.permission.code for rp in self.permissions)


class RolePermission(Base):
    __tablename__ = 'role_permissions'
    __table_args__ = (UniqueConstraint('role_id', 'permission_id', name='uq_role_permission'),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    role_id: Mapped[int] = mapped_column(ForeignKey('roles.id', ondelete='CASCADE'), nullable=False)
    permission_id: Mapped[int] = mapped_column(ForeignKey('permissions.id', ondelete='CASCADE'), nullable=False)
    role = relationship('Role', back_populates='permissions')
    permission = relationship('Permission')


class User(Base):
    __tablename__ = 'users'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    # inactive accounts cannot log in; issued tokens stay valid until expiry
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    user_roles = relationship('UserRole', back_populates='user', cascade='all, delete-orphan')
    updated_at: Mapped[str] = _updated_at()

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        return check_password_hash(self.password_hash, raw)

    def to_json(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'email': self.email, 'is_active': self.is_active}


class UserRole(Base):
    __tablename__ = 'user_roles'
    __table_args__ = (UniqueConstraint('user_id', 'role_id', name='uq_user_role'),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    role_id: Mapped[int] = mapped_column(ForeignKey('roles.id', ondelete='CASCADE'), nullable=False)
    user = relationship('User', back_populates='user_roles')
    role = relationship('Role', back_populates='user_roles')
