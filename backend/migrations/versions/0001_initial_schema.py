"""initial authz, audit and plugin state tables

Revision ID: 0001_initial_schema
Revises: 
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    op.create_table('permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=64), nullable=False, unique=True),
        sa.Column('service', sa.String(length=32), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('description', sa.JSON(), nullable=True),
        _updated_at(),
    )
    op.create_index('ix_permissions_code', 'permissions', ['code'])
    op.create_index('ix_permissions_service', 'permissions', ['service'])

    op.create_table('roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
        sa.Column('is_system', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        _updated_at(),
    )

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        _updated_at(),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table('role_permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('permission_id', sa.Integer(), sa.ForeignKey('permissions.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('role_id', 'permission_id', name='uq_role_permission'),
    )

    op.create_table('user_roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('user_id', 'role_id', name='uq_user_role'),
    )

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=255)),
        sa.Column('perms_snapshot', sa.JSON(), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])

    op.create_table('repositories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(length=255), nullable=False, unique=True),
        sa.Column('owner', sa.String(length=128), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('state', sa.String(length=32), nullable=False, server_default='unknown'),
        sa.Column('main_file', sa.String(length=255), nullable=True),
        sa.Column('plugin_headers', sa.JSON(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        _updated_at(),
    )
    op.create_index('ix_repositories_full_name', 'repositories', ['full_name'])
    op.create_index('ix_repositories_owner', 'repositories', ['owner'])
    op.create_index('ix_repositories_state', 'repositories', ['state'])

    op.create_table('installed_plugins',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('plugin_file', sa.String(length=255), nullable=False, unique=True),
        sa.Column('repository_id', sa.Integer(), sa.ForeignKey('repositories.id', ondelete='SET NULL'), nullable=True),
        sa.Column('slug', sa.String(length=128), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('version', sa.String(length=32), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        _updated_at(),
    )
    op.create_index('ix_installed_plugins_plugin_file', 'installed_plugins', ['plugin_file'])
    op.create_index('ix_installed_plugins_repository_id', 'installed_plugins', ['repository_id'])
    op.create_index('ix_installed_plugins_slug', 'installed_plugins', ['slug'])


def downgrade():
    for tbl in ['installed_plugins', 'repositories', 'audit_logs', 'user_roles', 'role_permissions', 'users', 'roles', 'permissions']:
        op.drop_table(tbl)
