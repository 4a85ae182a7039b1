"""Create identity and membership tables

Users, their linked identity-provider accounts, local references to the
legacy system's organizations and sites, org/site memberships and the
audit log.

The uniqueness and check constraints here are the integrity guards for user
resolution and membership; application code relies on them.

Revision ID: 0001_create_identity_tables
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# Alembic identifiers
revision = '0001_create_identity_tables'
down_revision = None
branch_labels = None
depends_on = None

_UUID = postgresql.UUID(as_uuid=True)
_NOW = sa.text('now()')
_ACTIVE = sa.text('deleted_at IS NULL')
_SLUG_CHECK = "slug ~ '^[a-z0-9]+(-[a-z0-9]+)*$'"


def _timestamps():
    return [
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=_NOW),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=_NOW),
    ]


def upgrade():
    # --- users -------------------------------------------------------------
    op.create_table(
        'users',
        sa.Column('id', _UUID, primary_key=True),
        sa.Column('primary_email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('picture_url', sa.String(), nullable=True),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        *_timestamps(),
        sa.Column('deleted_at', sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index('idx_users_email', 'users', ['primary_email'])
    op.create_index('ix_users_deleted_at', 'users', ['deleted_at'])

    # --- user_identities ---------------------------------------------------
    op.create_table(
        'user_identities',
        sa.Column('id', _UUID, primary_key=True),
        sa.Column('user_id', _UUID, nullable=False),
        sa.Column('provider', sa.String(), nullable=False),
        sa.Column('provider_user_id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('linked_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=_NOW),
        sa.Column('last_login_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=_NOW),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        # One external account maps to exactly one user
        sa.UniqueConstraint('provider', 'provider_user_id', name='uq_identity_provider'),
    )
    op.create_index('ix_user_identities_user_id', 'user_identities', ['user_id'])
    op.create_index('idx_user_identities_provider', 'user_identities', ['provider', 'provider_user_id'])

    # --- org_refs ----------------------------------------------------------
    op.create_table(
        'org_refs',
        sa.Column('id', _UUID, primary_key=True),
        sa.Column('external_org_id', sa.String(), nullable=False, unique=True),
        sa.Column('slug', sa.String(), nullable=False, unique=True),
        sa.Column('display_name', sa.String(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(_SLUG_CHECK, name='chk_org_slug'),
    )
    op.create_index('idx_org_refs_external', 'org_refs', ['external_org_id'])

    # --- site_refs ---------------------------------------------------------
    op.create_table(
        'site_refs',
        sa.Column('id', _UUID, primary_key=True),
        sa.Column('org_ref_id', _UUID, nullable=False),
        sa.Column('external_site_id', sa.String(), nullable=False),
        sa.Column('slug', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['org_ref_id'], ['org_refs.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('org_ref_id', 'external_site_id', name='uq_site_external'),
        sa.UniqueConstraint('org_ref_id', 'slug', name='uq_site_slug'),
        sa.CheckConstraint(_SLUG_CHECK, name='chk_site_slug'),
    )
    op.create_index('ix_site_refs_org_ref_id', 'site_refs', ['org_ref_id'])

    # --- memberships -------------------------------------------------------
    op.create_table(
        'memberships',
        sa.Column('id', _UUID, primary_key=True),
        sa.Column('user_id', _UUID, nullable=False),
        sa.Column('org_ref_id', _UUID, nullable=False),
        sa.Column('role', sa.String(32), nullable=False),
        sa.Column('invited_by', _UUID, nullable=True),
        sa.Column('invited_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('accepted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column('deleted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['org_ref_id'], ['org_refs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['invited_by'], ['users.id'], ondelete='SET NULL'),
        sa.CheckConstraint(
            "role IN ('owner', 'global_admin', 'global_user', 'viewer')",
            name='chk_role',
        ),
    )
    op.create_index('ix_memberships_user_id', 'memberships', ['user_id'])
    op.create_index('ix_memberships_org_ref_id', 'memberships', ['org_ref_id'])
    op.create_index('ix_memberships_invited_by', 'memberships', ['invited_by'])
    op.create_index('ix_memberships_deleted_at', 'memberships', ['deleted_at'])
    op.create_index('idx_memberships_role', 'memberships', ['org_ref_id', 'role'])
    # At most one active membership per (user, org); removed rows are kept
    op.create_index(
        'uq_user_org_active',
        'memberships',
        ['user_id', 'org_ref_id'],
        unique=True,
        postgresql_where=_ACTIVE,
    )

    # --- site_memberships --------------------------------------------------
    op.create_table(
        'site_memberships',
        sa.Column('id', _UUID, primary_key=True),
        sa.Column('membership_id', _UUID, nullable=False),
        sa.Column('site_ref_id', _UUID, nullable=False),
        sa.Column('role', sa.String(32), nullable=False),
        *_timestamps(),
        sa.Column('deleted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['membership_id'], ['memberships.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['site_ref_id'], ['site_refs.id'], ondelete='CASCADE'),
        sa.CheckConstraint(
            "role IN ('site_admin', 'site_user', 'site_viewer')",
            name='chk_site_role',
        ),
    )
    op.create_index('ix_site_memberships_membership_id', 'site_memberships', ['membership_id'])
    op.create_index('ix_site_memberships_site_ref_id', 'site_memberships', ['site_ref_id'])
    op.create_index('ix_site_memberships_deleted_at', 'site_memberships', ['deleted_at'])
    op.create_index(
        'uq_membership_site_active',
        'site_memberships',
        ['membership_id', 'site_ref_id'],
        unique=True,
        postgresql_where=_ACTIVE,
    )

    # --- audit_log ---------------------------------------------------------
    op.create_table(
        'audit_log',
        sa.Column('id', _UUID, primary_key=True),
        sa.Column('org_ref_id', _UUID, nullable=True),
        sa.Column('user_id', _UUID, nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('resource_type', sa.String(), nullable=True),
        sa.Column('resource_id', _UUID, nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=_NOW),
        sa.ForeignKeyConstraint(['org_ref_id'], ['org_refs.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_audit_log_org_ref_id', 'audit_log', ['org_ref_id'])
    op.create_index('ix_audit_log_user_id', 'audit_log', ['user_id'])
    op.create_index('idx_audit_log_org_time', 'audit_log', ['org_ref_id', 'created_at'])
    op.create_index('idx_audit_log_resource', 'audit_log', ['resource_type', 'resource_id'])


def downgrade():
    # Reverse all operations in upgrade()
    op.drop_table('audit_log')
    op.drop_index('uq_membership_site_active', table_name='site_memberships')
    op.drop_table('site_memberships')
    op.drop_index('uq_user_org_active', table_name='memberships')
    op.drop_table('memberships')
    op.drop_table('site_refs')
    op.drop_table('org_refs')
    op.drop_table('user_identities')
    op.drop_table('users')
