"""initial_dashboard_schema

Revision ID: 3f9c1d2a7b40
Revises:
Create Date: 2026-10-18 09:12:44.104532

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c1d2a7b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """
    Create the dashboard schema.

    Creates:
    - principals, tenants, grants (global and tenant-scoped roles)
    - feeds and metric_observations (unique de-duplication key)
    - invitations (audit trail, no FK to tenants)
    """
    # 1. Principals
    op.create_table(
        'principals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('auth_user_id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_principals_auth_user_id', 'principals', ['auth_user_id'], unique=True)
    op.create_index('ix_principals_email', 'principals', ['email'])

    # 2. Tenants
    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('kind', sa.String(length=50), nullable=False),
        sa.Column('categories', sa.JSON(), nullable=False),
        sa.Column('goals', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tenants_slug', 'tenants', ['slug'], unique=True)

    # 3. Grants - one global grant per principal, one grant per principal per tenant
    op.create_table(
        'grants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('principal_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('role', sa.String(length=50), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['principal_id'], ['principals.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('principal_id', 'tenant_id', name='uq_grant_principal_tenant'),
    )
    op.create_index('ix_grants_principal_id', 'grants', ['principal_id'])
    op.create_index('ix_grants_tenant_id', 'grants', ['tenant_id'])
    op.create_index(
        'uq_grant_principal_global',
        'grants',
        ['principal_id'],
        unique=True,
        sqlite_where=sa.text('tenant_id IS NULL'),
        postgresql_where=sa.text('tenant_id IS NULL'),
    )

    # 4. Feeds
    op.create_table(
        'feeds',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=50), nullable=False),
        sa.Column('locator', sa.String(length=512), nullable=False),
        sa.Column('sub_sources', sa.JSON(), nullable=False),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_feeds_tenant_id', 'feeds', ['tenant_id'])

    # 5. Metric observations keyed by the de-duplication tuple
    op.create_table(
        'metric_observations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('feed_id', sa.Integer(), nullable=False),
        sa.Column('source_kind', sa.String(length=50), nullable=False),
        sa.Column('sub_source', sa.String(length=255), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('metric_name', sa.String(length=255), nullable=False),
        sa.Column('value', sa.Float(), nullable=True),
        sa.Column('value_kind', sa.String(length=50), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['feed_id'], ['feeds.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'tenant_id', 'feed_id', 'sub_source', 'date', 'category', 'metric_name', 'value_kind',
            name='uq_observation_dedup_key',
        ),
    )
    op.create_index('ix_metric_observations_tenant_id', 'metric_observations', ['tenant_id'])
    op.create_index('ix_metric_observations_feed_id', 'metric_observations', ['feed_id'])
    op.create_index('ix_observations_tenant_date', 'metric_observations', ['tenant_id', 'date'])
    op.create_index('ix_observations_tenant_category', 'metric_observations', ['tenant_id', 'category'])

    # 6. Invitations
    op.create_table(
        'invitations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('role', sa.String(length=50), nullable=False),
        sa.Column('token', sa.String(length=128), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used', sa.Boolean(), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('invited_by', sa.Integer(), nullable=True),
        sa.Column('accepted_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['invited_by'], ['principals.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['accepted_by'], ['principals.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invitations_email', 'invitations', ['email'])
    op.create_index('ix_invitations_tenant_id', 'invitations', ['tenant_id'])
    op.create_index('ix_invitations_token', 'invitations', ['token'], unique=True)


def downgrade() -> None:
    """
    Drop the dashboard schema.

    WARNING: This deletes all tenants, grants, metric data and invitations.
    """
    op.drop_table('invitations')
    op.drop_table('metric_observations')
    op.drop_table('feeds')
    op.drop_index('uq_grant_principal_global', table_name='grants')
    op.drop_table('grants')
    op.drop_table('tenants')
    op.drop_table('principals')
