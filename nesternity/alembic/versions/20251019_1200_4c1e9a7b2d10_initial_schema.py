"""initial_schema

Revision ID: 4c1e9a7b2d10
Revises:
Create Date: 2025-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1e9a7b2d10'
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('email', sa.TEXT(), nullable=False, unique=True),
        sa.Column('display_name', sa.TEXT(), nullable=True),
        _created_at(),
    )

    op.create_table(
        'organisations',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('email', sa.TEXT(), nullable=False),
        sa.Column('type', sa.TEXT(), nullable=False, server_default='OWNER'),
        sa.Column('owner_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        # -1 = unlimited
        sa.Column('max_projects', sa.INTEGER(), nullable=False, server_default='-1'),
        _created_at(),
        sa.CheckConstraint("type IN ('OWNER', 'CLIENT')", name='ck_organisations_type'),
    )
    op.create_index('idx_organisations_owner', 'organisations', ['owner_id'])

    op.create_table(
        'teams',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('organisation_id', sa.TEXT(), sa.ForeignKey('organisations.id'), nullable=True),
        sa.Column('created_by', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        _created_at(),
    )
    op.create_index('idx_teams_created_by', 'teams', ['created_by'])

    op.create_table(
        'team_members',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('team_id', sa.TEXT(), sa.ForeignKey('teams.id'), nullable=False),
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', sa.TEXT(), nullable=False, server_default='member'),
        sa.Column('added_by', sa.TEXT(), nullable=True),
        sa.Column('accepted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint('team_id', 'user_id', name='uq_team_members_team_user'),
        sa.CheckConstraint("role IN ('owner', 'admin', 'member')", name='ck_team_members_role'),
    )
    op.create_index('idx_team_members_user', 'team_members', ['user_id'])

    op.create_table(
        'clients',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('email', sa.TEXT(), nullable=False),
        sa.Column('company', sa.TEXT(), nullable=True),
        sa.Column('created_by', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        _created_at(),
    )

    op.create_table(
        'projects',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('description', sa.TEXT(), nullable=True),
        sa.Column('organisation_id', sa.TEXT(), sa.ForeignKey('organisations.id'), nullable=True),
        sa.Column('team_id', sa.TEXT(), sa.ForeignKey('teams.id'), nullable=False),
        sa.Column('client_id', sa.TEXT(), sa.ForeignKey('clients.id'), nullable=True),
        sa.Column('status', sa.TEXT(), nullable=False, server_default='ACTIVE'),
        _created_at(),
    )
    op.create_index('idx_projects_organisation', 'projects', ['organisation_id'])
    op.create_index('idx_projects_team', 'projects', ['team_id'])

    op.create_table(
        'proposals',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('organisation_id', sa.TEXT(), sa.ForeignKey('organisations.id'), nullable=False),
        sa.Column('project_id', sa.TEXT(), sa.ForeignKey('projects.id'), nullable=True),
        sa.Column('client_id', sa.TEXT(), sa.ForeignKey('clients.id'), nullable=True),
        sa.Column('title', sa.TEXT(), nullable=False),
        sa.Column('status', sa.TEXT(), nullable=False, server_default='DRAFT'),
        sa.Column('amount', sa.NUMERIC(12, 2), nullable=True),
        sa.Column('currency', sa.TEXT(), nullable=False, server_default='INR'),
        sa.Column('created_by', sa.TEXT(), nullable=False),
        _created_at(),
    )
    op.create_index('idx_proposals_organisation', 'proposals', ['organisation_id'])
    op.create_index('idx_proposals_project', 'proposals', ['project_id'])

    op.create_table(
        'invoices',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('organisation_id', sa.TEXT(), sa.ForeignKey('organisations.id'), nullable=False),
        sa.Column('project_id', sa.TEXT(), sa.ForeignKey('projects.id'), nullable=True),
        sa.Column('client_id', sa.TEXT(), sa.ForeignKey('clients.id'), nullable=True),
        sa.Column('invoice_number', sa.TEXT(), nullable=False),
        sa.Column('amount', sa.NUMERIC(12, 2), nullable=False),
        sa.Column('currency', sa.TEXT(), nullable=False, server_default='INR'),
        sa.Column('status', sa.TEXT(), nullable=False, server_default='DRAFT'),
        sa.Column('due_date', sa.DATE(), nullable=True),
        sa.Column('created_by', sa.TEXT(), nullable=False),
        _created_at(),
        sa.UniqueConstraint('organisation_id', 'invoice_number', name='uq_invoices_org_number'),
    )
    op.create_index('idx_invoices_organisation', 'invoices', ['organisation_id'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('plan_tier', sa.TEXT(), nullable=False, server_default='FREE'),
        sa.Column('status', sa.TEXT(), nullable=False, server_default='ACTIVE'),
        sa.Column('provider', sa.TEXT(), nullable=False, server_default='manual'),
        sa.Column('external_id', sa.TEXT(), nullable=True),
        sa.Column('current_period_start', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint('provider', 'external_id', name='uq_subscriptions_provider_external'),
    )
    op.create_index('idx_subscriptions_user_status', 'subscriptions', ['user_id', 'status'])

    op.create_table(
        'usage_records',
        sa.Column('id', sa.BIGINT(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('subscription_id', sa.TEXT(), sa.ForeignKey('subscriptions.id'), nullable=True),
        sa.Column('feature_type', sa.TEXT(), nullable=False),
        sa.Column('period_start', sa.DATE(), nullable=False),
        sa.Column('period_end', sa.DATE(), nullable=False),
        sa.Column('count', sa.INTEGER(), nullable=False, server_default='1'),
        sa.Column('meta', sa.JSON(), nullable=True),
        _created_at(),
        sa.CheckConstraint('count > 0', name='ck_usage_records_count_positive'),
    )
    op.create_index(
        'idx_usage_records_user_feature_period',
        'usage_records',
        ['user_id', 'feature_type', 'period_start'],
    )


def downgrade() -> None:
    op.drop_index('idx_usage_records_user_feature_period', table_name='usage_records')
    op.drop_table('usage_records')
    op.drop_index('idx_subscriptions_user_status', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('idx_invoices_organisation', table_name='invoices')
    op.drop_table('invoices')
    op.drop_index('idx_proposals_project', table_name='proposals')
    op.drop_index('idx_proposals_organisation', table_name='proposals')
    op.drop_table('proposals')
    op.drop_index('idx_projects_team', table_name='projects')
    op.drop_index('idx_projects_organisation', table_name='projects')
    op.drop_table('projects')
    op.drop_table('clients')
    op.drop_index('idx_team_members_user', table_name='team_members')
    op.drop_table('team_members')
    op.drop_index('idx_teams_created_by', table_name='teams')
    op.drop_table('teams')
    op.drop_index('idx_organisations_owner', table_name='organisations')
    op.drop_table('organisations')
    op.drop_table('users')
