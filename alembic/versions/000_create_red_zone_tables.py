"""Create users, customers, permissions and Red Zone tables

Revision ID: 000_create_red_zone_tables
Revises:
Create Date: 2026-10-18

Note: the partial unique index on red_zone_alerts keeps at most one open
alert per (customer, rule).
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '000_create_red_zone_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Create ENUM types
    op.execute("""
        CREATE TYPE user_role_enum AS ENUM ('admin', 'team_lead', 'csm');
        CREATE TYPE red_zone_severity_enum AS ENUM ('critical', 'high_risk', 'attention_needed');
        CREATE TYPE red_zone_alert_status_enum AS ENUM ('open', 'pending_approval', 'resolved');
    """)

    # Users
    op.create_table(
        'api_users',
        sa.Column('id', sa.Integer, primary_key=True, index=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100)),
        sa.Column('last_name', sa.String(100)),
        sa.Column('role', sa.Enum('admin', 'team_lead', 'csm', name='user_role_enum', create_type=False),
                  nullable=False, server_default='csm'),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    # Role permission overrides
    op.create_table(
        'permissions',
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=False, server_default=''),
        sa.Column('admin_access', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('team_lead_access', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('csm_access', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Customers
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer, primary_key=True, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('industry', sa.String(100)),
        sa.Column('website', sa.String(255)),
        sa.Column('status', sa.String(50), server_default='active'),
        # Revenue
        sa.Column('arr', sa.Float, server_default='0'),
        sa.Column('mrr', sa.Float, server_default='0'),
        sa.Column('add_on_revenue', sa.Float, server_default='0'),
        # Lifecycle dates
        sa.Column('onboarding_start_date', sa.Date),
        sa.Column('onboarding_completion_date', sa.Date),
        sa.Column('renewal_date', sa.Date),
        sa.Column('last_review_meeting', sa.Date),
        # Engagement
        sa.Column('campaign_stats', sa.JSON),
        sa.Column('nps_score', sa.Integer),
        sa.Column('data_tagging_percentage', sa.Float),
        sa.Column('assigned_to_user_id', sa.Integer, sa.ForeignKey('api_users.id'), index=True),
        sa.Column('external_ids', sa.JSON),
        sa.Column('in_red_zone', sa.Boolean, server_default=sa.false(), index=True),
        sa.Column('notes', sa.Text),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'customer_metrics',
        sa.Column('id', sa.Integer, primary_key=True, index=True),
        sa.Column('customer_id', sa.Integer, sa.ForeignKey('customers.id', ondelete='CASCADE'),
                  nullable=False, unique=True, index=True),
        sa.Column('active_stores', sa.Integer),
        sa.Column('total_stores', sa.Integer),
        sa.Column('revenue_1_year', sa.Float),
        sa.Column('revenue_ytd', sa.Float),
        sa.Column('campaigns_last_60_days', sa.Integer),
        sa.Column('monthly_campaigns', sa.Integer),
        sa.Column('qr_loyalty_enabled', sa.Boolean),
        sa.Column('last_campaign_date', sa.Date),
        sa.Column('extra', sa.JSON),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Red Zone rules
    op.create_table(
        'red_zone_rules',
        sa.Column('id', sa.Integer, primary_key=True, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('conditions', sa.JSON, nullable=False),
        sa.Column('severity', sa.Enum('critical', 'high_risk', 'attention_needed',
                                      name='red_zone_severity_enum', create_type=False),
                  nullable=False, server_default='attention_needed'),
        sa.Column('auto_resolve', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('enabled', sa.Boolean, nullable=False, server_default=sa.true(), index=True),
        sa.Column('team_lead_approval_required', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('notification_message', sa.Text),
        sa.Column('created_by', sa.Integer, sa.ForeignKey('api_users.id')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'red_zone_resolution_criteria',
        sa.Column('id', sa.Integer, primary_key=True, index=True),
        sa.Column('rule_id', sa.Integer, sa.ForeignKey('red_zone_rules.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.Column('field_path', sa.String(255), nullable=False),
        sa.Column('operator', sa.String(50), nullable=False),
        sa.Column('value', sa.Text, nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Red Zone alerts
    op.create_table(
        'red_zone_alerts',
        sa.Column('id', sa.Integer, primary_key=True, index=True),
        sa.Column('customer_id', sa.Integer, sa.ForeignKey('customers.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('rule_id', sa.Integer, sa.ForeignKey('red_zone_rules.id', ondelete='SET NULL'), index=True),
        sa.Column('reason', sa.Text, nullable=False),
        sa.Column('severity', sa.Enum('critical', 'high_risk', 'attention_needed',
                                      name='red_zone_severity_enum', create_type=False),
                  nullable=False, server_default='attention_needed'),
        sa.Column('status', sa.Enum('open', 'pending_approval', 'resolved',
                                    name='red_zone_alert_status_enum', create_type=False),
                  nullable=False, server_default='open', index=True),
        sa.Column('details', sa.JSON),
        sa.Column('notes', sa.Text),
        sa.Column('assigned_to', sa.Integer, sa.ForeignKey('api_users.id')),
        sa.Column('escalated_to', sa.Integer, sa.ForeignKey('api_users.id')),
        sa.Column('escalated_at', sa.DateTime(timezone=True)),
        sa.Column('resolution_summary', sa.Text),
        sa.Column('resolved_by', sa.String(100)),
        sa.Column('resolved_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index(
        'uq_red_zone_alerts_open_customer_rule',
        'red_zone_alerts',
        ['customer_id', 'rule_id'],
        unique=True,
        postgresql_where=sa.text("status = 'open'"),
    )

    op.create_table(
        'red_zone_activity_logs',
        sa.Column('id', sa.Integer, primary_key=True, index=True),
        sa.Column('alert_id', sa.Integer, sa.ForeignKey('red_zone_alerts.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('performed_by', sa.String(100)),
        sa.Column('details', sa.JSON),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade():
    # Drop tables in reverse order
    op.drop_table('red_zone_activity_logs')
    op.drop_index('uq_red_zone_alerts_open_customer_rule', table_name='red_zone_alerts')
    op.drop_table('red_zone_alerts')
    op.drop_table('red_zone_resolution_criteria')
    op.drop_table('red_zone_rules')
    op.drop_table('customer_metrics')
    op.drop_table('customers')
    op.drop_table('permissions')
    op.drop_table('api_users')

    op.execute("""
        DROP TYPE IF EXISTS red_zone_alert_status_enum;
        DROP TYPE IF EXISTS red_zone_severity_enum;
        DROP TYPE IF EXISTS user_role_enum;
    """)
