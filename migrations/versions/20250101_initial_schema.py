"""
Initial compliance schema.

Creates users, organizations and every tenant-scoped table: deadlines,
alerts, documents, forms, templates, billing, notifications, the activity
log and onboarding progress.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Alembic revision identifiers
revision: str = '20250101_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid(**kwargs):
    return sa.Column(kwargs.pop('name'), postgresql.UUID(as_uuid=True), **kwargs)


def _ts(name, nullable=True):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _org_fk(nullable=False):
    return sa.Column(
        'organization_id',
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey('organizations.id', ondelete='CASCADE'),
        nullable=nullable,
    )


def upgrade() -> None:
    op.create_table(
        'users',
        _uuid(name='id', primary_key=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('is_superadmin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('auth_provider', sa.String(), nullable=True),
        sa.Column('external_subject', sa.String(), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table(
        'organizations',
        _uuid(name='id', primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('industry', sa.String(64), nullable=True),
        sa.Column('owner_user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('settings', postgresql.JSONB(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('idx_organizations_owner_user_id', 'organizations', ['owner_user_id'])

    op.create_table(
        'organization_memberships',
        sa.Column(
            'organization_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True,
        ),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), primary_key=True),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('invited_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        _ts('joined_at'),
        sa.CheckConstraint(
            "role in ('owner','admin','manager','member','viewer')",
            name='ck_org_memberships_role',
        ),
    )
    op.create_index('idx_org_memberships_user_id', 'organization_memberships', ['user_id'])

    op.create_table(
        'organization_invitations',
        _uuid(name='id', primary_key=True),
        _org_fk(),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('invited_by_user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default='pending'),
        sa.Column('token', sa.Text(), nullable=True, unique=True),
        _ts('created_at', nullable=False),
        _ts('expires_at', nullable=False),
        _ts('accepted_at'),
        sa.Column('accepted_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        _ts('revoked_at'),
    )
    op.create_index('ix_organization_invitations_email', 'organization_invitations', ['email'])
    op.create_index('ix_organization_invitations_organization_id', 'organization_invitations', ['organization_id'])

    op.create_table(
        'industry_templates',
        _uuid(name='id', primary_key=True),
        sa.Column('slug', sa.String(128), nullable=False, unique=True),
        sa.Column('industry', sa.String(64), nullable=False),
        sa.Column('sub_industry', sa.String(64), nullable=True),
        sa.Column('name', sa.String(300), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('version', sa.String(32), nullable=False),
        sa.Column('deadlines', postgresql.JSONB(), nullable=False),
        sa.Column('document_categories', postgresql.JSONB(), nullable=True),
        sa.Column('regulatory_references', postgresql.JSONB(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts('created_at', nullable=False),
        _ts('updated_at', nullable=False),
    )
    op.create_index('idx_industry_templates_industry', 'industry_templates', ['industry'])

    op.create_table(
        'template_imports',
        _uuid(name='id', primary_key=True),
        _org_fk(),
        sa.Column(
            'template_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('industry_templates.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('template_version', sa.String(32), nullable=False),
        sa.Column('imported_deadline_ids', postgresql.JSONB(), nullable=False),
        sa.Column('customizations', postgresql.JSONB(), nullable=True),
        sa.Column('imported_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        _ts('imported_at', nullable=False),
        sa.Column('last_notified_version', sa.String(32), nullable=True),
    )
    op.create_index(
        'idx_template_imports_org_template', 'template_imports', ['organization_id', 'template_id'], unique=True
    )

    op.create_table(
        'deadlines',
        _uuid(name='id', primary_key=True),
        _org_fk(),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _ts('due_date', nullable=False),
        sa.Column('category', sa.String(64), nullable=False),
        sa.Column('recurrence', postgresql.JSONB(), nullable=True),
        sa.Column('assigned_to', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        _ts('completed_at'),
        sa.Column('completed_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        _ts('deleted_at'),
        _ts('created_at', nullable=False),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('alert_days', postgresql.JSONB(), nullable=True),
        sa.Column('importance', sa.String(16), nullable=True),
        sa.Column(
            'template_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('industry_templates.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('template_deadline_id', sa.String(128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.CheckConstraint(
            "importance is null or importance in ('critical','high','medium','low')",
            name='ck_deadlines_importance',
        ),
    )
    op.create_index('idx_deadlines_org_due_date', 'deadlines', ['organization_id', 'due_date'])
    op.create_index('idx_deadlines_assigned_to', 'deadlines', ['assigned_to'])
    op.create_index('idx_deadlines_deleted_at', 'deadlines', ['deleted_at'])

    op.create_table(
        'deadline_audit_log',
        _uuid(name='id', primary_key=True),
        sa.Column(
            'deadline_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('deadlines.id', ondelete='CASCADE'), nullable=False,
        ),
        _org_fk(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('action', sa.String(32), nullable=False),
        sa.Column('changes', postgresql.JSONB(), nullable=True),
        _ts('created_at', nullable=False),
    )
    op.create_index(
        'idx_deadline_audit_deadline_id_created_at', 'deadline_audit_log', ['deadline_id', 'created_at']
    )

    op.create_table(
        'alerts',
        _uuid(name='id', primary_key=True),
        sa.Column(
            'deadline_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('deadlines.id', ondelete='CASCADE'), nullable=False,
        ),
        _org_fk(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        _ts('scheduled_for', nullable=False),
        sa.Column('channel', sa.String(16), nullable=False),
        sa.Column('urgency', sa.String(16), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='scheduled'),
        _ts('sent_at'),
        _ts('delivered_at'),
        _ts('acknowledged_at'),
        sa.Column('acknowledged_via', sa.String(32), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        _ts('snoozed_until'),
        _ts('created_at', nullable=False),
    )
    op.create_index('idx_alerts_status_scheduled_for', 'alerts', ['status', 'scheduled_for'])
    op.create_index('idx_alerts_deadline_id', 'alerts', ['deadline_id'])
    op.create_index('idx_alerts_organization_id', 'alerts', ['organization_id'])

    op.create_table(
        'alert_preferences',
        _uuid(name='id', primary_key=True),
        _org_fk(),
        sa.Column(
            'user_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True,
        ),
        sa.Column('early_channels', postgresql.JSONB(), nullable=False),
        sa.Column('medium_channels', postgresql.JSONB(), nullable=False),
        sa.Column('high_channels', postgresql.JSONB(), nullable=False),
        sa.Column('critical_channels', postgresql.JSONB(), nullable=False),
        sa.Column('alert_days', postgresql.JSONB(), nullable=False),
        sa.Column('escalation_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('escalation_contacts', postgresql.JSONB(), nullable=False),
        sa.Column('phone_number', sa.String(32), nullable=True),
        sa.Column('email_override', sa.String(320), nullable=True),
        _ts('created_at', nullable=False),
        _ts('updated_at', nullable=False),
    )
    op.create_index('idx_alert_preferences_org_user', 'alert_preferences', ['organization_id', 'user_id'])

    op.create_table(
        'alert_audit_log',
        _uuid(name='id', primary_key=True),
        sa.Column('alert_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            'deadline_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('deadlines.id', ondelete='CASCADE'), nullable=True,
        ),
        _org_fk(),
        sa.Column('action', sa.String(32), nullable=False),
        sa.Column('details', postgresql.JSONB(), nullable=True),
        _ts('created_at', nullable=False),
    )
    op.create_index('idx_alert_audit_alert_id_created_at', 'alert_audit_log', ['alert_id', 'created_at'])

    op.create_table(
        'notifications',
        _uuid(name='id', primary_key=True),
        _org_fk(),
        sa.Column(
            'user_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', postgresql.JSONB(), nullable=True),
        _ts('read_at'),
        _ts('created_at', nullable=False),
    )
    op.create_index('idx_notifications_user_id_created_at', 'notifications', ['user_id', 'created_at'])
    op.create_index('idx_notifications_org_user', 'notifications', ['organization_id', 'user_id'])
    op.create_index('idx_notifications_type', 'notifications', ['type'])

    op.create_table(
        'email_notification_logs',
        _uuid(name='id', primary_key=True),
        _org_fk(nullable=True),
        sa.Column(
            'user_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('email_address', sa.String(320), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('subject', sa.String(200), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('provider', sa.String(20), nullable=True),
        sa.Column('provider_message_id', sa.String(255), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        _ts('sent_at'),
        _ts('created_at', nullable=False),
    )
    op.create_index(
        'idx_email_notification_logs_org_created_at', 'email_notification_logs', ['organization_id', 'created_at']
    )
    op.create_index('idx_email_notification_logs_status', 'email_notification_logs', ['status'])
    op.create_index('idx_email_notification_logs_event_type', 'email_notification_logs', ['event_type'])

    op.create_table(
        'documents',
        _uuid(name='id', primary_key=True),
        _org_fk(),
        sa.Column('file_name', sa.String(500), nullable=False),
        sa.Column('file_type', sa.String(16), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=False),
        sa.Column('storage_id', sa.String(128), nullable=False),
        sa.Column('category', sa.String(64), nullable=False),
        sa.Column('deadline_ids', postgresql.JSONB(), nullable=True),
        sa.Column('uploaded_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        _ts('uploaded_at', nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column(
            'previous_version_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('documents.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('extracted_text', sa.Text(), nullable=True),
        _ts('deleted_at'),
    )
    op.create_index('idx_documents_org_category', 'documents', ['organization_id', 'category'])
    op.create_index('idx_documents_org_file_name', 'documents', ['organization_id', 'file_name'])
    op.create_index('idx_documents_deleted_at', 'documents', ['deleted_at'])

    op.create_table(
        'document_access_log',
        _uuid(name='id', primary_key=True),
        sa.Column(
            'document_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('documents.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('action', sa.String(16), nullable=False),
        sa.Column('ip_address', sa.Text(), nullable=True),
        _ts('created_at', nullable=False),
    )
    op.create_index(
        'idx_document_access_document_id_created_at', 'document_access_log', ['document_id', 'created_at']
    )

    op.create_table(
        'organization_profiles',
        sa.Column(
            'organization_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True,
        ),
        sa.Column('legal_name', sa.String(300), nullable=True),
        sa.Column('dba_names', postgresql.JSONB(), nullable=True),
        sa.Column('ein', sa.String(16), nullable=True),
        sa.Column('addresses', postgresql.JSONB(), nullable=True),
        sa.Column('phones', postgresql.JSONB(), nullable=True),
        sa.Column('emails', postgresql.JSONB(), nullable=True),
        sa.Column('website', sa.String(500), nullable=True),
        sa.Column('license_numbers', postgresql.JSONB(), nullable=True),
        sa.Column('npi_number', sa.String(16), nullable=True),
        sa.Column('officers', postgresql.JSONB(), nullable=True),
        sa.Column('incorporation_date', sa.String(10), nullable=True),
        sa.Column('custom_fields', postgresql.JSONB(), nullable=True),
        _ts('created_at', nullable=False),
        _ts('updated_at', nullable=False),
    )

    op.create_table(
        'form_templates',
        _uuid(name='id', primary_key=True),
        _org_fk(nullable=True),
        sa.Column('name', sa.String(300), nullable=False),
        sa.Column('industry', sa.String(64), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('storage_id', sa.String(128), nullable=False),
        sa.Column('field_mappings', postgresql.JSONB(), nullable=False),
        sa.Column('times_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        _ts('created_at', nullable=False),
        _ts('updated_at', nullable=False),
    )
    op.create_index('idx_form_templates_organization_id', 'form_templates', ['organization_id'])

    op.create_table(
        'form_fills',
        _uuid(name='id', primary_key=True),
        _org_fk(),
        sa.Column(
            'template_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('form_templates.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('storage_id', sa.String(128), nullable=False),
        sa.Column('field_values', postgresql.JSONB(), nullable=True),
        _ts('created_at', nullable=False),
    )
    op.create_index('idx_form_fills_org_created_at', 'form_fills', ['organization_id', 'created_at'])

    op.create_table(
        'subscriptions',
        _uuid(name='id', primary_key=True),
        sa.Column(
            'organization_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, unique=True,
        ),
        sa.Column('plan', sa.String(32), nullable=False),
        sa.Column('billing_interval', sa.String(16), nullable=False, server_default='monthly'),
        sa.Column('status', sa.String(32), nullable=False, server_default='trialing'),
        sa.Column('stripe_customer_id', sa.String(128), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(128), nullable=True),
        sa.Column('stripe_price_id', sa.String(128), nullable=True),
        _ts('current_period_start'),
        _ts('current_period_end'),
        _ts('trial_start'),
        _ts('trial_end'),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('canceled_at'),
        _ts('created_at', nullable=False),
        _ts('updated_at', nullable=False),
    )

    op.create_table(
        'usage',
        _uuid(name='id', primary_key=True),
        _org_fk(),
        sa.Column('month', sa.String(7), nullable=False),
        sa.Column('deadlines_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('documents_uploaded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('storage_used_bytes', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('form_pre_fills', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('alerts_sent', sa.Integer(), nullable=False, server_default='0'),
        _ts('updated_at', nullable=False),
    )
    op.create_index('idx_usage_org_month', 'usage', ['organization_id', 'month'], unique=True)

    op.create_table(
        'trial_warnings',
        _uuid(name='id', primary_key=True),
        _org_fk(),
        sa.Column('days_remaining', sa.Integer(), nullable=False),
        _ts('sent_at', nullable=False),
    )
    op.create_index('idx_trial_warnings_org_days', 'trial_warnings', ['organization_id', 'days_remaining'], unique=True)

    op.create_table(
        'audit_logs',
        _uuid(name='id', primary_key=True),
        _org_fk(),
        sa.Column('actor_user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('action_type', sa.Text(), nullable=False),
        sa.Column('target_type', sa.Text(), nullable=True),
        sa.Column('target_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('target_title', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='success'),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('ip_address', sa.Text(), nullable=True),
        _ts('created_at', nullable=False),
    )
    op.create_index('ix_audit_logs_organization_id_created_at', 'audit_logs', ['organization_id', 'created_at'])
    op.create_index('ix_audit_logs_actor_user_id_created_at', 'audit_logs', ['actor_user_id', 'created_at'])
    op.create_index('ix_audit_logs_action_type', 'audit_logs', ['action_type'])
    op.create_index('ix_audit_logs_target', 'audit_logs', ['target_type', 'target_id'])

    op.create_table(
        'onboarding_progress',
        _uuid(name='id', primary_key=True),
        sa.Column(
            'user_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False,
        ),
        _org_fk(),
        sa.Column('steps', postgresql.JSONB(), nullable=False),
        _ts('completed_at'),
        _ts('last_activity_at', nullable=False),
        sa.Column('reminders_sent', postgresql.JSONB(), nullable=True),
        _ts('created_at', nullable=False),
    )
    op.create_index('idx_onboarding_progress_org', 'onboarding_progress', ['organization_id'], unique=True)
    op.create_index('idx_onboarding_progress_user', 'onboarding_progress', ['user_id'])


def downgrade() -> None:
    for table in (
        'onboarding_progress',
        'audit_logs',
        'trial_warnings',
        'usage',
        'subscriptions',
        'form_fills',
        'form_templates',
        'organization_profiles',
        'document_access_log',
        'documents',
        'email_notification_logs',
        'notifications',
        'alert_audit_log',
        'alert_preferences',
        'alerts',
        'deadline_audit_log',
        'deadlines',
        'template_imports',
        'industry_templates',
        'organization_invitations',
        'organization_memberships',
        'organizations',
        'users',
    ):
        op.drop_table(table)
