"""Add provider_message_id to alerts for delivery status callbacks

Revision ID: 20250301_alert_provider_msg
Revises: 20250101_initial_schema
Create Date: 2025-03-01 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20250301_alert_provider_msg'
down_revision = '20250101_initial_schema'
branch_labels = None
depends_on = None


def upgrade():
    op.add_column('alerts', sa.Column('provider_message_id', sa.String(255), nullable=True))
    op.create_index('idx_alerts_provider_message_id', 'alerts', ['provider_message_id'])


def downgrade():
    op.drop_index('idx_alerts_provider_message_id', table_name='alerts')
    op.drop_column('alerts', 'provider_message_id')
