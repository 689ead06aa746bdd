"""Add call logs

Revision ID: 002_call_logs
Revises: 001_initial
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers
revision = '002_call_logs'
down_revision = '001_initial'
branch_labels = None
depends_on = None


def upgrade():
    """Create the call_logs table"""
    op.create_table(
        'call_logs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('agent_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('agent_name', sa.String(200), nullable=True),
        sa.Column('context_type', sa.String(20), nullable=False),
        sa.Column('context_id', UUID(as_uuid=True), nullable=False),
        sa.Column('outcome', sa.String(30), nullable=False),
        sa.Column('notes', sa.Text, server_default='', nullable=False),
        sa.Column('lead_status', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.CheckConstraint("context_type IN ('order', 'prediction_lead')", name='ck_call_logs_context_type'),
    )
    op.create_index('ix_call_logs_agent_id', 'call_logs', ['agent_id'])
    op.create_index('ix_call_logs_context', 'call_logs', ['context_type', 'context_id'])


def downgrade():
    """Drop the call_logs table"""
    op.drop_table('call_logs')
