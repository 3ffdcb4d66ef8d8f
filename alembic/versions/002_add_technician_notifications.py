"""Add technician notifications

Revision ID: 002_technician_notifications
Revises: 001_technician_service_tables
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002_technician_notifications'
down_revision = '001_technician_service_tables'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'technician_notifications',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        'idx_technician_notifications_user_read', 'technician_notifications', ['user_id', 'is_read']
    )


def downgrade():
    op.drop_index('idx_technician_notifications_user_read', table_name='technician_notifications')
    op.drop_table('technician_notifications')
