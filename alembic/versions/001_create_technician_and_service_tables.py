"""Create users, technician level/points and service intake tables

Revision ID: 001_technician_service_tables
Revises:
Create Date: 2026-10-18

Note: technician_points_history references services, so services is created
before the ledger.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_technician_service_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('company_id', sa.Integer(), nullable=False, index=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100)),
        sa.Column('last_name', sa.String(100)),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'technician_levels',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('company_id', sa.Integer(), nullable=False, index=True),
        sa.Column('code', sa.String(30), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('min_points', sa.Integer(), nullable=False, server_default='0'),
        # Inclusive upper bound; NULL on the highest level
        sa.Column('max_points', sa.Integer(), nullable=True),
        sa.Column('points_multiplier', sa.Float(), nullable=False, server_default='1.0'),
        sa.Column('incentive_percent', sa.Float(), nullable=False, server_default='0'),
        sa.Column('promotion_bonus_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('badge_color', sa.String(20)),
        sa.Column('description', sa.Text()),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('company_id', 'code', name='uq_technician_levels_company_code'),
    )
    op.create_index('idx_technician_levels_company_sort', 'technician_levels', ['company_id', 'sort_order'])

    op.create_table(
        'technician_profiles',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('company_id', sa.Integer(), nullable=False, index=True),
        sa.Column('current_level_id', sa.Integer(), sa.ForeignKey('technician_levels.id'), nullable=True),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('average_rating', sa.Float(), nullable=True),
        sa.Column('rating_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_services_completed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('avg_completion_hours', sa.Float(), nullable=True),
        sa.Column('max_concurrent_jobs', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('level_promoted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'faults',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('company_id', sa.Integer(), nullable=False, index=True),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('code', sa.String(30), nullable=False),
        sa.Column('default_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('technician_points', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('company_id', 'code', name='uq_faults_company_code'),
    )

    op.create_table(
        'customer_devices',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('company_id', sa.Integer(), nullable=False, index=True),
        sa.Column('customer_id', sa.Integer(), nullable=False, index=True),
        sa.Column('brand', sa.String(100), nullable=False),
        sa.Column('model', sa.String(100), nullable=False),
        sa.Column('imei', sa.String(30)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'services',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('company_id', sa.Integer(), nullable=False, index=True),
        sa.Column('ticket_number', sa.String(50), nullable=False, unique=True, index=True),
        sa.Column('customer_id', sa.Integer(), nullable=False, index=True),
        sa.Column('customer_device_id', sa.Integer(), sa.ForeignKey('customer_devices.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING', index=True),
        sa.Column('intake_notes', sa.Text()),
        sa.Column('estimated_cost', sa.Float(), nullable=False, server_default='0'),
        sa.Column('actual_cost', sa.Float(), nullable=True),
        sa.Column('assigned_technician_id', sa.Integer(), sa.ForeignKey('technician_profiles.id'), nullable=True, index=True),
        # Repeat / warranty detection
        sa.Column('is_repeated_service', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('previous_service_id', sa.Integer(), sa.ForeignKey('services.id'), nullable=True),
        sa.Column('is_warranty_repair', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('warranty_reason', sa.String(30), nullable=True),
        sa.Column('matching_fault_ids', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('idx_services_device_created', 'services', ['customer_device_id', 'created_at'])
    op.create_index('idx_services_technician_status', 'services', ['assigned_technician_id', 'status'])

    op.create_table(
        'service_faults',
        sa.Column('service_id', sa.Integer(), sa.ForeignKey('services.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('fault_id', sa.Integer(), sa.ForeignKey('faults.id'), primary_key=True),
    )

    op.create_table(
        'technician_points_history',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('technician_profile_id', sa.Integer(), sa.ForeignKey('technician_profiles.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('base_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('bonus_multiplier', sa.Float(), nullable=False, server_default='1.0'),
        sa.Column('service_id', sa.Integer(), sa.ForeignKey('services.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        'idx_points_history_profile_created', 'technician_points_history', ['technician_profile_id', 'created_at']
    )

    op.create_table(
        'technician_promotions',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('technician_profile_id', sa.Integer(), sa.ForeignKey('technician_profiles.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('from_level_id', sa.Integer(), sa.ForeignKey('technician_levels.id'), nullable=True),
        sa.Column('to_level_id', sa.Integer(), sa.ForeignKey('technician_levels.id'), nullable=False),
        sa.Column('points_at_promotion', sa.Integer(), nullable=False),
        sa.Column('bonus_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('promoted_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade():
    """Drop tables."""
    op.drop_table('technician_promotions')
    op.drop_index('idx_points_history_profile_created', table_name='technician_points_history')
    op.drop_table('technician_points_history')
    op.drop_table('service_faults')
    op.drop_index('idx_services_technician_status', table_name='services')
    op.drop_index('idx_services_device_created', table_name='services')
    op.drop_table('services')
    op.drop_table('customer_devices')
    op.drop_table('faults')
    op.drop_table('technician_profiles')
    op.drop_index('idx_technician_levels_company_sort', table_name='technician_levels')
    op.drop_table('technician_levels')
    op.drop_table('users')
