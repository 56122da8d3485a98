"""initial after-sales schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('departments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False, unique=True),
        sa.Column('manager_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
    )
    op.create_index('ix_departments_manager_id', 'departments', ['manager_id'])

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False, unique=True),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('first_name', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_department_id', 'users', ['department_id'])

    op.create_table('customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('address', sa.String(length=255)),
    )
    op.create_index('ix_customers_name', 'customers', ['name'])

    op.create_table('products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('model', sa.String(length=64)),
        sa.Column('category', sa.String(length=64)),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id'), nullable=True),
    )
    op.create_index('ix_products_name', 'products', ['name'])

    op.create_table('requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_number', sa.String(length=32), nullable=False, unique=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=True),
        sa.Column('received_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assigned_technician_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('issue_description', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='NEW'),
        sa.Column('priority', sa.String(length=16), nullable=False, server_default='NORMAL'),
        sa.Column('warranty_status', sa.String(length=32), nullable=False),
        sa.Column('execution_method', sa.String(length=32), nullable=False),
        sa.Column('sla_due_date', sa.DateTime(), nullable=False),
        sa.Column('is_overdue', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('customer_satisfaction', sa.Integer(), nullable=True),
        sa.Column('final_notes', sa.Text(), nullable=True),
        sa.Column('purchase_date', sa.DateTime(), nullable=True),
        sa.Column('assigned_at', sa.DateTime(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.CheckConstraint('customer_satisfaction IS NULL OR (customer_satisfaction BETWEEN 1 AND 5)', name='ck_request_satisfaction'),
    )
    for col in ('request_number', 'customer_id', 'department_id', 'received_by_id', 'assigned_technician_id',
                'status', 'sla_due_date', 'is_overdue', 'created_at'):
        op.create_index(f'ix_requests_{col}', 'requests', [col])

    op.create_table('request_costs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('requests.id'), nullable=False),
        sa.Column('cost_type', sa.String(length=32), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False, server_default='SYP'),
        sa.Column('description', sa.String(length=255)),
        sa.Column('added_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_cost_amount_positive'),
    )
    op.create_index('ix_request_costs_request_id', 'request_costs', ['request_id'])

    op.create_table('custom_request_statuses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
        sa.Column('display_name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.String(length=255)),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table('spare_parts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('part_number', sa.String(length=64), nullable=False, unique=True),
        sa.Column('category', sa.String(length=64), nullable=False, server_default='GENERAL'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('min_quantity', sa.Integer(), nullable=False, server_default=sa.text('5')),
        sa.Column('unit_price', sa.Float(), nullable=False, server_default=sa.text('0')),
        sa.Column('currency', sa.String(length=8), nullable=False, server_default='SYP'),
        sa.Column('supplier', sa.String(length=128)),
        sa.Column('location', sa.String(length=64)),
        sa.Column('description', sa.String(length=255)),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.CheckConstraint('quantity >= 0', name='ck_spare_part_quantity_non_negative'),
    )
    op.create_index('ix_spare_parts_name', 'spare_parts', ['name'])
    op.create_index('ix_spare_parts_part_number', 'spare_parts', ['part_number'])

    op.create_table('request_parts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('requests.id'), nullable=False),
        sa.Column('spare_part_id', sa.Integer(), sa.ForeignKey('spare_parts.id'), nullable=False),
        sa.Column('quantity_used', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Float(), nullable=False),
        sa.Column('total_cost', sa.Float(), nullable=False),
        sa.Column('added_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('quantity_used > 0', name='ck_request_part_quantity_positive'),
    )
    op.create_index('ix_request_parts_request_id', 'request_parts', ['request_id'])
    op.create_index('ix_request_parts_spare_part_id', 'request_parts', ['spare_part_id'])

    op.create_table('request_activities',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('requests.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('activity_type', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('old_value', sa.String(length=255)),
        sa.Column('new_value', sa.String(length=255)),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    for col in ('request_id', 'user_id', 'activity_type', 'created_at'):
        op.create_index(f'ix_request_activities_{col}', 'request_activities', [col])

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('requests.id'), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    for col in ('user_id', 'request_id', 'type', 'is_read', 'created_at'):
        op.create_index(f'ix_notifications_{col}', 'notifications', [col])


def downgrade():
    for table in ('notifications', 'request_activities', 'request_parts', 'spare_parts',
                  'custom_request_statuses', 'request_costs', 'requests', 'products',
                  'customers', 'users', 'departments'):
        op.drop_table(table)
