"""Initial schema: users, refresh tokens, pre-approvals, visitors, settings

Revision ID: 5a7e3c1d9b20
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5a7e3c1d9b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Порядок создания учитывает foreign keys

    # 1. Users
    op.create_table(
        'users',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('role', sa.Text(), nullable=False, server_default='employee'),
        sa.Column('department', sa.Text(), nullable=True),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('theme', sa.Text(), nullable=False, server_default='light'),
        sa.Column('created_at', sa.Text(), nullable=False),
        sa.Column('last_login', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    # 2. Refresh tokens (зависит от users)
    op.create_table(
        'refresh_tokens',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('token_hash', sa.Text(), nullable=False),
        sa.Column('expires_at', sa.Text(), nullable=False),
        sa.Column('created_at', sa.Text(), nullable=False),
        sa.Column('revoked_at', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_refresh_tokens_user_id'), 'refresh_tokens', ['user_id'], unique=False)

    # 3. Pre-approvals (зависит от users)
    op.create_table(
        'pre_approvals',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('visitor_name', sa.Text(), nullable=False),
        sa.Column('visitor_email', sa.Text(), nullable=False),
        sa.Column('visitor_phone', sa.Text(), nullable=False),
        sa.Column('purpose', sa.Text(), nullable=False),
        sa.Column('scheduled_date', sa.Text(), nullable=False),
        sa.Column('start_time', sa.Text(), nullable=False),
        sa.Column('end_time', sa.Text(), nullable=False),
        sa.Column('host_employee_id', sa.Text(), nullable=False),
        sa.Column('host_employee_name', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default='active'),
        sa.Column('qr_code', sa.Text(), nullable=False),
        sa.Column('qr_sent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('qr_sent_at', sa.Text(), nullable=True),
        sa.Column('qr_sent_status', sa.Text(), nullable=False, server_default='not-sent'),
        sa.Column('qr_message_id', sa.Text(), nullable=True),
        sa.Column('qr_last_error', sa.Text(), nullable=True),
        sa.Column('valid_until', sa.Text(), nullable=False),
        sa.Column('used_at', sa.Text(), nullable=True),
        sa.Column('used_visitor_id', sa.Text(), nullable=True),
        sa.Column('created_at', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['host_employee_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_pre_approvals_host_employee_id'), 'pre_approvals', ['host_employee_id'], unique=False)
    op.create_index('idx_pre_approvals_created_at', 'pre_approvals', ['created_at'], unique=False)
    op.create_index('idx_pre_approvals_status', 'pre_approvals', ['status'], unique=False)

    # 4. Visitors (зависит от users и pre_approvals)
    op.create_table(
        'visitors',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('full_name', sa.Text(), nullable=False),
        sa.Column('contact_number', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('purpose', sa.Text(), nullable=False),
        sa.Column('company_name', sa.Text(), nullable=True),
        sa.Column('host_employee_id', sa.Text(), nullable=True),
        sa.Column('host_employee_name', sa.Text(), nullable=False),
        sa.Column('host_department', sa.Text(), nullable=False),
        sa.Column('photo_url', sa.Text(), nullable=True),
        sa.Column('badge_number', sa.Text(), nullable=False),
        sa.Column('qr_code', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default='pending'),
        sa.Column('check_in_time', sa.Text(), nullable=True),
        sa.Column('check_out_time', sa.Text(), nullable=True),
        sa.Column('approval_time', sa.Text(), nullable=True),
        sa.Column('approved_by', sa.Text(), nullable=True),
        sa.Column('pre_approved', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pre_approval_id', sa.Text(), nullable=True),
        sa.Column('registered_by', sa.Text(), nullable=False),
        sa.Column('created_at', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['host_employee_id'], ['users.id']),
        sa.ForeignKeyConstraint(['approved_by'], ['users.id']),
        sa.ForeignKeyConstraint(['pre_approval_id'], ['pre_approvals.id']),
        sa.ForeignKeyConstraint(['registered_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_visitors_host_employee_id'), 'visitors', ['host_employee_id'], unique=False)
    op.create_index('idx_visitors_status', 'visitors', ['status'], unique=False)
    op.create_index('idx_visitors_created_at', 'visitors', ['created_at'], unique=False)

    # 5. Settings
    op.create_table(
        'settings',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('key', sa.Text(), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.Text(), nullable=False),
        sa.Column('updated_by', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['updated_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key')
    )


def downgrade() -> None:
    op.drop_table('settings')
    op.drop_index('idx_visitors_created_at', table_name='visitors')
    op.drop_index('idx_visitors_status', table_name='visitors')
    op.drop_index(op.f('ix_visitors_host_employee_id'), table_name='visitors')
    op.drop_table('visitors')
    op.drop_index('idx_pre_approvals_status', table_name='pre_approvals')
    op.drop_index('idx_pre_approvals_created_at', table_name='pre_approvals')
    op.drop_index(op.f('ix_pre_approvals_host_employee_id'), table_name='pre_approvals')
    op.drop_table('pre_approvals')
    op.drop_index(op.f('ix_refresh_tokens_user_id'), table_name='refresh_tokens')
    op.drop_table('refresh_tokens')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
