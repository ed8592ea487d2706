"""initial schema: tenants, users, departments, positions, employees, salary tables, movements

Revision ID: a1f0c3d9e2b4
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1f0c3d9e2b4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _stamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('tax_id', sa.String(32), nullable=False, unique=True),
        sa.Column('plan', sa.String(20), nullable=False, server_default='basic'),
        sa.Column('status', sa.String(16), nullable=False, server_default='trial'),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_stamps(),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='manager'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_access_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('tenant_id', 'email', name='uq_user_tenant_email'),
    )
    op.create_index('ix_users_tenant_id', 'users', ['tenant_id'])
    op.create_index('ix_users_email', 'users', ['email'])

    # manager_id → employees is added after employees exists
    op.create_table(
        'departments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('cost_center', sa.String(32), nullable=True),
        sa.Column('budget', sa.Numeric(14, 2), nullable=True),
        sa.Column('manager_id', sa.Integer(), nullable=True),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('departments.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        *_stamps(),
        sa.UniqueConstraint('tenant_id', 'name', name='uq_department_tenant_name'),
    )
    op.create_index('ix_departments_tenant_id', 'departments', ['tenant_id'])

    op.create_table(
        'user_departments',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id', ondelete='CASCADE'),
                  primary_key=True),
    )

    op.create_table(
        'positions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id', ondelete='RESTRICT'),
                  nullable=True),
        sa.Column('title', sa.String(120), nullable=False),
        sa.Column('level', sa.String(20), nullable=False),
        sa.Column('salary_min', sa.Numeric(12, 2), nullable=True),
        sa.Column('salary_max', sa.Numeric(12, 2), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        *_stamps(),
        sa.UniqueConstraint('tenant_id', 'title', 'level', 'department_id',
                            name='uq_position_tenant_title_level_dept'),
    )
    op.create_index('ix_positions_tenant_id', 'positions', ['tenant_id'])

    op.create_table(
        'salary_tables',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position_id', sa.Integer(), sa.ForeignKey('positions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('level', sa.String(20), nullable=False),
        sa.Column('min_salary', sa.Numeric(12, 2), nullable=False),
        sa.Column('median_salary', sa.Numeric(12, 2), nullable=False),
        sa.Column('max_salary', sa.Numeric(12, 2), nullable=False),
        *_stamps(),
        sa.UniqueConstraint('tenant_id', 'position_id', 'level', name='uq_salary_table_position_level'),
    )
    op.create_index('ix_salary_tables_tenant_id', 'salary_tables', ['tenant_id'])

    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id', ondelete='RESTRICT'),
                  nullable=True),
        sa.Column('position_id', sa.Integer(), sa.ForeignKey('positions.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('name', sa.String(160), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('national_id_encrypted', sa.String(512), nullable=False),
        sa.Column('national_id_hash', sa.String(64), nullable=False),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('salary', sa.Numeric(12, 2), nullable=True),
        sa.Column('admission_date', sa.Date(), nullable=True),
        sa.Column('termination_date', sa.Date(), nullable=True),
        sa.Column('work_modality', sa.String(16), nullable=False, server_default='on_site'),
        sa.Column('weekly_hours', sa.Integer(), nullable=False, server_default='40'),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        *_stamps(),
        sa.UniqueConstraint('tenant_id', 'email', name='uq_employee_tenant_email'),
        sa.UniqueConstraint('tenant_id', 'national_id_hash', name='uq_employee_tenant_national_id'),
    )
    op.create_index('ix_emp_tenant_id', 'employees', ['tenant_id'])
    op.create_index('ix_emp_dept_id', 'employees', ['department_id'])
    op.create_index('ix_emp_position_id', 'employees', ['position_id'])

    with op.batch_alter_table('departments') as batch:
        batch.create_foreign_key('fk_department_manager', 'employees', ['manager_id'], ['id'], ondelete='SET NULL')

    op.create_table(
        'movements',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('effective_date', sa.Date(), nullable=False),
        sa.Column('previous_value', sa.JSON(), nullable=False),
        sa.Column('new_value', sa.JSON(), nullable=False),
        sa.Column('reason', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('approver_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        *_stamps(),
    )
    op.create_index('ix_mov_tenant_status', 'movements', ['tenant_id', 'status'])
    op.create_index('ix_mov_employee_id', 'movements', ['employee_id'])
    op.create_index('ix_mov_effective_date', 'movements', ['effective_date'])


def downgrade() -> None:
    op.drop_table('movements')
    with op.batch_alter_table('departments') as batch:
        batch.drop_constraint('fk_department_manager', type_='foreignkey')
    op.drop_table('employees')
    op.drop_table('salary_tables')
    op.drop_table('positions')
    op.drop_table('user_departments')
    op.drop_table('departments')
    op.drop_table('users')
    op.drop_table('tenants')
