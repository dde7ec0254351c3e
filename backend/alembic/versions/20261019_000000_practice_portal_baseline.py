"""practice_portal_baseline

Revision ID: 3f2b9c1d7a10
Revises:
Create Date: 2026-10-19 00:00:00.000000

Baseline schema for the practice portal: principals with their role records,
practices, staff memberships, patient assignments and the request/invitation
tables that lead to them. The partial unique indexes carry the
"one active relationship per pair" rules.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f2b9c1d7a10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'principals',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("role IN ('patient', 'doctor', 'admin')", name='ck_principals_role'),
    )
    op.create_index('idx_principals_role', 'principals', ['role'])

    op.create_table(
        'doctor_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('principal_id', sa.String(64), sa.ForeignKey('principals.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('specialty', sa.String(255), nullable=True),
        sa.Column('license_number', sa.String(100), nullable=True),
        sa.Column('availability_status', sa.String(20), server_default='active', nullable=False),
        *_timestamps(),
        sa.CheckConstraint("availability_status IN ('active', 'away')", name='ck_doctor_records_availability'),
    )
    op.create_index('ix_doctor_records_id', 'doctor_records', ['id'])

    op.create_table(
        'patient_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('principal_id', sa.String(64), sa.ForeignKey('principals.id', ondelete='SET NULL'), nullable=True, unique=True),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('insurance_provider', sa.String(255), nullable=True),
        sa.Column('insurance_number', sa.String(100), nullable=True),
        sa.Column('emergency_contact_name', sa.String(255), nullable=True),
        sa.Column('emergency_contact_phone', sa.String(50), nullable=True),
        sa.Column('allergies', sa.Text(), nullable=True),
        sa.Column('medical_history', sa.Text(), nullable=True),
        sa.Column('created_by_type', sa.String(20), nullable=False, server_default='self'),
        *_timestamps(),
    )
    op.create_index('ix_patient_records_id', 'patient_records', ['id'])
    op.create_index('idx_patient_records_created_by_type', 'patient_records', ['created_by_type'])

    op.create_table(
        'practices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_practices_id', 'practices', ['id'])

    op.create_table(
        'staff_memberships',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('principal_id', sa.String(64), sa.ForeignKey('principals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('practice_id', sa.Integer(), sa.ForeignKey('practices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(30), nullable=False),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('permissions', postgresql.JSONB(), nullable=False),
        sa.Column('status', sa.String(20), server_default='active', nullable=False),
        sa.Column('is_owner', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("status IN ('active', 'inactive')", name='ck_staff_memberships_status'),
    )
    op.create_index('ix_staff_memberships_id', 'staff_memberships', ['id'])
    op.create_index(
        'uq_staff_memberships_active_pair', 'staff_memberships', ['principal_id', 'practice_id'],
        unique=True, postgresql_where=sa.text("status = 'active'"),
    )
    op.create_index(
        'uq_staff_memberships_owner', 'staff_memberships', ['practice_id'],
        unique=True, postgresql_where=sa.text("is_owner = TRUE"),
    )
    op.create_index('idx_staff_memberships_practice_status', 'staff_memberships', ['practice_id', 'status'])
    op.create_index('idx_staff_memberships_principal_status', 'staff_memberships', ['principal_id', 'status'])

    op.create_table(
        'physician_patient_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('practice_id', sa.Integer(), sa.ForeignKey('practices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('patient_id', sa.Integer(), sa.ForeignKey('patient_records.id', ondelete='CASCADE'), nullable=False),
        sa.Column('requested_by', sa.String(64), sa.ForeignKey('principals.id', ondelete='SET NULL'), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('reviewed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'cancelled')",
            name='ck_physician_patient_requests_status',
        ),
    )
    op.create_index('ix_physician_patient_requests_id', 'physician_patient_requests', ['id'])
    op.create_index(
        'uq_physician_patient_requests_pending_pair', 'physician_patient_requests', ['patient_id', 'practice_id'],
        unique=True, postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_index(
        'idx_physician_patient_requests_patient_status', 'physician_patient_requests', ['patient_id', 'status']
    )

    op.create_table(
        'patient_assignments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('patient_id', sa.Integer(), sa.ForeignKey('patient_records.id', ondelete='CASCADE'), nullable=False),
        sa.Column('practice_id', sa.Integer(), sa.ForeignKey('practices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assigned_by', sa.String(64), sa.ForeignKey('principals.id', ondelete='SET NULL'), nullable=True),
        sa.Column(
            'source_request_id', sa.Integer(),
            sa.ForeignKey('physician_patient_requests.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('assigned_date', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('status', sa.String(20), server_default='active', nullable=False),
        *_timestamps(),
        sa.CheckConstraint("status IN ('active', 'inactive')", name='ck_patient_assignments_status'),
    )
    op.create_index('ix_patient_assignments_id', 'patient_assignments', ['id'])
    op.create_index(
        'uq_patient_assignments_active_pair', 'patient_assignments', ['patient_id', 'practice_id'],
        unique=True, postgresql_where=sa.text("status = 'active'"),
    )
    op.create_index('idx_patient_assignments_practice_status', 'patient_assignments', ['practice_id', 'status'])
    op.create_index('idx_patient_assignments_source_request', 'patient_assignments', ['source_request_id'])

    op.create_table(
        'staff_invitations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('practice_id', sa.Integer(), sa.ForeignKey('practices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', sa.String(30), nullable=False),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('invitation_token', sa.String(255), nullable=False),
        sa.Column('invited_by', sa.String(64), sa.ForeignKey('principals.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('accepted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('pending', 'accepted', 'revoked')", name='ck_staff_invitations_status'),
    )
    op.create_index('ix_staff_invitations_id', 'staff_invitations', ['id'])
    op.create_index('ix_staff_invitations_invitation_token', 'staff_invitations', ['invitation_token'], unique=True)
    op.create_index('idx_staff_invitations_practice_status', 'staff_invitations', ['practice_id', 'status'])

    op.create_table(
        'practice_join_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('practice_id', sa.Integer(), sa.ForeignKey('practices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('principal_id', sa.String(64), sa.ForeignKey('principals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('requested_role', sa.String(30), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('reviewed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.String(64), sa.ForeignKey('principals.id', ondelete='SET NULL'), nullable=True),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='ck_practice_join_requests_status'),
    )
    op.create_index('ix_practice_join_requests_id', 'practice_join_requests', ['id'])
    op.create_index(
        'uq_practice_join_requests_pending_pair', 'practice_join_requests', ['principal_id', 'practice_id'],
        unique=True, postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    op.drop_table('practice_join_requests')
    op.drop_table('staff_invitations')
    op.drop_table('patient_assignments')
    op.drop_table('physician_patient_requests')
    op.drop_table('staff_memberships')
    op.drop_table('practices')
    op.drop_table('patient_records')
    op.drop_table('doctor_records')
    op.drop_table('principals')
