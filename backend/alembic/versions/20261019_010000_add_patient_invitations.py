"""add_patient_invitations

Revision ID: 8c4e1a6b2d95
Revises: 3f2b9c1d7a10
Create Date: 2026-10-19 01:00:00.000000

Invitations that let staff reach patients who have not registered yet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8c4e1a6b2d95'
down_revision: Union[str, None] = '3f2b9c1d7a10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'patient_invitations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('practice_id', sa.Integer(), sa.ForeignKey('practices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('invitation_token', sa.String(255), nullable=False),
        sa.Column('invited_by', sa.String(64), sa.ForeignKey('principals.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('accepted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            'assignment_id', sa.Integer(),
            sa.ForeignKey('patient_assignments.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.CheckConstraint("status IN ('pending', 'accepted', 'revoked')", name='ck_patient_invitations_status'),
    )
    op.create_index('ix_patient_invitations_id', 'patient_invitations', ['id'])
    op.create_index('ix_patient_invitations_invitation_token', 'patient_invitations', ['invitation_token'], unique=True)
    op.create_index(
        'uq_patient_invitations_pending_email', 'patient_invitations', ['practice_id', 'email'],
        unique=True, postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    op.drop_table('patient_invitations')
