"""Initial migration - create all tables

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates all database tables for the Scholarship Portal:
- students: Student profiles keyed by identity-provider principal id
- applications: Scholarship applications with document locators and status
- admins: Allow-list of principals with administrator privilege

Also creates indexes for common query patterns.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Students Table ────────────────────────────────────────
    op.create_table(
        'students',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('full_name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('phone', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
    )

    # ── Applications Table ────────────────────────────────────
    op.create_table(
        'applications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('student_id', sa.String(36),
                  sa.ForeignKey('students.id'), nullable=False),
        sa.Column('desired_country', sa.Text(), nullable=False),
        sa.Column('desired_institution', sa.Text(), nullable=False),
        sa.Column('education_level', sa.Text(), nullable=False),
        sa.Column('field_of_study', sa.Text(), nullable=False),
        sa.Column('passport_url', sa.Text(), nullable=False),
        sa.Column('transcripts_url', sa.Text(), nullable=False),
        sa.Column('motivation_letter_url', sa.Text(), nullable=False),
        sa.Column('status', sa.String(8), nullable=False, server_default='Pending'),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "status IN ('Pending', 'Reviewed', 'Accepted', 'Rejected')",
            name='ck_applications_status',
        ),
    )

    # Indexes for common query patterns on applications
    op.create_index('ix_applications_student_id', 'applications', ['student_id'])
    op.create_index('ix_applications_status', 'applications', ['status'])
    op.create_index('ix_applications_created_at', 'applications', ['created_at'])

    # ── Admins Table ──────────────────────────────────────────
    op.create_table(
        'admins',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('full_name', sa.Text(), nullable=False),
        sa.Column('role', sa.Text(), nullable=False, server_default='admin'),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table('admins')
    op.drop_index('ix_applications_created_at', table_name='applications')
    op.drop_index('ix_applications_status', table_name='applications')
    op.drop_index('ix_applications_student_id', table_name='applications')
    op.drop_table('applications')
    op.drop_table('students')
