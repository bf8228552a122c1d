"""Initial schema - users, submissions, versions, attendees, audit log

Revision ID: 0001
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Users table
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('institution', sa.String(255), nullable=True),
        sa.Column('role', sa.String(50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('verification_status', sa.String(50), nullable=False, server_default='not_submitted'),
        sa.Column('id_card_url', sa.Text(), nullable=True),
        sa.Column('payment_receipt_image_url', sa.Text(), nullable=True),
        sa.Column('verification_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('verified_by', sa.Uuid(), nullable=True),
        sa.Column('last_document_upload_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Administrator registry
    op.create_table(
        'administrators',
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('granted_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Submissions table
    op.create_table(
        'submissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('owner_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reference_number', sa.String(50), nullable=False, unique=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('authors', sa.JSON(), nullable=False),
        sa.Column('submission_type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(50), nullable=False, server_default='pending'),
        sa.Column('current_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('pdf_url', sa.Text(), nullable=False),
        sa.Column('last_revision_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('review_comments', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.Uuid(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_status', sa.String(50), nullable=False, server_default='unpaid'),
        sa.Column('payment_txn_id', sa.String(64), nullable=True, unique=True),
        sa.Column('payment_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_gateway_status', sa.String(50), nullable=True),
        sa.Column('payment_initiated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_failed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_frontend_url', sa.Text(), nullable=True),
        sa.Column('receipt_number', sa.String(100), nullable=True, unique=True),
        sa.Column('receipt_generated_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_submissions_owner_id', 'submissions', ['owner_id'])
    op.create_index('ix_submissions_status', 'submissions', ['status'])
    op.create_index('ix_submissions_owner_type', 'submissions', ['owner_id', 'submission_type'])

    # Archived versions (append-only)
    op.create_table(
        'submission_versions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('submission_id', sa.Uuid(), sa.ForeignKey('submissions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('file_url', sa.Text(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('admin_comments', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.Uuid(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('archived_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_submission_versions_submission_id', 'submission_versions', ['submission_id'])
    op.create_index(
        'ix_submission_versions_submission_version',
        'submission_versions',
        ['submission_id', 'version'],
        unique=True,
    )

    # Reference number counter
    op.create_table(
        'reference_counters',
        sa.Column('name', sa.String(50), primary_key=True),
        sa.Column('last_number', sa.Integer(), nullable=False, server_default='0'),
    )

    # Attendees table
    op.create_table(
        'attendees',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(10), nullable=False),
        sa.Column('organization', sa.String(255), nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('txn_id', sa.String(64), nullable=False, unique=True),
        sa.Column('payment_type', sa.String(50), nullable=False, server_default='attendee_registration'),
        sa.Column('payment_status', sa.String(50), nullable=False, server_default='pending'),
        sa.Column('payment_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_gateway_status', sa.String(50), nullable=True),
        sa.Column('payment_initiated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_failed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_frontend_url', sa.Text(), nullable=True),
        sa.Column('receipt_number', sa.String(100), nullable=True, unique=True),
        *_timestamps(),
    )
    op.create_index('ix_attendees_email', 'attendees', ['email'])
    op.create_index('ix_attendees_email_status', 'attendees', ['email', 'payment_status'])

    # Event log (append-only)
    op.create_table(
        'event_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_event_logs_event_type', 'event_logs', ['event_type'])
    op.create_index('ix_event_logs_entity_id', 'event_logs', ['entity_id'])
    op.create_index('ix_event_logs_user_id', 'event_logs', ['user_id'])
    op.create_index('ix_event_logs_created_at', 'event_logs', ['created_at'])
    op.create_index('ix_event_logs_entity', 'event_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_event_logs_type_time', 'event_logs', ['event_type', 'created_at'])


def downgrade() -> None:
    op.drop_table('event_logs')
    op.drop_table('attendees')
    op.drop_table('reference_counters')
    op.drop_table('submission_versions')
    op.drop_table('submissions')
    op.drop_table('administrators')
    op.drop_table('users')
