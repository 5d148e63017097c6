"""create scheduling tables

Revision ID: a3c91e5d7b20
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a3c91e5d7b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Profiles
    op.create_table('tutor_profiles',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('display_name', sa.String(length=200), nullable=True),
    sa.Column('department', sa.String(length=100), nullable=True),
    sa.Column('faculty', sa.String(length=100), nullable=True),
    sa.Column('expertise', sa.JSON(), nullable=False),
    sa.Column('subjects', sa.JSON(), nullable=False),
    sa.Column('teaching_style', sa.String(length=200), nullable=True),
    sa.Column('availability', sa.JSON(), nullable=False),
    sa.Column('average_rating', sa.Float(), nullable=False, server_default='0'),
    sa.Column('completed_sessions', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('total_sessions', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('average_rating >= 0 AND average_rating <= 5'),
    sa.PrimaryKeyConstraint('id')
    )

    op.create_table('student_profiles',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('display_name', sa.String(length=200), nullable=True),
    sa.Column('department', sa.String(length=100), nullable=True),
    sa.Column('faculty', sa.String(length=100), nullable=True),
    sa.Column('learning_style', sa.String(length=50), nullable=True),
    sa.Column('learning_needs', sa.JSON(), nullable=False),
    sa.Column('schedule_preference', sa.JSON(), nullable=False),
    sa.Column('completed_sessions', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('training_points', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )

    # Sessions
    op.create_table('tutoring_sessions',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('tutor_id', sa.String(length=36), nullable=False),
    sa.Column('student_id', sa.String(length=36), nullable=True),
    sa.Column('title', sa.String(length=200), nullable=False),
    sa.Column('subject', sa.String(length=100), nullable=True),
    sa.Column('is_open', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('max_participants', sa.Integer(), nullable=False, server_default='1'),
    sa.Column('registered_count', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('scheduled_date', sa.Date(), nullable=False),
    sa.Column('start_time', sa.Time(), nullable=False),
    sa.Column('end_time', sa.Time(), nullable=False),
    sa.Column('duration_minutes', sa.Integer(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
    sa.Column('auto_completed', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('cancelled_by', sa.String(length=36), nullable=True),
    sa.Column('cancellation_reason', sa.String(length=500), nullable=True),
    sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('start_time < end_time', name='ck_sessions_window'),
    sa.CheckConstraint('max_participants >= 1', name='ck_sessions_max_participants'),
    sa.CheckConstraint(
        'registered_count >= 0 AND registered_count <= max_participants',
        name='ck_sessions_capacity'
    ),
    sa.ForeignKeyConstraint(['tutor_id'], ['tutor_profiles.id'], ondelete='RESTRICT'),
    sa.ForeignKeyConstraint(['student_id'], ['student_profiles.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_sessions_tutor_date', 'tutoring_sessions', ['tutor_id', 'scheduled_date'], unique=False)
    op.create_index('idx_sessions_student_date', 'tutoring_sessions', ['student_id', 'scheduled_date'], unique=False)
    op.create_index('idx_sessions_status_date', 'tutoring_sessions', ['status', 'scheduled_date'], unique=False)

    op.create_table('session_registrations',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('session_id', sa.String(length=36), nullable=False),
    sa.Column('student_id', sa.String(length=36), nullable=False),
    sa.Column('registered_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['session_id'], ['tutoring_sessions.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['student_id'], ['student_profiles.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('session_id', 'student_id', name='uq_registration_session_student')
    )
    op.create_index('idx_registrations_student', 'session_registrations', ['student_id'], unique=False)

    # Side tables
    op.create_table('training_point_entries',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('student_id', sa.String(length=36), nullable=False),
    sa.Column('points', sa.Integer(), nullable=False),
    sa.Column('reason', sa.String(length=300), nullable=False),
    sa.Column('session_id', sa.String(length=36), nullable=True),
    sa.Column('awarded_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['student_id'], ['student_profiles.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_training_points_student', 'training_point_entries', ['student_id'], unique=False)

    op.create_table('notifications',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=False),
    sa.Column('event_type', sa.String(length=50), nullable=False),
    sa.Column('payload', sa.JSON(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_notifications_user', 'notifications', ['user_id', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_notifications_user', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('idx_training_points_student', table_name='training_point_entries')
    op.drop_table('training_point_entries')
    op.drop_index('idx_registrations_student', table_name='session_registrations')
    op.drop_table('session_registrations')
    op.drop_index('idx_sessions_status_date', table_name='tutoring_sessions')
    op.drop_index('idx_sessions_student_date', table_name='tutoring_sessions')
    op.drop_index('idx_sessions_tutor_date', table_name='tutoring_sessions')
    op.drop_table('tutoring_sessions')
    op.drop_table('student_profiles')
    op.drop_table('tutor_profiles')
