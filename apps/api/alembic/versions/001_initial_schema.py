"""initial schema: users, conversations, workouts

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        'user_account',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False, unique=True),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('image', sa.Text(), nullable=True),
    )

    op.create_table(
        'conversation',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('messages', JSONType, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['user_account.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_conversation_user_id', 'conversation', ['user_id'])
    op.create_index('ix_conversation_user_updated', 'conversation', ['user_id', 'updated_at'])

    op.create_table(
        'workout',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['user_account.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_workout_user_date', 'workout', ['user_id', 'date'])

    op.create_table(
        'workout_exercise',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('workout_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['workout_id'], ['workout.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_workout_exercise_workout_id', 'workout_exercise', ['workout_id'])

    op.create_table(
        'workout_set',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('exercise_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('set_number', sa.Integer(), nullable=True),
        sa.Column('repetitions', sa.Integer(), nullable=True),
        sa.Column('weight_kg', sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(['exercise_id'], ['workout_exercise.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_workout_set_exercise_id', 'workout_set', ['exercise_id'])


def downgrade() -> None:
    op.drop_index('ix_workout_set_exercise_id', table_name='workout_set')
    op.drop_table('workout_set')
    op.drop_index('ix_workout_exercise_workout_id', table_name='workout_exercise')
    op.drop_table('workout_exercise')
    op.drop_index('ix_workout_user_date', table_name='workout')
    op.drop_table('workout')
    op.drop_index('ix_conversation_user_updated', table_name='conversation')
    op.drop_index('ix_conversation_user_id', table_name='conversation')
    op.drop_table('conversation')
    op.drop_table('user_account')
