"""create room, match, problem, test_case, submission and submission_draft tables

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a2b3c4d5e6f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'room',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('room_code', sa.String(length=6), nullable=False),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('player1_id', sa.String(length=64), nullable=False),
        sa.Column('player2_id', sa.String(length=64), nullable=True),
        sa.Column('mode', sa.String(length=16), nullable=False),
        sa.Column('difficulty', sa.String(length=16), nullable=False),
        sa.Column('time_limit', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('locked_at', sa.DateTime(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_room_room_code', 'room', ['room_code'], unique=True)
    op.create_index('ix_room_status', 'room', ['status'], unique=False)

    op.create_table(
        'problem',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('difficulty', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('time_limit', sa.Float(), nullable=False),
        sa.Column('memory_limit', sa.Integer(), nullable=False),
        sa.Column('starter_code_python', sa.Text(), nullable=True),
        sa.Column('starter_code_cpp', sa.Text(), nullable=True),
        sa.Column('editorial_solution', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_problem_difficulty', 'problem', ['difficulty'], unique=False)

    op.create_table(
        'test_case',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('problem_id', sa.Integer(), nullable=False),
        sa.Column('input', sa.Text(), nullable=False),
        sa.Column('expected_output', sa.Text(), nullable=False),
        sa.Column('is_hidden', sa.Boolean(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['problem_id'], ['problem.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_test_case_problem_id', 'test_case', ['problem_id'], unique=False)

    op.create_table(
        'duel_match',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=False),
        sa.Column('problem_id', sa.Integer(), nullable=False),
        sa.Column('player1_id', sa.String(length=64), nullable=False),
        sa.Column('player2_id', sa.String(length=64), nullable=False),
        sa.Column('player1_score', sa.Integer(), nullable=True),
        sa.Column('player2_score', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['problem_id'], ['problem.id']),
        sa.ForeignKeyConstraint(['room_id'], ['room.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('room_id'),
    )

    op.create_table(
        'submission',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('problem_id', sa.Integer(), nullable=False),
        sa.Column('code', sa.Text(), nullable=False),
        sa.Column('language', sa.String(length=16), nullable=False),
        sa.Column('attempt', sa.Integer(), nullable=False),
        sa.Column('penalty_points', sa.Integer(), nullable=False),
        sa.Column('is_late', sa.Boolean(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.Column('evaluated_at', sa.DateTime(), nullable=True),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('passed_tests', sa.Integer(), nullable=True),
        sa.Column('total_tests', sa.Integer(), nullable=True),
        sa.Column('runtime_ms', sa.Integer(), nullable=True),
        sa.Column('memory_kb', sa.Integer(), nullable=True),
        sa.Column('test_results', sa.Text(), nullable=True),
        sa.Column('error', sa.String(length=32), nullable=True),
        sa.ForeignKeyConstraint(['match_id'], ['duel_match.id']),
        sa.ForeignKeyConstraint(['problem_id'], ['problem.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('match_id', 'user_id', 'attempt', name='uq_submission_attempt'),
    )
    op.create_index('ix_submission_match_id', 'submission', ['match_id'], unique=False)
    op.create_index('ix_submission_user_id', 'submission', ['user_id'], unique=False)

    op.create_table(
        'submission_draft',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('code', sa.Text(), nullable=False),
        sa.Column('language', sa.String(length=16), nullable=False),
        sa.Column('last_saved_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['match_id'], ['duel_match.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('match_id', 'user_id', name='uq_draft_owner'),
    )


def downgrade():
    op.drop_table('submission_draft')
    op.drop_index('ix_submission_user_id', table_name='submission')
    op.drop_index('ix_submission_match_id', table_name='submission')
    op.drop_table('submission')
    op.drop_table('duel_match')
    op.drop_index('ix_test_case_problem_id', table_name='test_case')
    op.drop_table('test_case')
    op.drop_index('ix_problem_difficulty', table_name='problem')
    op.drop_table('problem')
    op.drop_index('ix_room_status', table_name='room')
    op.drop_index('ix_room_room_code', table_name='room')
    op.drop_table('room')
