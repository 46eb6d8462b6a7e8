"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "contests",
        sa.Column("contest_id", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("visibility", sa.String(length=20), nullable=False),
        sa.Column("access_code", sa.String(length=100), nullable=True),
        sa.Column("participant_cap", sa.Integer(), nullable=True),
        sa.Column("created_by", sa.String(length=50), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False
        ),
        sa.CheckConstraint("end_time > start_time", name="ck_contest_window"),
        sa.PrimaryKeyConstraint("contest_id")
    )
    op.create_index(
        op.f("ix_contests_contest_id"),
        "contests",
        ["contest_id"],
        unique=False
    )

    op.create_table(
        "contest_participants",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("contest_id", sa.String(length=50), nullable=False),
        sa.Column("user_id", sa.String(length=50), nullable=False),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False
        ),
        sa.ForeignKeyConstraint(
            ["contest_id"],
            ["contests.contest_id"],
            ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("contest_id", "user_id", name="uq_participant")
    )
    op.create_index(
        op.f("ix_contest_participants_contest_id"),
        "contest_participants",
        ["contest_id"],
        unique=False
    )
    op.create_index(
        op.f("ix_contest_participants_user_id"),
        "contest_participants",
        ["user_id"],
        unique=False
    )

    op.create_table(
        "questions",
        sa.Column("question_id", sa.String(length=50), nullable=False),
        sa.Column("contest_id", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("time_limit_seconds", sa.Float(), nullable=False),
        sa.Column("memory_limit_mb", sa.Integer(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("float_tolerance", sa.Float(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False
        ),
        sa.ForeignKeyConstraint(
            ["contest_id"],
            ["contests.contest_id"],
            ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("question_id")
    )
    op.create_index(
        op.f("ix_questions_question_id"),
        "questions",
        ["question_id"],
        unique=False
    )
    op.create_index(
        op.f("ix_questions_contest_id"),
        "questions",
        ["contest_id"],
        unique=False
    )

    op.create_table(
        "test_cases",
        sa.Column("test_case_id", sa.String(length=50), nullable=False),
        sa.Column("question_id", sa.String(length=50), nullable=False),
        sa.Column("input", sa.Text(), nullable=False),
        sa.Column("expected_output", sa.Text(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("is_sample", sa.Boolean(), nullable=False),
        sa.Column("is_hidden", sa.Boolean(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["question_id"],
            ["questions.question_id"],
            ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("test_case_id")
    )
    op.create_index(
        op.f("ix_test_cases_test_case_id"),
        "test_cases",
        ["test_case_id"],
        unique=False
    )
    op.create_index(
        op.f("ix_test_cases_question_id"),
        "test_cases",
        ["question_id"],
        unique=False
    )

    op.create_table(
        "submissions",
        sa.Column("submission_id", sa.String(length=50), nullable=False),
        sa.Column("contest_id", sa.String(length=50), nullable=False),
        sa.Column("question_id", sa.String(length=50), nullable=False),
        sa.Column("user_id", sa.String(length=50), nullable=False),
        sa.Column("code", sa.Text(), nullable=False),
        sa.Column("language", sa.String(length=20), nullable=False),
        sa.Column("verdict", sa.String(length=30), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("passed_count", sa.Integer(), nullable=False),
        sa.Column("total_count", sa.Integer(), nullable=False),
        sa.Column("execution_time_ms", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("failed_case", sa.Integer(), nullable=True),
        sa.Column("rejudge_of", sa.String(length=50), nullable=True),
        sa.Column(
            "submitted_at",
            sa.DateTime(timezone=True),
            nullable=False
        ),
        sa.Column(
            "judged_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False
        ),
        sa.ForeignKeyConstraint(
            ["contest_id"],
            ["contests.contest_id"],
            ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["question_id"],
            ["questions.question_id"],
            ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("submission_id")
    )
    op.create_index(
        op.f("ix_submissions_submission_id"),
        "submissions",
        ["submission_id"],
        unique=False
    )
    op.create_index(
        op.f("ix_submissions_contest_id"),
        "submissions",
        ["contest_id"],
        unique=False
    )
    op.create_index(
        op.f("ix_submissions_question_id"),
        "submissions",
        ["question_id"],
        unique=False
    )
    op.create_index(
        op.f("ix_submissions_user_id"),
        "submissions",
        ["user_id"],
        unique=False
    )
    op.create_index(
        op.f("ix_submissions_submitted_at"),
        "submissions",
        ["submitted_at"],
        unique=False
    )
    op.create_index(
        "ix_submissions_contest_user_question",
        "submissions",
        ["contest_id", "user_id", "question_id"],
        unique=False
    )

    op.create_table(
        "leaderboard_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("contest_id", sa.String(length=50), nullable=False),
        sa.Column("user_id", sa.String(length=50), nullable=False),
        sa.Column("total_score", sa.Integer(), nullable=False),
        sa.Column("problems_solved", sa.Integer(), nullable=False),
        sa.Column(
            "score_reached_at",
            sa.DateTime(timezone=True),
            nullable=True
        ),
        sa.Column("rank", sa.Integer(), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False
        ),
        sa.ForeignKeyConstraint(
            ["contest_id"],
            ["contests.contest_id"],
            ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "contest_id",
            "user_id",
            name="uq_leaderboard_user"
        )
    )
    op.create_index(
        op.f("ix_leaderboard_entries_contest_id"),
        "leaderboard_entries",
        ["contest_id"],
        unique=False
    )
    op.create_index(
        op.f("ix_leaderboard_entries_user_id"),
        "leaderboard_entries",
        ["user_id"],
        unique=False
    )


def downgrade() -> None:
    op.drop_table("leaderboard_entries")
    op.drop_table("submissions")
    op.drop_table("test_cases")
    op.drop_table("questions")
    op.drop_table("contest_participants")
    op.drop_table("contests")
