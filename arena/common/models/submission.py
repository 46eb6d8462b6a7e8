"""
Submission model for storing judged contest submissions.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import Base


class Submission(Base):
    """
    Submission entity.

    Rows are append-only: a row is written once, after judging has
    finished, and never updated. A re-judge writes a new row that
    points back at the original through ``rejudge_of``.
    """

    __tablename__ = "submissions"
    __table_args__ = (
        Index(
            "ix_submissions_contest_user_question",
            "contest_id",
            "user_id",
            "question_id"
        ),
    )

    submission_id: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
        index=True
    )
    contest_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("contests.contest_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    question_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("questions.question_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True
    )
    code: Mapped[str] = mapped_column(Text, nullable=False)
    language: Mapped[str] = mapped_column(String(20), nullable=False)

    verdict: Mapped[str] = mapped_column(String(30), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    passed_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0
    )
    total_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0
    )
    execution_time_ms: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0
    )
    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )
    failed_case: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True
    )
    rejudge_of: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True
    )

    # Wall clock time the request was admitted, not completion time
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True
    )
    judged_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<Submission(submission_id={self.submission_id}, "
            f"verdict={self.verdict})>"
        )
