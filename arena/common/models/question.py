"""
Question and test case models.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .base import Base

if TYPE_CHECKING:
    from .contest import Contest


class Question(Base):
    """
    Contest question.

    Carries the point value awarded for an accepted submission
    and the resource limits forwarded to the execution service.
    """

    __tablename__ = "questions"

    question_id: Mapped[str] = mapped_column(
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
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=""
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    time_limit_seconds: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=2.0
    )
    memory_limit_mb: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=256
    )
    order_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0
    )
    float_tolerance: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # Relationships
    contest: Mapped["Contest"] = relationship(
        "Contest",
        back_populates="questions"
    )
    test_cases: Mapped[list["TestCase"]] = relationship(
        "TestCase",
        back_populates="question",
        order_by="TestCase.order_index",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Question(question_id={self.question_id})>"


class TestCase(Base):
    """
    One input/expected-output pair with a point weight.

    Sample cases are visible to solvers and used by practice runs;
    hidden cases are only used for final grading.
    """

    __tablename__ = "test_cases"
    __test__ = False

    test_case_id: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
        index=True
    )
    question_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("questions.question_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    input: Mapped[str] = mapped_column(Text, nullable=False, default="")
    expected_output: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=""
    )
    points: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0
    )
    is_sample: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False
    )
    is_hidden: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True
    )
    order_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0
    )

    question: Mapped["Question"] = relationship(
        "Question",
        back_populates="test_cases"
    )

    def __repr__(self) -> str:
        return (
            f"<TestCase(test_case_id={self.test_case_id}, "
            f"sample={self.is_sample})>"
        )
