"""
Contest and participant models.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .base import Base

if TYPE_CHECKING:
    from .question import Question


class Contest(Base):
    """
    Contest entity.

    Owns a time window that the contest gate enforces, a
    visibility flag and an optional participant cap.
    """

    __tablename__ = "contests"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_contest_window"),
    )

    contest_id: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
        index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=""
    )
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False
    )
    end_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False
    )
    visibility: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="public"
    )
    access_code: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True
    )
    participant_cap: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True
    )
    created_by: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # Relationships
    questions: Mapped[list["Question"]] = relationship(
        "Question",
        back_populates="contest",
        order_by="Question.order_index",
        cascade="all, delete-orphan"
    )
    participants: Mapped[list["Participant"]] = relationship(
        "Participant",
        back_populates="contest",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Contest(contest_id={self.contest_id})>"


class Participant(Base):
    """A user registered to a contest."""

    __tablename__ = "contest_participants"
    __table_args__ = (
        UniqueConstraint("contest_id", "user_id", name="uq_participant"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )
    contest_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("contests.contest_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    contest: Mapped["Contest"] = relationship(
        "Contest",
        back_populates="participants"
    )

    def __repr__(self) -> str:
        return (
            f"<Participant(contest_id={self.contest_id}, "
            f"user_id={self.user_id})>"
        )
