"""
Leaderboard entry model.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import Base


class LeaderboardEntry(Base):
    """
    Denormalized standings row for one (contest, user).

    Derived from the user's best submission per question and
    recomputed whenever one of their submissions lands.
    """

    __tablename__ = "leaderboard_entries"
    __table_args__ = (
        UniqueConstraint("contest_id", "user_id", name="uq_leaderboard_user"),
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
    total_score: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0
    )
    problems_solved: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0
    )
    # Submission time at which total_score was first reached
    score_reached_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    rank: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<LeaderboardEntry(contest_id={self.contest_id}, "
            f"user_id={self.user_id}, rank={self.rank})>"
        )
