"""
Database models package.

Exports all SQLAlchemy models for use across the application.
"""

from .base import Base
from .contest import Contest, Participant
from .leaderboard import LeaderboardEntry
from .question import Question, TestCase
from .submission import Submission

__all__ = [
    "Base",
    "Contest",
    "LeaderboardEntry",
    "Participant",
    "Question",
    "Submission",
    "TestCase",
]
