"""
Contest catalog access and participation.

Contest authoring is owned by the surrounding platform; the write
helpers here exist for seeding and operator tooling and validate the
invariants the judge relies on.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from common.exceptions import (
    InvalidAccessCodeError,
    NotFoundError,
    ParticipantLimitError,
    ValidationError,
)
from common.models import Contest, Participant, Question, TestCase
from common.timeutils import as_utc

logger = logging.getLogger(__name__)

VISIBILITIES = ("public", "private")


def generate_contest_id() -> str:
    """Generate unique contest ID."""
    return f"ctst-{uuid.uuid4().hex[:8]}"


def generate_question_id() -> str:
    """Generate unique question ID."""
    return f"q-{uuid.uuid4().hex[:8]}"


def generate_test_case_id() -> str:
    """Generate unique test case ID."""
    return f"tc-{uuid.uuid4().hex[:8]}"


def create_contest(
    db: Session,
    title: str,
    start_time: datetime,
    end_time: datetime,
    description: str = "",
    visibility: str = "public",
    access_code: Optional[str] = None,
    participant_cap: Optional[int] = None,
    created_by: Optional[str] = None
) -> Contest:
    """
    Create a contest.

    Raises:
        ValidationError: If the window or visibility is invalid
    """
    if as_utc(end_time) <= as_utc(start_time):
        raise ValidationError("Contest end time must be after start time")
    if visibility not in VISIBILITIES:
        raise ValidationError(f"Unknown visibility: {visibility}")
    if visibility == "private" and not access_code:
        raise ValidationError("Private contests require an access code")
    if participant_cap is not None and participant_cap < 1:
        raise ValidationError("Participant cap must be positive")

    contest = Contest(
        contest_id=generate_contest_id(),
        title=title,
        description=description,
        start_time=as_utc(start_time),
        end_time=as_utc(end_time),
        visibility=visibility,
        access_code=access_code,
        participant_cap=participant_cap,
        created_by=created_by
    )
    db.add(contest)
    db.commit()
    db.refresh(contest)

    logger.info(f"Created contest {contest.contest_id}: {title}")
    return contest


def add_question(
    db: Session,
    contest_id: str,
    title: str,
    points: int,
    description: str = "",
    time_limit_seconds: float = 2.0,
    memory_limit_mb: int = 256,
    order_index: Optional[int] = None,
    float_tolerance: Optional[float] = None
) -> Question:
    """
    Add a question to a contest.

    Raises:
        NotFoundError: If the contest does not exist
        ValidationError: If points or limits are not positive
    """
    get_contest(db, contest_id)
    if points < 1:
        raise ValidationError("Question points must be at least 1")
    if time_limit_seconds <= 0 or memory_limit_mb <= 0:
        raise ValidationError("Time and memory limits must be positive")
    if float_tolerance is not None and float_tolerance < 0:
        raise ValidationError("Float tolerance must not be negative")

    if order_index is None:
        order_index = db.query(func.count(Question.question_id)).filter(
            Question.contest_id == contest_id
        ).scalar() or 0

    question = Question(
        question_id=generate_question_id(),
        contest_id=contest_id,
        title=title,
        description=description,
        points=points,
        time_limit_seconds=time_limit_seconds,
        memory_limit_mb=memory_limit_mb,
        order_index=order_index,
        float_tolerance=float_tolerance
    )
    db.add(question)
    db.commit()
    db.refresh(question)

    logger.info(
        f"Added question {question.question_id} ({points} pts) "
        f"to contest {contest_id}"
    )
    return question


def add_test_case(
    db: Session,
    question_id: str,
    input: str,
    expected_output: str,
    points: int = 0,
    is_sample: bool = False,
    is_hidden: Optional[bool] = None,
    order_index: Optional[int] = None
) -> TestCase:
    """
    Add a test case to a question.

    Sample cases default to visible, all other cases to hidden.

    Raises:
        NotFoundError: If the question does not exist
        ValidationError: If the weight is negative, or the question's
            test case weights would exceed its points
    """
    question = get_question(db, question_id)
    if points < 0:
        raise ValidationError("Test case points must not be negative")
    if is_hidden is None:
        is_hidden = not is_sample
    if is_sample and is_hidden:
        raise ValidationError("A test case cannot be both sample and hidden")

    allocated = db.query(func.coalesce(func.sum(TestCase.points), 0)).filter(
        TestCase.question_id == question_id
    ).scalar()
    if allocated + points > question.points:
        raise ValidationError(
            f"Test case weights ({allocated + points}) would exceed "
            f"question points ({question.points})"
        )

    if order_index is None:
        order_index = db.query(func.count(TestCase.test_case_id)).filter(
            TestCase.question_id == question_id
        ).scalar() or 0

    test_case = TestCase(
        test_case_id=generate_test_case_id(),
        question_id=question_id,
        input=input,
        expected_output=expected_output,
        points=points,
        is_sample=is_sample,
        is_hidden=is_hidden,
        order_index=order_index
    )
    db.add(test_case)
    db.commit()
    db.refresh(test_case)
    return test_case


def get_contest(db: Session, contest_id: str) -> Contest:
    """
    Retrieve contest by ID.

    Raises:
        NotFoundError: If the contest does not exist
    """
    contest = db.query(Contest).filter(
        Contest.contest_id == contest_id
    ).first()
    if contest is None:
        raise NotFoundError(f"Contest {contest_id} not found")
    return contest


def get_question(db: Session, question_id: str) -> Question:
    """
    Retrieve question by ID.

    Raises:
        NotFoundError: If the question does not exist
    """
    question = db.query(Question).filter(
        Question.question_id == question_id
    ).first()
    if question is None:
        raise NotFoundError(f"Question {question_id} not found")
    return question


def get_test_cases(db: Session, question_id: str) -> list[TestCase]:
    """All test cases of a question in their defined order."""
    return db.query(TestCase).filter(
        TestCase.question_id == question_id
    ).order_by(TestCase.order_index, TestCase.test_case_id).all()


def is_participant(db: Session, contest_id: str, user_id: str) -> bool:
    return db.query(Participant).filter(
        Participant.contest_id == contest_id,
        Participant.user_id == user_id
    ).first() is not None


def join_contest(
    db: Session,
    contest_id: str,
    user_id: str,
    access_code: Optional[str] = None
) -> bool:
    """
    Register a user to a contest.

    Returns:
        bool: True if the user was newly registered, False if already in

    Raises:
        NotFoundError: If the contest does not exist
        InvalidAccessCodeError: Wrong access code for a private contest
        ParticipantLimitError: The participant cap has been reached
    """
    # Row lock keeps the cap check and the insert together
    contest = db.query(Contest).filter(
        Contest.contest_id == contest_id
    ).with_for_update().first()
    if contest is None:
        raise NotFoundError(f"Contest {contest_id} not found")

    if is_participant(db, contest_id, user_id):
        return False

    if contest.visibility == "private" and contest.access_code != access_code:
        raise InvalidAccessCodeError("Invalid access code")

    if contest.participant_cap is not None:
        joined = db.query(func.count(Participant.id)).filter(
            Participant.contest_id == contest_id
        ).scalar()
        if joined >= contest.participant_cap:
            raise ParticipantLimitError(
                f"Contest {contest_id} is full "
                f"({contest.participant_cap} participants)"
            )

    db.add(Participant(contest_id=contest_id, user_id=user_id))
    try:
        db.commit()
    except IntegrityError:
        # Concurrent join of the same user
        db.rollback()
        return False

    logger.info(f"User {user_id} joined contest {contest_id}")
    return True
