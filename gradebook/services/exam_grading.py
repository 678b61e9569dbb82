"""Grading of online exam attempts and proctoring violation logging."""

import logging
from typing import Dict, Optional

from pydantic import BaseModel
from sqlmodel import Session, select

from gradebook.config import DEFAULT_TAB_SWITCH_LIMIT
from gradebook.models import BankQuestion, OnlineExam, OnlineExamAnswer, OnlineExamAttempt, OnlineExamQuestion, ProctoringLog, utcnow

logger = logging.getLogger(__name__)

SUBMITTED = "submitted"
TAB_SWITCH = "tab_switch"


class ViolationOutcome(BaseModel):
    log_id: int
    violation_type: str
    description: Optional[str]
    tab_switch_count: Optional[int] = None
    tab_switch_limit: Optional[int] = None
    auto_submitted: bool = False


def _get_open_attempt(session: Session, attempt_id: int) -> OnlineExamAttempt:
    attempt = session.get(OnlineExamAttempt, attempt_id)
    if not attempt:
        raise ValueError(f"Attempt with id={attempt_id} does not exist")
    if attempt.status == SUBMITTED:
        raise ValueError("This attempt has already been submitted")
    return attempt


def save_answers(session: Session, attempt_id: int, answers: Dict[int, Optional[str]]) -> None:
    """Upsert a student's answers without grading. Blank answers count as skipped."""
    for question_id, value in answers.items():
        value = value if value and value.strip() else None
        existing = session.exec(
            select(OnlineExamAnswer).where(
                (OnlineExamAnswer.attempt_id == attempt_id) & (OnlineExamAnswer.question_id == question_id)
            )
        ).first()
        if existing:
            existing.student_answer = value
            session.add(existing)
        else:
            session.add(OnlineExamAnswer(attempt_id=attempt_id, question_id=question_id, student_answer=value))


def submit_attempt(
    session: Session,
    attempt_id: int,
    answers: Optional[Dict[int, Optional[str]]] = None,
) -> OnlineExamAttempt:
    """Grade every stored answer and close the attempt.

    An answer is correct when it equals the bank question's correct answer
    exactly; a correct answer earns the marks assigned to the question in this
    exam. Skipped answers keep ``is_correct = None``.

    Raises:
        ValueError: if the attempt does not exist or was already submitted
    """
    attempt = _get_open_attempt(session, attempt_id)
    if answers:
        save_answers(session, attempt_id, answers)

    placements = session.exec(
        select(OnlineExamQuestion).where(OnlineExamQuestion.online_exam_id == attempt.online_exam_id)
    ).all()
    marks_by_question = {p.question_id: p.marks for p in placements}

    stored = session.exec(select(OnlineExamAnswer).where(OnlineExamAnswer.attempt_id == attempt_id)).all()
    total = 0
    for answer in stored:
        if answer.student_answer is None:
            answer.is_correct = None
            answer.marks_obtained = 0
        else:
            question = session.get(BankQuestion, answer.question_id)
            answer.is_correct = question is not None and question.correct_answer == answer.student_answer
            answer.marks_obtained = marks_by_question.get(answer.question_id, 0) if answer.is_correct else 0
        total += answer.marks_obtained
        session.add(answer)

    attempt.total_marks_obtained = total
    attempt.status = SUBMITTED
    attempt.submitted_at = utcnow()
    session.add(attempt)
    session.commit()
    session.refresh(attempt)

    logger.info("Attempt %s submitted with %s marks", attempt.id, total)
    return attempt


def record_violation(
    session: Session,
    attempt_id: int,
    violation_type: str,
    description: Optional[str] = None,
) -> ViolationOutcome:
    """Append a proctoring log entry for an in-progress attempt.

    Tab switches are counted per attempt. Once the count reaches the exam's
    limit on a proctored exam, the attempt is submitted on the student's
    behalf.
    """
    attempt = _get_open_attempt(session, attempt_id)
    exam = session.get(OnlineExam, attempt.online_exam_id)

    count = limit = None
    if violation_type == TAB_SWITCH:
        limit = exam.tab_switch_limit if exam and exam.tab_switch_limit is not None else DEFAULT_TAB_SWITCH_LIMIT
        previous = session.exec(
            select(ProctoringLog).where(
                (ProctoringLog.attempt_id == attempt_id) & (ProctoringLog.violation_type == TAB_SWITCH)
            )
        ).all()
        count = len(previous) + 1
        description = f"Tab switch detected ({count}/{limit})"

    log = ProctoringLog(
        attempt_id=attempt_id,
        student_id=attempt.student_id,
        violation_type=violation_type,
        description=description,
    )
    session.add(log)
    session.commit()
    session.refresh(log)
    logger.info("Attempt %s: %s violation logged", attempt_id, violation_type)

    auto_submitted = False
    if count is not None and exam is not None and exam.proctoring_enabled and count >= limit:
        logger.warning("Attempt %s reached the tab switch limit (%d), auto-submitting", attempt_id, limit)
        submit_attempt(session, attempt_id)
        auto_submitted = True

    return ViolationOutcome(
        log_id=log.id,
        violation_type=violation_type,
        description=description,
        tab_switch_count=count,
        tab_switch_limit=limit,
        auto_submitted=auto_submitted,
    )
