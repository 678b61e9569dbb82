"""Online exam routes: submission, proctoring, per-attempt review and exam summary."""

from typing import Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from gradebook.database import get_session
from gradebook.deps import RequestContext, get_context
from gradebook.models import OnlineExam, OnlineExamAttempt
from gradebook.services.exam_grading import record_violation, submit_attempt
from gradebook.services.exam_review import ExamReview, build_review
from gradebook.services.exam_summary import ExamSummary, build_exam_summary

router = APIRouter()


def _get_exam(exam_id: int, session: Session, context: RequestContext) -> OnlineExam:
    """Get an online exam of the caller's school or raise 404."""
    exam = session.get(OnlineExam, exam_id)
    if not exam or exam.school_id != context.school_id:
        raise HTTPException(status_code=404, detail="Exam not found")
    return exam


def _get_attempt(attempt_id: int, session: Session, context: RequestContext) -> OnlineExamAttempt:
    attempt = session.get(OnlineExamAttempt, attempt_id)
    if not attempt:
        raise HTTPException(status_code=404, detail="Attempt not found")
    _get_exam(attempt.online_exam_id, session, context)
    return attempt


class SubmitAttemptIn(BaseModel):
    answers: Optional[Dict[int, Optional[str]]] = None


class ViolationIn(BaseModel):
    violation_type: str
    description: Optional[str] = None


@router.post("/attempts/{attempt_id}/submit")
def api_submit_attempt(
    attempt_id: int,
    payload: SubmitAttemptIn = Body(None),
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    _get_attempt(attempt_id, session, context)
    attempt = submit_attempt(session, attempt_id, payload.answers if payload else None)
    return {
        "attempt_id": attempt.id,
        "status": attempt.status,
        "submitted_at": attempt.submitted_at,
        "total_marks_obtained": attempt.total_marks_obtained,
    }


@router.post("/attempts/{attempt_id}/violations")
def api_record_violation(
    attempt_id: int,
    payload: ViolationIn = Body(...),
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    _get_attempt(attempt_id, session, context)
    return record_violation(session, attempt_id, payload.violation_type, payload.description)


@router.get("/attempts/{attempt_id}/review", response_model=ExamReview)
def api_review_attempt(
    attempt_id: int,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    _get_attempt(attempt_id, session, context)
    return build_review(session, attempt_id)


@router.get("/{exam_id}/summary", response_model=ExamSummary)
def api_exam_summary(
    exam_id: int,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    _get_exam(exam_id, session, context)
    return build_exam_summary(session, exam_id)
