"""Final grade and report card routes."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from gradebook.database import get_session
from gradebook.deps import RequestContext, get_context
from gradebook.models import Student, Subject
from gradebook.services.grade_engine import FinalGrade, compute_final_grade
from gradebook.services.report_card import ReportCard, build_report_card

router = APIRouter()


def _get_student(student_id: int, session: Session, context: RequestContext) -> Student:
    student = session.get(Student, student_id)
    if not student or student.school_id != context.school_id:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


@router.get("/students/{student_id}/final", response_model=FinalGrade)
def api_final_grade(
    student_id: int,
    subject_id: int = Query(...),
    term: str = Query(..., min_length=1),
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    _get_student(student_id, session, context)
    subject = session.get(Subject, subject_id)
    if not subject or subject.school_id != context.school_id:
        raise HTTPException(status_code=404, detail="Subject not found")
    return compute_final_grade(session, context, student_id, subject_id, term)


@router.get("/students/{student_id}/report-card", response_model=ReportCard)
def api_report_card(
    student_id: int,
    term: str = Query(..., min_length=1),
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    student = _get_student(student_id, session, context)
    return build_report_card(session, context, student, term)
