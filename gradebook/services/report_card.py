"""Term report card: final grade per subject plus attendance."""

from typing import List, Optional

from pydantic import BaseModel
from sqlmodel import Session, select

from gradebook.deps import RequestContext
from gradebook.models import Attendance, Exam, ExamResult, Grade, OnlineExam, OnlineExamAttempt, Student, Subject
from gradebook.services.grade_engine import FinalGrade, compute_final_grade


class SubjectGrade(FinalGrade):
    subject_name: str


class AttendanceSummary(BaseModel):
    present: int
    total: int
    percentage: float


class ReportCard(BaseModel):
    student_id: int
    full_name: str
    admission_no: str
    term: str
    subjects: List[SubjectGrade]
    attendance: AttendanceSummary
    remarks: str = ""


def _term_subject_ids(session: Session, context: RequestContext, student_id: int, term: str) -> set:
    subject_ids = set(
        session.exec(select(Grade.subject_id).where(Grade.student_id == student_id, Grade.term == term)).all()
    )
    subject_ids.update(
        session.exec(
            select(Exam.subject_id).where(
                ExamResult.exam_id == Exam.id,
                ExamResult.student_id == student_id,
                Exam.term == term,
                Exam.school_id == context.school_id,
            )
        ).all()
    )
    subject_ids.update(
        session.exec(
            select(OnlineExam.subject_id).where(
                OnlineExamAttempt.online_exam_id == OnlineExam.id,
                OnlineExamAttempt.student_id == student_id,
                OnlineExam.term == term,
                OnlineExam.school_id == context.school_id,
            )
        ).all()
    )
    return subject_ids


def attendance_summary(session: Session, student_id: int) -> AttendanceSummary:
    records = session.exec(select(Attendance).where(Attendance.student_id == student_id)).all()
    present = sum(1 for r in records if r.status == "present")
    total = len(records) or 1
    return AttendanceSummary(present=present, total=total, percentage=round(present / total * 100, 1))


def _term_remarks(session: Session, student_id: int, term: str) -> str:
    results = session.exec(
        select(ExamResult)
        .where(ExamResult.exam_id == Exam.id, ExamResult.student_id == student_id, Exam.term == term)
        .order_by(ExamResult.recorded_at, ExamResult.id)
    ).all()
    for result in results:
        if result.remarks and result.remarks.strip():
            return result.remarks.strip()
    return ""


def build_report_card(session: Session, context: RequestContext, student: Student, term: str) -> ReportCard:
    subjects: List[SubjectGrade] = []
    for subject_id in _term_subject_ids(session, context, student.id, term):
        subject: Optional[Subject] = session.get(Subject, subject_id)
        final = compute_final_grade(session, context, student.id, subject_id, term)
        subjects.append(SubjectGrade(subject_name=subject.name if subject else "Unknown", **final.model_dump()))
    subjects.sort(key=lambda s: s.subject_name.lower())

    return ReportCard(
        student_id=student.id,
        full_name=student.full_name,
        admission_no=student.admission_no,
        term=term,
        subjects=subjects,
        attendance=attendance_summary(session, student.id),
        remarks=_term_remarks(session, student.id, term),
    )
