"""Final subject grade from manual, paper-exam and online-exam scores.

Each source is a percentage in [0, 100] with a fixed weight. Only sources the
student actually has contribute, and the weighted sum is divided by the sum of
the weights present, so a missing source never counts as zero.
"""

from statistics import mean
from typing import List, Optional, Sequence

from pydantic import BaseModel
from sqlmodel import Session, select

from gradebook.deps import RequestContext
from gradebook.models import Exam, ExamResult, Grade, GradeScale, OnlineExam, OnlineExamAttempt
from gradebook.utils import percentage, round_half_up

MANUAL_WEIGHT = 0.4
PAPER_EXAM_WEIGHT = 0.3
ONLINE_EXAM_WEIGHT = 0.3

# Used when a school has not configured its own scale
FALLBACK_SCALE = (("A", 90), ("B", 80), ("C", 70), ("D", 60))
FALLBACK_GRADE = "F"


class FinalGrade(BaseModel):
    student_id: int
    subject_id: int
    term: str
    manual: Optional[float] = None
    exam_avg: Optional[float] = None
    online_avg: Optional[float] = None
    final: int
    letter: str


def combine_scores(
    manual: Optional[float],
    exam_avg: Optional[float],
    online_avg: Optional[float],
) -> int:
    """Weighted mean over the sources present, rounded to a whole percentage."""
    present = [
        (value, weight)
        for value, weight in (
            (manual, MANUAL_WEIGHT),
            (exam_avg, PAPER_EXAM_WEIGHT),
            (online_avg, ONLINE_EXAM_WEIGHT),
        )
        if value is not None
    ]
    weight_total = sum(weight for _, weight in present)
    if not weight_total:
        return 0
    return round_half_up(sum(value * weight for value, weight in present) / weight_total)


def letter_grade(score: float, scale: Sequence[GradeScale] = ()) -> str:
    """Map a final percentage to a letter.

    With a custom scale, bands are checked from the highest ``min_score`` down
    and both bounds are inclusive. A score no band covers, or an empty scale,
    falls back to A/B/C/D at 90/80/70/60 and F below.
    """
    for entry in sorted(scale, key=lambda e: e.min_score, reverse=True):
        if entry.min_score <= score <= entry.max_score:
            return entry.grade
    for grade, threshold in FALLBACK_SCALE:
        if score >= threshold:
            return grade
    return FALLBACK_GRADE


def load_grade_scale(session: Session, school_id: int) -> List[GradeScale]:
    return session.exec(
        select(GradeScale).where(GradeScale.school_id == school_id).order_by(GradeScale.min_score.desc())
    ).all()


def manual_score(session: Session, student_id: int, subject_id: int, term: str) -> Optional[float]:
    """Most recently entered manual score for the term, if any."""
    grade = session.exec(
        select(Grade)
        .where(
            Grade.student_id == student_id,
            Grade.subject_id == subject_id,
            Grade.term == term,
            Grade.score.is_not(None),
        )
        .order_by(Grade.created_at.desc(), Grade.id.desc())
    ).first()
    return grade.score if grade else None


def paper_exam_average(session: Session, context: RequestContext, student_id: int, subject_id: int, term: str) -> Optional[float]:
    rows = session.exec(
        select(ExamResult, Exam).where(
            ExamResult.exam_id == Exam.id,
            ExamResult.student_id == student_id,
            Exam.subject_id == subject_id,
            Exam.term == term,
            Exam.school_id == context.school_id,
        )
    ).all()
    scores = [
        percentage(result.marks_obtained, exam.total_marks)
        for result, exam in rows
        if result.marks_obtained is not None and exam.total_marks
    ]
    return mean(scores) if scores else None


def online_exam_average(session: Session, context: RequestContext, student_id: int, subject_id: int, term: str) -> Optional[float]:
    rows = session.exec(
        select(OnlineExamAttempt, OnlineExam).where(
            OnlineExamAttempt.online_exam_id == OnlineExam.id,
            OnlineExamAttempt.student_id == student_id,
            OnlineExamAttempt.status == "submitted",
            OnlineExam.subject_id == subject_id,
            OnlineExam.term == term,
            OnlineExam.school_id == context.school_id,
        )
    ).all()
    scores = [
        percentage(attempt.total_marks_obtained, exam.total_marks)
        for attempt, exam in rows
        if exam.total_marks
    ]
    return mean(scores) if scores else None


def compute_final_grade(
    session: Session,
    context: RequestContext,
    student_id: int,
    subject_id: int,
    term: str,
) -> FinalGrade:
    manual = manual_score(session, student_id, subject_id, term)
    exam_avg = paper_exam_average(session, context, student_id, subject_id, term)
    online_avg = online_exam_average(session, context, student_id, subject_id, term)
    final = combine_scores(manual, exam_avg, online_avg)

    return FinalGrade(
        student_id=student_id,
        subject_id=subject_id,
        term=term,
        manual=manual,
        exam_avg=exam_avg,
        online_avg=online_avg,
        final=final,
        letter=letter_grade(final, load_grade_scale(session, context.school_id)),
    )
