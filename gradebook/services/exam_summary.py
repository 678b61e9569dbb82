"""Class-wide statistics for one online exam."""

from collections import Counter
from typing import Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel
from sqlmodel import Session, select

from gradebook.models import BankQuestion, OnlineExam, OnlineExamAnswer, OnlineExamAttempt, ProctoringLog, Student
from gradebook.services.exam_review import load_exam_questions, passing_threshold
from gradebook.utils import percentage, round_half_up

SUBMITTED = "submitted"
UNKNOWN_STUDENT = "Unknown"

# (label, lower bound inclusive, upper bound exclusive)
GRADE_BANDS = (
    ("90-100%", 90, None),
    ("80-89%", 80, 90),
    ("70-79%", 70, 80),
    ("60-69%", 60, 70),
    ("<60%", None, 60),
)


class SummaryStats(BaseModel):
    total_students: int
    submitted: int
    passed: int
    pass_rate: float
    avg_score: float
    highest_score: float
    lowest_score: float


class GradeBucket(BaseModel):
    label: str
    count: int


class QuestionAnalytics(BaseModel):
    question_id: int
    question_text: str
    correct: int
    wrong: int
    skipped: int


class StudentRow(BaseModel):
    attempt_id: int
    student_id: int
    name: str
    email: str
    status: str
    score: float
    percentage: float
    result: str  # Passed | Failed
    violations: int
    time_taken_minutes: Optional[int] = None


class ExamSummary(BaseModel):
    exam_id: int
    exam_title: str
    total_marks: int
    passing_marks: float
    stats: SummaryStats
    grade_distribution: List[GradeBucket]
    question_analytics: List[QuestionAnalytics]
    violation_summary: Dict[str, int]
    students: List[StudentRow]


def _band_label(value: float) -> str:
    for label, low, high in GRADE_BANDS:
        if (low is None or value >= low) and (high is None or value < high):
            return label
    return GRADE_BANDS[-1][0]


def grade_distribution(percentages: Sequence[float]) -> List[GradeBucket]:
    """Count percentages per band; empty bands are left out."""
    counts = Counter(_band_label(value) for value in percentages)
    return [GradeBucket(label=label, count=counts[label]) for label, _, _ in GRADE_BANDS if counts[label]]


def summary_stats(attempts: Sequence[OnlineExamAttempt], threshold: float) -> SummaryStats:
    submitted = [a for a in attempts if a.status == SUBMITTED]
    passed = sum(1 for a in submitted if (a.total_marks_obtained or 0) >= threshold)
    # The numerator covers every attempt while the denominator counts only
    # submitted ones; unsubmitted attempts are expected to hold no marks.
    total_obtained = sum(a.total_marks_obtained or 0 for a in attempts)

    return SummaryStats(
        total_students=len(attempts),
        submitted=len(submitted),
        passed=passed,
        pass_rate=passed / len(submitted) * 100 if submitted else 0,
        avg_score=total_obtained / len(submitted) if submitted else 0,
        highest_score=max([a.total_marks_obtained or 0 for a in attempts] + [0]),
        lowest_score=min(a.total_marks_obtained or 0 for a in submitted) if submitted else 0,
    )


def question_analytics(
    questions: Sequence[BankQuestion],
    answers: Sequence[OnlineExamAnswer],
    attempt_count: int,
) -> List[QuestionAnalytics]:
    analytics = []
    for question in questions:
        matching = [a for a in answers if a.question_id == question.id]
        correct = sum(1 for a in matching if a.is_correct is True)
        wrong = sum(1 for a in matching if a.is_correct is False)
        analytics.append(
            QuestionAnalytics(
                question_id=question.id,
                question_text=question.question_text,
                correct=correct,
                wrong=wrong,
                skipped=max(0, attempt_count - correct - wrong),
            )
        )
    return analytics


def _student_row(
    attempt: OnlineExamAttempt,
    student: Optional[Student],
    total_marks: int,
    threshold: float,
    violations: int,
) -> StudentRow:
    score = attempt.total_marks_obtained or 0
    time_taken = None
    if attempt.submitted_at and attempt.started_at:
        time_taken = round_half_up((attempt.submitted_at - attempt.started_at).total_seconds() / 60)
    return StudentRow(
        attempt_id=attempt.id,
        student_id=attempt.student_id,
        name=student.full_name if student else UNKNOWN_STUDENT,
        email=(student.email or "") if student else "",
        status=attempt.status,
        score=score,
        percentage=percentage(score, total_marks),
        result="Passed" if score >= threshold else "Failed",
        violations=violations,
        time_taken_minutes=time_taken,
    )


def summarize_exam(
    exam: OnlineExam,
    attempts: Sequence[OnlineExamAttempt],
    students: Mapping[int, Student],
    logs: Sequence[ProctoringLog],
    questions: Sequence[BankQuestion],
    answers: Sequence[OnlineExamAnswer],
) -> ExamSummary:
    """Aggregate already-fetched rows; missing students show as "Unknown"."""
    threshold = passing_threshold(exam)
    violations_per_attempt = Counter(log.attempt_id for log in logs)

    return ExamSummary(
        exam_id=exam.id,
        exam_title=exam.title,
        total_marks=exam.total_marks,
        passing_marks=threshold,
        stats=summary_stats(attempts, threshold),
        grade_distribution=grade_distribution(
            [percentage(a.total_marks_obtained, exam.total_marks) for a in attempts]
        ),
        question_analytics=question_analytics(questions, answers, len(attempts)),
        violation_summary=dict(Counter(log.violation_type for log in logs)),
        students=[
            _student_row(
                attempt,
                students.get(attempt.student_id),
                exam.total_marks,
                threshold,
                violations_per_attempt[attempt.id],
            )
            for attempt in attempts
        ],
    )


def build_exam_summary(session: Session, exam_id: int) -> ExamSummary:
    exam = session.get(OnlineExam, exam_id)
    if not exam:
        raise ValueError(f"Exam with id={exam_id} does not exist")

    attempts = session.exec(
        select(OnlineExamAttempt)
        .where(OnlineExamAttempt.online_exam_id == exam_id)
        .order_by(OnlineExamAttempt.started_at, OnlineExamAttempt.id)
    ).all()
    attempt_ids = [a.id for a in attempts]

    students = {}
    for student_id in {a.student_id for a in attempts}:
        student = session.get(Student, student_id)
        if student is not None:
            students[student_id] = student

    logs: List[ProctoringLog] = []
    answers: List[OnlineExamAnswer] = []
    if attempt_ids:
        logs = session.exec(
            select(ProctoringLog)
            .where(ProctoringLog.attempt_id.in_(attempt_ids))
            .order_by(ProctoringLog.created_at.desc())
        ).all()
        answers = session.exec(
            select(OnlineExamAnswer).where(OnlineExamAnswer.attempt_id.in_(attempt_ids))
        ).all()

    questions = [question for _, question in load_exam_questions(session, exam_id)]
    return summarize_exam(exam, attempts, students, logs, questions, answers)
