"""Per-attempt review: each exam question next to the student's graded answer.

Correctness is read from the stored answers (written when the attempt was
graded); nothing is re-marked here.
"""

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel
from sqlmodel import Session, select

from gradebook.models import BankQuestion, OnlineExam, OnlineExamAnswer, OnlineExamAttempt, OnlineExamQuestion
from gradebook.schemas import FILL_BLANK, QuestionOption, find_option, question_from_record
from gradebook.utils import percentage

NOT_ANSWERED = "Not answered"


class ReviewItem(BaseModel):
    question_id: int
    question_order: int
    marks: int
    question_type: str
    question_text: str
    options: List[QuestionOption]
    correct_answer: str
    student_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    marks_obtained: Optional[float] = None
    answer_text: str = NOT_ANSWERED


class ReviewStats(BaseModel):
    correct: int
    wrong: int
    skipped: int
    total_marks: int
    total_marks_obtained: float
    passing_marks: float
    percentage: float
    passed: bool


class ExamReview(BaseModel):
    attempt_id: int
    exam_title: str
    status: str
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    items: List[ReviewItem]
    stats: ReviewStats


def passing_threshold(exam: OnlineExam) -> float:
    """Configured passing marks, or half of the total when none is set."""
    if exam.passing_marks is not None:
        return exam.passing_marks
    return exam.total_marks * 0.5


def _review_item(placement: OnlineExamQuestion, question: BankQuestion, answer: Optional[OnlineExamAnswer]) -> ReviewItem:
    variant = question_from_record(question)
    student_answer = answer.student_answer if answer else None

    if not student_answer:
        answer_text = NOT_ANSWERED
    elif variant.question_type == FILL_BLANK:
        answer_text = student_answer
    else:
        option = find_option(variant, student_answer)
        answer_text = option.text if option and option.text else student_answer

    return ReviewItem(
        question_id=question.id,
        question_order=placement.question_order,
        marks=placement.marks,
        question_type=variant.question_type,
        question_text=variant.question_text,
        options=list(variant.options),
        correct_answer=variant.correct_answer,
        student_answer=student_answer,
        is_correct=answer.is_correct if answer else None,
        marks_obtained=answer.marks_obtained if answer else None,
        answer_text=answer_text,
    )


def assemble_review(
    attempt: OnlineExamAttempt,
    exam: OnlineExam,
    questions: Sequence[Tuple[OnlineExamQuestion, BankQuestion]],
    answers: Sequence[OnlineExamAnswer],
) -> ExamReview:
    """Join ordered exam questions with one attempt's answers."""
    by_question = {answer.question_id: answer for answer in answers}
    items = [
        _review_item(placement, question, by_question.get(question.id))
        for placement, question in questions
    ]

    obtained = attempt.total_marks_obtained or 0
    threshold = passing_threshold(exam)
    stats = ReviewStats(
        correct=sum(1 for item in items if item.is_correct is True),
        wrong=sum(1 for item in items if item.is_correct is False),
        skipped=sum(1 for item in items if item.student_answer is None),
        total_marks=exam.total_marks,
        total_marks_obtained=obtained,
        passing_marks=threshold,
        percentage=percentage(obtained, exam.total_marks),
        passed=obtained >= threshold,
    )
    return ExamReview(
        attempt_id=attempt.id,
        exam_title=exam.title,
        status=attempt.status,
        started_at=attempt.started_at,
        submitted_at=attempt.submitted_at,
        items=items,
        stats=stats,
    )


def load_exam_questions(session: Session, exam_id: int) -> List[Tuple[OnlineExamQuestion, BankQuestion]]:
    """Exam questions in display order, skipping placements whose bank row is gone."""
    placements = session.exec(
        select(OnlineExamQuestion)
        .where(OnlineExamQuestion.online_exam_id == exam_id)
        .order_by(OnlineExamQuestion.question_order, OnlineExamQuestion.id)
    ).all()
    pairs = []
    for placement in placements:
        question = session.get(BankQuestion, placement.question_id)
        if question is not None:
            pairs.append((placement, question))
    return pairs


def build_review(session: Session, attempt_id: int) -> ExamReview:
    attempt = session.get(OnlineExamAttempt, attempt_id)
    if not attempt:
        raise ValueError(f"Attempt with id={attempt_id} does not exist")
    exam = session.get(OnlineExam, attempt.online_exam_id)
    if not exam:
        raise ValueError(f"Exam with id={attempt.online_exam_id} does not exist")

    answers = session.exec(select(OnlineExamAnswer).where(OnlineExamAnswer.attempt_id == attempt_id)).all()
    return assemble_review(attempt, exam, load_exam_questions(session, exam.id), answers)


class ReviewNavigator:
    """Step through review items one at a time; moves past either end are ignored."""

    def __init__(self, review: ExamReview):
        self.items = review.items
        self.index = 0

    @property
    def current(self) -> Optional[ReviewItem]:
        return self.items[self.index] if self.items else None

    def go_to(self, index: int) -> Optional[ReviewItem]:
        self.index = max(0, min(index, len(self.items) - 1)) if self.items else 0
        return self.current

    def next(self) -> Optional[ReviewItem]:
        return self.go_to(self.index + 1)

    def previous(self) -> Optional[ReviewItem]:
        return self.go_to(self.index - 1)
