"""SQLModel models for the school gradebook.

Tables mirror the hosted store the school management front-end talks to.
Every tenant-owned row carries a ``school_id``; question-bank rows also carry
``created_by`` so exports can be scoped to their author.
"""

from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class School(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    created_at: datetime = Field(default_factory=utcnow)


class Subject(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    school_id: int = Field(foreign_key="school.id")
    name: str
    code: Optional[str] = None


class Student(SQLModel, table=True):
    """Student profile; name and email come from the linked account."""

    __table_args__ = (
        UniqueConstraint("school_id", "admission_no", name="uq_student_admission_no"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    school_id: int = Field(foreign_key="school.id")
    full_name: str
    email: Optional[str] = None
    admission_no: str
    created_at: datetime = Field(default_factory=utcnow)


# ===================== QUESTION BANK =====================


class BankQuestion(SQLModel, table=True):
    """A reusable question in a school's question bank."""

    id: Optional[int] = Field(default=None, primary_key=True)
    school_id: int = Field(foreign_key="school.id")
    subject_id: int = Field(foreign_key="subject.id")
    created_by: int  # user id from the identity provider
    question_type: str  # multiple_choice | true_false | fill_blank
    question_text: str
    # [{"id": "1", "text": "..."}]; only stored for multiple_choice
    options: Optional[List[dict]] = Field(default=None, sa_column=Column(JSON))
    correct_answer: str
    marks: int = Field(default=1)
    difficulty: str = Field(default="medium")
    created_at: datetime = Field(default_factory=utcnow)


# ===================== ONLINE EXAMS =====================


class OnlineExam(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    school_id: int = Field(foreign_key="school.id")
    subject_id: int = Field(foreign_key="subject.id")
    title: str
    term: Optional[str] = None
    total_marks: int
    passing_marks: Optional[int] = None
    duration_minutes: int = Field(default=60)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    proctoring_enabled: bool = Field(default=False)
    tab_switch_limit: Optional[int] = None
    created_by: Optional[int] = None


class OnlineExamQuestion(SQLModel, table=True):
    """Placement of a bank question inside an online exam."""

    id: Optional[int] = Field(default=None, primary_key=True)
    online_exam_id: int = Field(foreign_key="onlineexam.id")
    question_id: int = Field(foreign_key="bankquestion.id")
    question_order: int = Field(default=0)
    marks: int = Field(default=1)


class OnlineExamAttempt(SQLModel, table=True):
    """One student's sitting of one online exam."""

    id: Optional[int] = Field(default=None, primary_key=True)
    online_exam_id: int = Field(foreign_key="onlineexam.id")
    # Not a hard foreign key: summaries must survive a deleted student profile
    student_id: int
    started_at: datetime = Field(default_factory=utcnow)
    submitted_at: Optional[datetime] = None
    status: str = Field(default="in_progress")  # in_progress | submitted
    total_marks_obtained: Optional[float] = None


class OnlineExamAnswer(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_answer_attempt_question"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    attempt_id: int = Field(foreign_key="onlineexamattempt.id")
    question_id: int = Field(foreign_key="bankquestion.id")
    student_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    marks_obtained: Optional[float] = None


class ProctoringLog(SQLModel, table=True):
    """Append-only record of an anomaly observed during an attempt."""

    id: Optional[int] = Field(default=None, primary_key=True)
    attempt_id: int = Field(foreign_key="onlineexamattempt.id")
    student_id: Optional[int] = None
    violation_type: str  # tab_switch, fullscreen_exit, window_blur, right_click, copy_attempt, dev_tools
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


# ===================== PAPER EXAMS & TERM GRADES =====================


class Exam(SQLModel, table=True):
    """A paper exam whose results are keyed in by a teacher."""

    id: Optional[int] = Field(default=None, primary_key=True)
    school_id: int = Field(foreign_key="school.id")
    subject_id: int = Field(foreign_key="subject.id")
    title: str
    term: Optional[str] = None
    total_marks: int
    exam_date: Optional[date] = None


class ExamResult(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    exam_id: int = Field(foreign_key="exam.id")
    student_id: int
    marks_obtained: Optional[float] = None
    grade: Optional[str] = None
    remarks: Optional[str] = None
    recorded_at: datetime = Field(default_factory=utcnow)


class Grade(SQLModel, table=True):
    """Manual term score entered by a teacher for one subject."""

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int
    subject_id: int = Field(foreign_key="subject.id")
    term: str
    score: Optional[float] = None
    created_at: datetime = Field(default_factory=utcnow)


class GradeScale(SQLModel, table=True):
    """One band of a school's letter-grade scale."""

    id: Optional[int] = Field(default=None, primary_key=True)
    school_id: int = Field(foreign_key="school.id")
    name: str
    grade: str
    min_score: float
    max_score: float
    grade_point: Optional[float] = None


class Attendance(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int
    attendance_date: date
    status: str  # present | absent | late
