"""Tests for the term report card."""

from datetime import date, datetime, timedelta, timezone

import pytest

from gradebook.models import Attendance, Exam, ExamResult, Grade, Subject
from gradebook.services.report_card import attendance_summary, build_report_card


def test_attendance_without_records(session, student):
    summary = attendance_summary(session, student.id)
    assert summary.present == 0
    assert summary.total == 1
    assert summary.percentage == 0


def test_attendance_percentage_rounded(session, student):
    statuses = ["present", "present", "absent"]
    for offset, status in enumerate(statuses):
        session.add(Attendance(student_id=student.id, attendance_date=date(2024, 1, 8) + timedelta(days=offset), status=status))
    session.commit()

    summary = attendance_summary(session, student.id)
    assert summary.present == 2
    assert summary.total == 3
    assert summary.percentage == 66.7


def test_report_card_lists_term_subjects(session, context, school, subject, student, online_exam, graded_attempt):
    maths = Subject(school_id=school.id, name="Mathematics", code="MTH")
    art = Subject(school_id=school.id, name="Art", code="ART")
    session.add_all([maths, art])
    session.commit()

    exam = Exam(school_id=school.id, subject_id=maths.id, title="Maths paper", term="Term 1", total_marks=100)
    session.add(exam)
    session.commit()
    session.add_all(
        [
            ExamResult(exam_id=exam.id, student_id=student.id, marks_obtained=88, remarks="  ",
                       recorded_at=datetime.now(timezone.utc) - timedelta(days=1)),
            Grade(student_id=student.id, subject_id=maths.id, term="Term 1", score=90),
            Grade(student_id=student.id, subject_id=art.id, term="Term 2", score=50),
            Attendance(student_id=student.id, attendance_date=date(2024, 1, 8), status="present"),
        ]
    )
    session.commit()
    exam_two = Exam(school_id=school.id, subject_id=maths.id, title="Maths quiz", term="Term 1", total_marks=20)
    session.add(exam_two)
    session.commit()
    session.add(ExamResult(exam_id=exam_two.id, student_id=student.id, marks_obtained=18, remarks="Keeps improving"))
    session.commit()

    card = build_report_card(session, context, student, "Term 1")

    assert card.full_name == "Ada Obi"
    assert card.admission_no == "GFA/001"
    assert [s.subject_name for s in card.subjects] == ["Basic Science", "Mathematics"]

    science, mathematics = card.subjects
    assert science.online_avg == pytest.approx(40)
    assert science.final == 40
    assert science.letter == "F"
    assert mathematics.manual == 90
    assert mathematics.exam_avg == pytest.approx(89)  # mean of 88% and 90%
    # (90*0.4 + 89*0.3) / 0.7 = 89.57
    assert mathematics.final == 90
    assert mathematics.letter == "A"

    assert card.attendance.percentage == 100
    assert card.remarks == "Keeps improving"


def test_report_card_for_empty_term(session, context, student):
    card = build_report_card(session, context, student, "Term 3")
    assert card.subjects == []
    assert card.remarks == ""
