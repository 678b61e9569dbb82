"""Tests for class-wide exam statistics."""

from datetime import datetime, timedelta

import pytest

from gradebook.models import BankQuestion, OnlineExam, OnlineExamAnswer, OnlineExamAttempt, ProctoringLog, Student
from gradebook.services.exam_summary import build_exam_summary, grade_distribution, summarize_exam, summary_stats


def _exam(**overrides):
    fields = dict(id=1, school_id=1, subject_id=1, title="Quiz", total_marks=10, passing_marks=None)
    fields.update(overrides)
    return OnlineExam(**fields)


def _attempt(attempt_id, student_id, marks, status="submitted", minutes=None):
    started = datetime(2024, 3, 1, 9, 0)
    return OnlineExamAttempt(
        id=attempt_id,
        online_exam_id=1,
        student_id=student_id,
        started_at=started,
        submitted_at=started + timedelta(minutes=minutes) if minutes is not None else None,
        status=status,
        total_marks_obtained=marks,
    )


class TestSummaryStats:
    def test_no_submissions_gives_zero_rates(self):
        stats = summary_stats([_attempt(1, 1, None, status="in_progress")], threshold=5)
        assert stats.total_students == 1
        assert stats.submitted == 0
        assert stats.passed == 0
        assert stats.pass_rate == 0
        assert stats.avg_score == 0
        assert stats.highest_score == 0
        assert stats.lowest_score == 0

    def test_empty_exam(self):
        stats = summary_stats([], threshold=5)
        assert stats.total_students == 0
        assert stats.highest_score == 0

    def test_mixed_attempts(self):
        attempts = [
            _attempt(1, 1, 8),
            _attempt(2, 2, 4),
            _attempt(3, 3, 5),
            _attempt(4, 4, None, status="in_progress"),
        ]
        stats = summary_stats(attempts, threshold=5)
        assert stats.total_students == 4
        assert stats.submitted == 3
        assert stats.passed == 2
        assert stats.pass_rate == pytest.approx(200 / 3)
        assert stats.avg_score == pytest.approx(17 / 3)
        assert stats.highest_score == 8
        assert stats.lowest_score == 4

    def test_passed_ignores_unsubmitted_attempts(self):
        attempts = [_attempt(1, 1, 9, status="in_progress"), _attempt(2, 2, 2)]
        stats = summary_stats(attempts, threshold=5)
        assert stats.passed == 0
        assert stats.pass_rate == 0


class TestGradeDistribution:
    def test_band_edges(self):
        buckets = grade_distribution([100, 90, 89.99, 80, 79.5, 60, 59.9, 0])
        assert [(b.label, b.count) for b in buckets] == [
            ("90-100%", 2),
            ("80-89%", 2),
            ("70-79%", 1),
            ("60-69%", 1),
            ("<60%", 2),
        ]

    def test_empty_bands_omitted(self):
        buckets = grade_distribution([80.0, 85.0])
        assert [(b.label, b.count) for b in buckets] == [("80-89%", 2)]

    def test_no_percentages(self):
        assert grade_distribution([]) == []


class TestSummarizeExam:
    def test_full_summary_from_rows(self):
        exam = _exam(total_marks=10, passing_marks=6)
        questions = [
            BankQuestion(id=11, school_id=1, subject_id=1, created_by=1, question_type="true_false",
                         question_text="Q1", correct_answer="true"),
            BankQuestion(id=12, school_id=1, subject_id=1, created_by=1, question_type="fill_blank",
                         question_text="Q2", correct_answer="x"),
        ]
        attempts = [_attempt(1, 100, 8, minutes=14.5), _attempt(2, 200, 3, minutes=20)]
        answers = [
            OnlineExamAnswer(attempt_id=1, question_id=11, student_answer="true", is_correct=True),
            OnlineExamAnswer(attempt_id=2, question_id=11, student_answer="false", is_correct=False),
            OnlineExamAnswer(attempt_id=1, question_id=12, student_answer="x", is_correct=True),
        ]
        logs = [
            ProctoringLog(attempt_id=2, violation_type="tab_switch"),
            ProctoringLog(attempt_id=2, violation_type="tab_switch"),
            ProctoringLog(attempt_id=1, violation_type="copy_attempt"),
        ]
        students = {100: Student(id=100, school_id=1, full_name="Ada Obi", email="ada@example.com", admission_no="1")}

        summary = summarize_exam(exam, attempts, students, logs, questions, answers)

        assert summary.passing_marks == 6
        assert summary.stats.passed == 1
        assert [(b.label, b.count) for b in summary.grade_distribution] == [("80-89%", 1), ("<60%", 1)]

        q1, q2 = summary.question_analytics
        assert (q1.correct, q1.wrong, q1.skipped) == (1, 1, 0)
        assert (q2.correct, q2.wrong, q2.skipped) == (1, 0, 1)

        assert summary.violation_summary == {"tab_switch": 2, "copy_attempt": 1}

        ada, unknown = summary.students
        assert ada.name == "Ada Obi"
        assert ada.result == "Passed"
        assert ada.percentage == 80
        assert ada.violations == 1
        assert ada.time_taken_minutes == 15
        assert unknown.name == "Unknown"
        assert unknown.email == ""
        assert unknown.result == "Failed"
        assert unknown.violations == 2

    def test_skipped_never_negative(self):
        exam = _exam()
        question = BankQuestion(id=11, school_id=1, subject_id=1, created_by=1, question_type="fill_blank",
                                question_text="Q", correct_answer="x")
        # More graded answers than attempts handed in
        answers = [
            OnlineExamAnswer(attempt_id=1, question_id=11, is_correct=True),
            OnlineExamAnswer(attempt_id=2, question_id=11, is_correct=False),
        ]
        summary = summarize_exam(exam, [_attempt(1, 1, 5)], {}, [], [question], answers)
        assert summary.question_analytics[0].skipped == 0

    def test_default_passing_threshold_is_half(self):
        summary = summarize_exam(_exam(total_marks=10), [_attempt(1, 1, 5)], {}, [], [], [])
        assert summary.passing_marks == 5
        assert summary.students[0].result == "Passed"


class TestBuildExamSummary:
    def test_from_database(self, session, online_exam, graded_attempt, second_student):
        session.add(
            OnlineExamAttempt(online_exam_id=online_exam.id, student_id=second_student.id)
        )
        session.add(ProctoringLog(attempt_id=graded_attempt.id, violation_type="tab_switch"))
        session.commit()

        summary = build_exam_summary(session, online_exam.id)

        assert summary.exam_title == "Science Quiz 1"
        assert summary.stats.total_students == 2
        assert summary.stats.submitted == 1
        assert summary.stats.passed == 0  # 2 of 5 against a 2.5 threshold
        assert [q.question_text for q in summary.question_analytics] == [
            "Which planet is known as the red planet?",
            "Water boils at 100 degrees Celsius at sea level.",
            "The chemical symbol for gold is ____.",
        ]
        mc, tf, fb = summary.question_analytics
        assert (mc.correct, mc.wrong, mc.skipped) == (1, 0, 1)
        assert (tf.correct, tf.wrong, tf.skipped) == (0, 1, 1)
        assert (fb.correct, fb.wrong, fb.skipped) == (0, 0, 2)
        assert summary.violation_summary == {"tab_switch": 1}
        assert summary.students[0].time_taken_minutes == 12
        assert summary.students[1].status == "in_progress"

    def test_unknown_exam(self, session):
        with pytest.raises(ValueError, match="does not exist"):
            build_exam_summary(session, 9999)
