"""Bulk question upload: manual entry, CSV import and CSV export.

The flow is a small state machine::

    setup --> manual-entry   --submit--> setup
    setup --> import-preview --submit--> setup
    setup --> export-preview --export--> (stays) --reset--> setup

A failed transition raises ``ValueError`` and leaves the previous state as it
was. Question lists are immutable tuples; every edit produces a new tuple.
"""

import logging
from datetime import date
from enum import Enum
from typing import FrozenSet, List, Optional, Sequence, Tuple

from sqlmodel import Session, select

from gradebook.config import BULK_MAX_QUESTIONS
from gradebook.deps import RequestContext
from gradebook.models import BankQuestion
from gradebook.schemas import (
    FillBlankQuestion,
    MultipleChoiceQuestion,
    Question,
    blank_question,
    options_for_storage,
    question_from_record,
)
from gradebook.services.csv_codec import ImportedQuestion, export_filename, export_questions, import_questions
from gradebook.services.question_validator import ValidationResult, validate_question
from gradebook.utils import sanitize_text

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("question_text", "correct_answer", "marks", "difficulty")


class Mode(str, Enum):
    SETUP = "setup"
    MANUAL_ENTRY = "manual-entry"
    IMPORT_PREVIEW = "import-preview"
    EXPORT_PREVIEW = "export-preview"


def replace_at(items: Sequence, index: int, item) -> tuple:
    """Return a new tuple with ``items[index]`` replaced."""
    if index < 0 or index >= len(items):
        raise IndexError(f"index {index} out of range")
    return tuple(items[:index]) + (item,) + tuple(items[index + 1:])


def _sanitized(question: Question) -> Question:
    changes = {"question_text": sanitize_text(question.question_text)}
    if isinstance(question, MultipleChoiceQuestion):
        changes["options"] = tuple(
            option.model_copy(update={"text": sanitize_text(option.text)})
            for option in question.options
        )
    elif isinstance(question, FillBlankQuestion):
        changes["correct_answer"] = sanitize_text(question.correct_answer)
    return question.model_copy(update=changes)


def _retyped(question: Question, question_type: str) -> Question:
    """Same text, marks and difficulty under another variant, with no answer."""
    if question.question_type == question_type:
        return question
    return blank_question(
        question_type,
        question_text=question.question_text,
        marks=question.marks,
        difficulty=question.difficulty,
    )


class BulkQuestionUpload:
    """One user's bulk upload session for a single subject."""

    def __init__(self, context: RequestContext):
        self.context = context
        self.reset()

    def reset(self) -> None:
        self.mode = Mode.SETUP
        self.subject_id: Optional[int] = None
        self.questions: Tuple[Question, ...] = ()
        self.imported: Tuple[ImportedQuestion, ...] = ()
        self.export_rows: Tuple[BankQuestion, ...] = ()
        self.selected: FrozenSet[int] = frozenset()

    # ------------------------------------------------------------------
    # Transitions out of setup
    # ------------------------------------------------------------------

    def _require_mode(self, *modes: Mode) -> None:
        if self.mode not in modes:
            raise ValueError(f"Action not available while in {self.mode.value} mode")

    @staticmethod
    def _require_subject(subject_id: Optional[int]) -> int:
        if not subject_id:
            raise ValueError("Please select a subject")
        return subject_id

    def start_manual_entry(self, subject_id: Optional[int], count: int) -> Tuple[Question, ...]:
        """Generate ``count`` blank multiple choice questions to fill in."""
        self._require_mode(Mode.SETUP)
        subject_id = self._require_subject(subject_id)
        if count < 1 or count > BULK_MAX_QUESTIONS:
            raise ValueError(f"Number of questions must be between 1 and {BULK_MAX_QUESTIONS}")

        self.subject_id = subject_id
        self.questions = tuple(blank_question() for _ in range(count))
        self.mode = Mode.MANUAL_ENTRY
        return self.questions

    def resume_entry(self, subject_id: Optional[int], questions: Sequence[Question]) -> None:
        """Enter manual-entry with questions edited elsewhere (e.g. in a browser form)."""
        self._require_mode(Mode.SETUP)
        subject_id = self._require_subject(subject_id)
        if not questions:
            raise ValueError("No questions to upload")
        self.subject_id = subject_id
        self.questions = tuple(questions)
        self.mode = Mode.MANUAL_ENTRY

    def load_csv(self, subject_id: Optional[int], content: str) -> Tuple[ImportedQuestion, ...]:
        """Parse a CSV file into an import preview."""
        self._require_mode(Mode.SETUP)
        subject_id = self._require_subject(subject_id)
        imported = import_questions(content)

        self.subject_id = subject_id
        self.imported = tuple(imported)
        self.questions = tuple(row.question for row in imported)
        self.mode = Mode.IMPORT_PREVIEW
        return self.imported

    def start_export(self, session: Session, subject_id: Optional[int]) -> Tuple[BankQuestion, ...]:
        """Load the caller's bank questions for a subject, newest first, all selected."""
        self._require_mode(Mode.SETUP)
        subject_id = self._require_subject(subject_id)
        rows = session.exec(
            select(BankQuestion)
            .where(
                BankQuestion.subject_id == subject_id,
                BankQuestion.school_id == self.context.school_id,
                BankQuestion.created_by == self.context.user_id,
            )
            .order_by(BankQuestion.created_at.desc(), BankQuestion.id.desc())
        ).all()
        if not rows:
            raise ValueError("No questions found for this subject")

        self.subject_id = subject_id
        self.export_rows = tuple(rows)
        self.selected = frozenset(row.id for row in rows)
        self.mode = Mode.EXPORT_PREVIEW
        return self.export_rows

    # ------------------------------------------------------------------
    # Editing (manual-entry / import-preview)
    # ------------------------------------------------------------------

    def _question_at(self, index: int) -> Question:
        if index < 0 or index >= len(self.questions):
            raise ValueError(f"Question {index + 1} does not exist")
        return self.questions[index]

    def update_question(self, index: int, **changes) -> Tuple[Question, ...]:
        """Replace fields of one question; ``question_type`` switches the variant.

        The edit is applied as a whole or not at all.
        """
        self._require_mode(Mode.MANUAL_ENTRY, Mode.IMPORT_PREVIEW)
        question = self._question_at(index)
        if "question_type" in changes:
            question = _retyped(question, changes.pop("question_type"))
        editable = set(EDITABLE_FIELDS)
        if isinstance(question, MultipleChoiceQuestion):
            editable.add("options")
        unknown = set(changes) - editable
        if unknown:
            raise ValueError(f"Cannot edit {', '.join(sorted(unknown))} on this question")
        if changes:
            question = question.model_copy(update=changes)
        if question is not self.questions[index]:
            self.questions = replace_at(self.questions, index, question)
        return self.questions

    def change_question_type(self, index: int, question_type: str) -> Tuple[Question, ...]:
        """Switch a question's variant; the correct answer is cleared."""
        self._require_mode(Mode.MANUAL_ENTRY, Mode.IMPORT_PREVIEW)
        current = self._question_at(index)
        replacement = _retyped(current, question_type)
        if replacement is not current:
            self.questions = replace_at(self.questions, index, replacement)
        return self.questions

    def update_option(self, question_index: int, option_index: int, text: str) -> Tuple[Question, ...]:
        self._require_mode(Mode.MANUAL_ENTRY, Mode.IMPORT_PREVIEW)
        question = self._question_at(question_index)
        if not isinstance(question, MultipleChoiceQuestion):
            raise ValueError("Only multiple choice questions have editable options")
        if option_index < 0 or option_index >= len(question.options):
            raise ValueError(f"Option {option_index + 1} does not exist")
        option = question.options[option_index].model_copy(update={"text": text})
        updated = question.model_copy(update={"options": replace_at(question.options, option_index, option)})
        self.questions = replace_at(self.questions, question_index, updated)
        return self.questions

    def validate_all(self) -> List[ValidationResult]:
        return [validate_question(question) for question in self.questions]

    def submit(self, session: Session) -> List[BankQuestion]:
        """Validate every question and insert them all in one batch.

        Raises:
            ValueError: if any question is invalid; nothing is written
        """
        self._require_mode(Mode.MANUAL_ENTRY, Mode.IMPORT_PREVIEW)
        questions = [_sanitized(question) for question in self.questions]
        invalid = sum(1 for question in questions if not validate_question(question).is_valid)
        if invalid:
            raise ValueError(f"{invalid} question(s) have errors. Please fix them before uploading.")

        records = [
            BankQuestion(
                school_id=self.context.school_id,
                subject_id=self.subject_id,
                created_by=self.context.user_id,
                question_type=question.question_type,
                question_text=question.question_text,
                options=options_for_storage(question),
                correct_answer=question.correct_answer,
                marks=question.marks,
                difficulty=question.difficulty,
            )
            for question in questions
        ]
        session.add_all(records)
        session.commit()
        for record in records:
            session.refresh(record)

        logger.info(
            "Uploaded %d questions to subject %s for school %s",
            len(records),
            self.subject_id,
            self.context.school_id,
        )
        self.reset()
        return records

    # ------------------------------------------------------------------
    # Export preview
    # ------------------------------------------------------------------

    def toggle_selection(self, record_id: int) -> FrozenSet[int]:
        self._require_mode(Mode.EXPORT_PREVIEW)
        if record_id not in {row.id for row in self.export_rows}:
            raise ValueError(f"Question with id={record_id} is not in this export")
        self.selected = self.selected ^ {record_id}
        return self.selected

    def select_all(self, selected: bool = True) -> FrozenSet[int]:
        self._require_mode(Mode.EXPORT_PREVIEW)
        self.selected = frozenset(row.id for row in self.export_rows) if selected else frozenset()
        return self.selected

    def export(self, subject_name: str, on: Optional[date] = None) -> Tuple[str, str]:
        """Return ``(filename, csv_text)`` for the selected rows."""
        self._require_mode(Mode.EXPORT_PREVIEW)
        if not self.selected:
            raise ValueError("Please select at least one question to export")
        chosen = [question_from_record(row) for row in self.export_rows if row.id in self.selected]
        logger.info("Exporting %d questions from subject %s", len(chosen), self.subject_id)
        return export_filename(subject_name, on), export_questions(chosen)
