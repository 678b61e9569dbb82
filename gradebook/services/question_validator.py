"""Structural validation for a single question.

Every rule is checked independently so the caller sees all problems at once.
The validator is side-effect free and cheap enough to re-run after each edit.
"""

from typing import List

from pydantic import BaseModel

from gradebook.schemas import MultipleChoiceQuestion, Question, find_option

MIN_FILLED_OPTIONS = 2


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str]


def validate_question(question: Question) -> ValidationResult:
    """Validate one question and return every applicable error, in rule order."""
    errors: List[str] = []

    if not question.question_text.strip():
        errors.append("Question text is required")

    answer = question.correct_answer.strip()
    if not answer:
        errors.append("Correct answer is required")

    if isinstance(question, MultipleChoiceQuestion):
        filled = [o for o in question.options if o.text.strip()]
        if len(filled) < MIN_FILLED_OPTIONS:
            errors.append("At least 2 options required")
        if answer:
            selected = find_option(question, question.correct_answer)
            if selected is None or not selected.text.strip():
                errors.append("Selected answer option is empty")

    if question.marks < 1:
        errors.append("Marks must be at least 1")

    return ValidationResult(is_valid=not errors, errors=errors)
