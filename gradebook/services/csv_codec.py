"""CSV import/export for question-bank content.

File layout (header row required on import)::

    Question Type,Question Text,Option 1,Option 2,Option 3,Option 4,Correct Answer,Marks,Difficulty

Lines are tokenized one at a time; a quoted field may contain commas and
doubled quotes but not line breaks.
"""

import logging
import re
from datetime import date
from typing import Iterable, List, Optional

from pydantic import BaseModel

from gradebook.schemas import (
    DEFAULT_DIFFICULTY,
    MULTIPLE_CHOICE,
    OPTION_IDS,
    QUESTION_TYPES,
    TRUE_FALSE,
    FillBlankQuestion,
    MultipleChoiceQuestion,
    Question,
    QuestionOption,
    TrueFalseQuestion,
    find_option,
)
from gradebook.services.question_validator import ValidationResult, validate_question

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "Question Type",
    "Question Text",
    "Option 1",
    "Option 2",
    "Option 3",
    "Option 4",
    "Correct Answer",
    "Marks",
    "Difficulty",
]
FIELD_COUNT = len(CSV_HEADERS)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class ImportedQuestion(BaseModel):
    """A parsed CSV row together with its validation verdict."""

    row_number: int
    question: Question
    validation: ValidationResult


def _finish_field(chars: List[str], quoted_start: Optional[int], quoted_end: Optional[int]) -> str:
    """Join a field, trimming whitespace only outside its quoted section."""
    text = "".join(chars)
    if quoted_start is None:
        return text.strip()
    return text[:quoted_start].lstrip() + text[quoted_start:quoted_end] + text[quoted_end:].rstrip()


def parse_csv_line(line: str) -> List[str]:
    """Split one CSV line into fields, honouring quotes and doubled quotes.

    Whitespace around a field is dropped, but quoted content is kept verbatim.
    """
    fields: List[str] = []
    current: List[str] = []
    quoted_start = quoted_end = None
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            elif in_quotes:
                in_quotes = False
                quoted_end = len(current)
            else:
                in_quotes = True
                if quoted_start is None:
                    quoted_start = len(current)
        elif char == "," and not in_quotes:
            fields.append(_finish_field(current, quoted_start, quoted_end))
            current = []
            quoted_start = quoted_end = None
        else:
            current.append(char)
        i += 1
    if in_quotes:
        quoted_end = len(current)
    fields.append(_finish_field(current, quoted_start, quoted_end))
    return fields


def _parse_marks(raw: str) -> int:
    match = _LEADING_INT.match(raw)
    if not match:
        return 1
    return int(match.group(1))


def _normalize_type(raw: str) -> str:
    question_type = re.sub(r"\s+", "_", raw.strip().lower())
    if question_type not in QUESTION_TYPES:
        if question_type:
            logger.warning("Unknown question type %r, importing as multiple_choice", raw)
        return MULTIPLE_CHOICE
    return question_type


def _resolve_option_id(options, raw_answer: str) -> str:
    """Map a CSV correct-answer cell to an option id."""
    wanted = raw_answer.strip().lower()
    if wanted:
        for option in options:
            if option.text.strip() and option.text.strip().lower() == wanted:
                return option.id
    if raw_answer.strip() in OPTION_IDS:
        return raw_answer.strip()
    for option in options:
        if option.text.strip():
            return option.id
    return OPTION_IDS[0]


def row_to_question(fields: List[str]) -> Question:
    """Build a question from the nine positional fields of a CSV row."""
    raw_type, text, opt1, opt2, opt3, opt4, raw_answer, raw_marks, raw_difficulty = fields[:FIELD_COUNT]
    common = {
        "question_text": text,
        "marks": _parse_marks(raw_marks),
        "difficulty": raw_difficulty.strip().lower() or DEFAULT_DIFFICULTY,
    }
    question_type = _normalize_type(raw_type)

    if question_type == MULTIPLE_CHOICE:
        options = tuple(
            QuestionOption(id=option_id, text=option_text)
            for option_id, option_text in zip(OPTION_IDS, (opt1, opt2, opt3, opt4))
        )
        return MultipleChoiceQuestion(
            options=options,
            correct_answer=_resolve_option_id(options, raw_answer),
            **common,
        )
    if question_type == TRUE_FALSE:
        return TrueFalseQuestion(correct_answer=raw_answer.strip().lower(), **common)
    return FillBlankQuestion(correct_answer=raw_answer, **common)


def import_questions(content: str) -> List[ImportedQuestion]:
    """Parse CSV text into validated questions.

    Rows with fewer than nine fields are skipped without being reported.

    Raises:
        ValueError: if the file has no data rows, or no row could be parsed
    """
    lines = [line for line in content.splitlines() if line.strip()]
    if len(lines) < 2:
        raise ValueError("CSV file must have a header row and at least one question")

    imported: List[ImportedQuestion] = []
    for row_number, line in enumerate(lines[1:], start=2):
        fields = parse_csv_line(line)
        if len(fields) < FIELD_COUNT:
            logger.debug("Skipping CSV row %d: %d fields", row_number, len(fields))
            continue
        question = row_to_question(fields)
        imported.append(
            ImportedQuestion(
                row_number=row_number,
                question=question,
                validation=validate_question(question),
            )
        )

    if not imported:
        raise ValueError("No valid questions found in CSV")

    logger.info("Parsed %d question rows from CSV (%d data lines)", len(imported), len(lines) - 1)
    return imported


def _quote(value) -> str:
    return '"' + str(value).replace('"', '""') + '"'


def _export_answer(question: Question) -> str:
    if isinstance(question, MultipleChoiceQuestion):
        option = find_option(question, question.correct_answer)
        if option is not None:
            return option.text
    return question.correct_answer


def question_to_row(question: Question) -> List[str]:
    option_texts = [option.text for option in question.options][:4]
    option_texts += [""] * (4 - len(option_texts))
    return [
        question.question_type,
        question.question_text,
        *option_texts,
        _export_answer(question),
        str(question.marks),
        question.difficulty,
    ]


def export_questions(questions: Iterable[Question]) -> str:
    """Serialize questions to CSV text, every data field quoted."""
    lines = [",".join(CSV_HEADERS)]
    for question in questions:
        lines.append(",".join(_quote(value) for value in question_to_row(question)))
    return "\n".join(lines)


def export_filename(subject_name: str, on: Optional[date] = None) -> str:
    """Download name such as ``Basic_Science_questions_2024-05-01.csv``."""
    on = on or date.today()
    stem = re.sub(r"\s+", "_", subject_name.strip())
    return f"{stem}_questions_{on.isoformat()}.csv"
