"""Question shapes shared by the validator, the CSV codec and the bulk upload flow.

A question is one of three variants, discriminated by ``question_type``:

- ``MultipleChoiceQuestion`` carries its own option list; the correct answer
  is an option id.
- ``TrueFalseQuestion`` has the fixed options ``true``/``false``.
- ``FillBlankQuestion`` has no options; the correct answer is literal text.

All variants are frozen. Edits go through ``model_copy(update=...)``.
"""

from typing import Annotated, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

from gradebook.models import BankQuestion

MULTIPLE_CHOICE = "multiple_choice"
TRUE_FALSE = "true_false"
FILL_BLANK = "fill_blank"
QUESTION_TYPES = (MULTIPLE_CHOICE, TRUE_FALSE, FILL_BLANK)

DEFAULT_DIFFICULTY = "medium"

OPTION_IDS = ("1", "2", "3", "4")


class QuestionOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    text: str = ""


def blank_options() -> Tuple[QuestionOption, ...]:
    return tuple(QuestionOption(id=option_id) for option_id in OPTION_IDS)


TRUE_FALSE_OPTIONS = (
    QuestionOption(id="true", text="True"),
    QuestionOption(id="false", text="False"),
)


class _QuestionBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_text: str = ""
    correct_answer: str = ""
    marks: int = 1
    difficulty: str = DEFAULT_DIFFICULTY


class MultipleChoiceQuestion(_QuestionBase):
    question_type: Literal["multiple_choice"] = MULTIPLE_CHOICE
    options: Tuple[QuestionOption, ...] = Field(default_factory=blank_options)


class TrueFalseQuestion(_QuestionBase):
    question_type: Literal["true_false"] = TRUE_FALSE

    @computed_field
    @property
    def options(self) -> Tuple[QuestionOption, ...]:
        return TRUE_FALSE_OPTIONS


class FillBlankQuestion(_QuestionBase):
    question_type: Literal["fill_blank"] = FILL_BLANK

    @computed_field
    @property
    def options(self) -> Tuple[QuestionOption, ...]:
        return ()


Question = Annotated[
    Union[MultipleChoiceQuestion, TrueFalseQuestion, FillBlankQuestion],
    Field(discriminator="question_type"),
]

_VARIANTS = {
    MULTIPLE_CHOICE: MultipleChoiceQuestion,
    TRUE_FALSE: TrueFalseQuestion,
    FILL_BLANK: FillBlankQuestion,
}


def blank_question(question_type: str = MULTIPLE_CHOICE, **fields) -> Question:
    """Return an empty question of the given type."""
    try:
        variant = _VARIANTS[question_type]
    except KeyError:
        raise ValueError(f"Unknown question type '{question_type}'")
    return variant(**fields)


def find_option(question: Question, option_id: Optional[str]) -> Optional[QuestionOption]:
    for option in question.options:
        if option.id == option_id:
            return option
    return None


def question_from_record(record: BankQuestion) -> Question:
    """Rebuild a question variant from a stored question-bank row."""
    fields = {
        "question_text": record.question_text or "",
        "correct_answer": record.correct_answer or "",
        "marks": record.marks,
        "difficulty": record.difficulty or DEFAULT_DIFFICULTY,
    }
    if record.question_type == MULTIPLE_CHOICE:
        options = tuple(
            QuestionOption(id=str(o.get("id", "")), text=o.get("text") or "")
            for o in (record.options or [])
        )
        return MultipleChoiceQuestion(options=options, **fields)
    return blank_question(record.question_type, **fields)


def options_for_storage(question: Question) -> Optional[list]:
    """Options column value: the option list for multiple choice, else NULL."""
    if isinstance(question, MultipleChoiceQuestion):
        return [option.model_dump() for option in question.options]
    return None
