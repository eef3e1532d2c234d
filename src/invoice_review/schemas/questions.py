"""
Review question schema.

A Question is a transient, regenerable artifact: it is derived from the
deficiencies of a record and rendered generically by the UI. The input_type
determines the shape of an acceptable answer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .field_values import from_json_value, to_json_value


class InputType(str, Enum):
    """How the UI should collect the answer."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    CONFIRM_OR_CORRECT = "confirm_or_correct"


@dataclass(frozen=True)
class QuestionOption:
    """One choice of a select question."""

    value: Any
    label: str

    def to_dict(self) -> dict:
        return {"value": to_json_value(self.value), "label": self.label}


@dataclass(frozen=True)
class Question:
    """
    A structured review question for one record field.

    Invariants:
    - SELECT questions carry at least one option
    - Only SELECT questions carry options
    """

    field_name: str
    question: str
    input_type: InputType
    current_value: Any = None
    hint: str | None = None
    options: tuple[QuestionOption, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.input_type == InputType.SELECT and not self.options:
            raise ValueError(f"Select question for '{self.field_name}' has no options")
        if self.input_type != InputType.SELECT and self.options:
            raise ValueError(
                f"Only select questions carry options ({self.input_type.value} "
                f"question for '{self.field_name}')"
            )

    @property
    def option_values(self) -> list[Any]:
        return [option.value for option in self.options]

    def to_dict(self) -> dict:
        """Serialize to dictionary for JSON storage."""
        return {
            "field_name": self.field_name,
            "question": self.question,
            "input_type": self.input_type.value,
            "current_value": to_json_value(self.current_value),
            "hint": self.hint,
            "options": [option.to_dict() for option in self.options],
        }

    @classmethod
    def from_dict(cls, data: dict) -> Question:
        """Deserialize from dictionary."""
        field_name = data["field_name"]
        return cls(
            field_name=field_name,
            question=data["question"],
            input_type=InputType(data["input_type"]),
            current_value=from_json_value(field_name, data.get("current_value")),
            hint=data.get("hint"),
            options=tuple(
                QuestionOption(value=opt["value"], label=opt["label"])
                for opt in data.get("options") or []
            ),
        )
