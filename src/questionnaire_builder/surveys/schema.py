from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


QuestionType = Literal["text", "binary", "radio", "checkbox"]

CHOICE_TYPES = ("binary", "radio", "checkbox")


class Option(BaseModel):
    id: str
    label: str = ""


class Question(BaseModel):
    """Canonical question node; JSON keys are camelCase."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    title: str = ""
    type: QuestionType = "text"
    options: List[Option] = Field(default_factory=list)
    is_required: bool = Field(default=False, alias="isRequired")
    icon: Optional[str] = None
    # option id -> conditional branch shown when that option is selected
    sub_questions: Optional[Dict[str, List["Question"]]] = Field(default=None, alias="subQuestions")

    @model_validator(mode="before")
    @classmethod
    def _text_has_no_options(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("type", "text") == "text" and data.get("options"):
            data = {**data, "options": []}
        return data

    @field_validator("title", mode="before")
    @classmethod
    def _title_as_text(cls, value: Any) -> str:
        return coerce_text(value)

    @field_validator("icon", mode="before")
    @classmethod
    def _icon_as_text(cls, value: Any) -> Optional[str]:
        return _text(value) or None

    @property
    def is_choice(self) -> bool:
        return self.type in CHOICE_TYPES

    def option_ids(self) -> List[str]:
        return [o.id for o in self.options]

    def branch(self, option_id: str) -> List["Question"]:
        return list((self.sub_questions or {}).get(option_id, []))


# Raw option input as found in stored or hand-edited trees.


class BareLabel(BaseModel):
    kind: Literal["label"] = "label"
    label: str


class PartialOption(BaseModel):
    kind: Literal["partial"] = "partial"
    id: Optional[str] = None
    label: Optional[str] = None


class OtherValue(BaseModel):
    kind: Literal["other"] = "other"
    value: Any = None


RawOption = Union[BareLabel, PartialOption, OtherValue]


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def classify_option(raw: Any) -> RawOption:
    if isinstance(raw, str):
        return BareLabel(label=raw)
    if isinstance(raw, dict):
        ident = raw.get("id")
        return PartialOption(
            id=_text(ident) if ident not in (None, "") else None,
            label=_text(raw.get("label")),
        )
    return OtherValue(value=raw)


def coerce_text(value: Any) -> str:
    return _text(value) or ""
