from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .normalize import normalize_questions, parse_questions
from .schema import Question


SURVEYS_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_QUESTIONS_FILE = SURVEYS_DIR / "default_questions.json"


class AnswerRequiredError(ValueError):
    def __init__(self, question_id: str) -> None:
        super().__init__(f"question {question_id!r} is required")
        self.question_id = question_id


class RunnerStateError(RuntimeError):
    pass


def load_default_questions() -> List[Dict[str, Any]]:
    """Canonical default question set, read fresh on every call."""
    data = json.loads(DEFAULT_QUESTIONS_FILE.read_text(encoding="utf-8"))
    return normalize_questions(data)


def is_answered(question: Optional[Question], answers: Mapping[str, Any]) -> bool:
    if question is None or not question.is_required:
        return True
    value = answers.get(question.id)
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    return value is not None and value != ""


def active_branches(question: Question, answers: Mapping[str, Any]) -> List[Question]:
    """Sub-questions revealed by the current answer to ``question``."""
    if not question.is_choice or not question.sub_questions:
        return []
    value = answers.get(question.id)
    if question.type == "checkbox":
        selected = value if isinstance(value, (list, tuple)) else []
        revealed: List[Question] = []
        for option_id in question.option_ids():
            if option_id in selected:
                revealed.extend(question.branch(option_id))
        return revealed
    if isinstance(value, str):
        return question.branch(value)
    return []


class SurveyRunner:
    """Step-by-step walk over a canonical question list.

    Only the cursor and the answers are state; which conditional branches
    are visible is recomputed from the answers each time it is asked for.
    Required-answer checks apply to the current top-level question only.
    """

    def __init__(self, questions: Sequence[Question]) -> None:
        self.questions: List[Question] = list(questions)
        self.index = 0
        self.answers: Dict[str, Any] = {}

    @classmethod
    def from_raw(cls, raw: Any) -> "SurveyRunner":
        return cls(parse_questions(raw))

    @property
    def current(self) -> Optional[Question]:
        if self.index >= len(self.questions):
            return None
        return self.questions[self.index]

    @property
    def is_first(self) -> bool:
        return self.index == 0

    @property
    def is_last(self) -> bool:
        return self.index >= len(self.questions) - 1

    @property
    def progress(self) -> float:
        return (self.index + 1) * 100.0 / max(len(self.questions), 1)

    def can_advance(self) -> bool:
        return is_answered(self.current, self.answers)

    def advance(self) -> bool:
        if self.is_last:
            return False
        current = self.current
        if not self.can_advance():
            raise AnswerRequiredError(current.id if current else "")
        self.index += 1
        return True

    def retreat(self) -> bool:
        if self.index == 0:
            return False
        self.index -= 1
        return True

    def submit(self) -> Dict[str, Any]:
        if not self.is_last:
            raise RunnerStateError("submit is only available on the last question")
        current = self.current
        if not self.can_advance():
            raise AnswerRequiredError(current.id if current else "")
        return dict(self.answers)

    def answer(self, question_id: str, value: Any) -> None:
        self.answers = {**self.answers, question_id: value}

    def select(self, question: Question, option_id: str) -> None:
        if question.is_choice and option_id not in question.option_ids():
            raise RunnerStateError(f"question {question.id!r} has no option {option_id!r}")
        if question.type in ("radio", "binary"):
            self.answer(question.id, option_id)
            return
        if question.type == "checkbox":
            selected = self.answers.get(question.id)
            selected = list(selected) if isinstance(selected, (list, tuple)) else []
            if option_id in selected:
                selected.remove(option_id)
            else:
                selected.append(option_id)
            self.answer(question.id, selected)
            return
        raise RunnerStateError(f"question {question.id!r} has no options to select")

    def active_branches(self, question: Question) -> List[Question]:
        return active_branches(question, self.answers)

    def visible_questions(self) -> List[Tuple[int, Question]]:
        """The current question plus every revealed sub-question, with depth."""
        out: List[Tuple[int, Question]] = []

        def walk(q: Question, level: int) -> None:
            out.append((level, q))
            for sub in active_branches(q, self.answers):
                walk(sub, level + 1)

        if self.current is not None:
            walk(self.current, 0)
        return out
