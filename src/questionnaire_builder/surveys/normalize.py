"""Rewrite raw question trees into the canonical option-id schema.

Raw trees come from storage or from the admin editor and may be legacy:
options given as bare strings, options without ids, conditional branches
keyed by option label instead of option id. ``Normalizer.normalize`` turns
any of that into a new tree where every question and option has an id and
every branch key is an option id. It never raises on malformed input.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .ids import generate_id, slugify
from .schema import (
    CHOICE_TYPES,
    BareLabel,
    PartialOption,
    Question,
    classify_option,
    coerce_text,
)


BINARY_DEFAULTS = (("yes", "是"), ("no", "否"))

LabelMap = Dict[str, str]


def _binary_options(raw: List[Any]) -> List[Dict[str, str]]:
    if len(raw) < 2:
        return [{"id": ident, "label": label} for ident, label in BINARY_DEFAULTS]
    options = []
    for entry, (ident, fallback) in zip(raw[:2], BINARY_DEFAULTS):
        parsed = classify_option(entry)
        if isinstance(parsed, BareLabel):
            label = parsed.label
        elif isinstance(parsed, PartialOption):
            label = parsed.label
        else:
            label = None
        options.append({"id": ident, "label": label or fallback})
    return options


class Normalizer:
    """Builds canonical question trees.

    Identifiers generated for a question or option that had none are
    remembered per raw object, so normalizing the same instance again
    yields the same id.
    """

    def __init__(self, id_factory: Callable[[str], str] = generate_id) -> None:
        self._id_factory = id_factory
        # id(raw) -> (raw, generated); holding raw keeps its id() from being reused
        self._assigned: Dict[int, Tuple[Any, str]] = {}
        # entries used by the pass in progress; replaces _assigned when it ends
        self._touched: Dict[int, Tuple[Any, str]] = {}
        self._depth = 0

    def _remembered(self, raw: Any, make: Callable[[], str]) -> str:
        if not isinstance(raw, (dict, list)):
            return make()
        entry = self._assigned.get(id(raw))
        if entry is None or entry[0] is not raw:
            entry = (raw, make())
            self._assigned[id(raw)] = entry
        self._touched[id(raw)] = entry
        return entry[1]

    def canonicalize_options(self, question: Mapping[str, Any]) -> Tuple[List[Dict[str, str]], LabelMap]:
        raw = question.get("options")
        raw = raw if isinstance(raw, list) else []
        label_to_id: LabelMap = {}

        if question.get("type") == "binary":
            options = _binary_options(raw)
            for o in options:
                label_to_id[o["label"]] = o["id"]
            return options, label_to_id

        resolved: List[Dict[str, str]] = []
        for pos, entry in enumerate(raw, start=1):
            parsed = classify_option(entry)
            if isinstance(parsed, BareLabel):
                ident = self._remembered(entry, lambda: slugify(parsed.label))
                label = parsed.label
            elif isinstance(parsed, PartialOption):
                ident = parsed.id or self._remembered(entry, lambda: slugify(parsed.label))
                label = parsed.label or ""
            else:
                ident = f"opt_{pos}"
                label = coerce_text(parsed.value)
            label_to_id[label] = ident
            resolved.append({"id": ident, "label": label})

        seen = set()
        options = []
        for pos, o in enumerate(resolved, start=1):
            ident = o["id"] or f"opt_{pos}"
            while ident in seen:
                ident = f"{ident}_{pos}"
            seen.add(ident)
            options.append({"id": ident, "label": o["label"]})
        return options, label_to_id

    def remap_branches(
        self,
        sub_questions: Any,
        options: Iterable[Mapping[str, str]],
        label_to_id: Mapping[str, str],
    ) -> Optional[Dict[str, List[Dict[str, Any]]]]:
        if not isinstance(sub_questions, Mapping):
            return None
        option_ids = {o["id"] for o in options}
        out: Dict[str, List[Dict[str, Any]]] = {}
        for key, branch in sub_questions.items():
            key = coerce_text(key)
            if key in option_ids:
                target = key
            else:
                # legacy label key; unknown keys are kept as authored
                target = label_to_id.get(key, key)
            out[target] = self.normalize(branch if isinstance(branch, list) else [])
        return out

    def normalize_question(self, raw: Any) -> Dict[str, Any]:
        q = dict(raw) if isinstance(raw, Mapping) else {}
        ident = q.get("id")
        if ident is None or coerce_text(ident) == "":
            q["id"] = self._remembered(raw, lambda: self._id_factory("q"))
        else:
            q["id"] = coerce_text(ident)

        options, label_to_id = self.canonicalize_options(q)
        if q.get("type") in CHOICE_TYPES:
            q["options"] = options
        else:
            raw_options = q.get("options")
            q["options"] = list(raw_options) if isinstance(raw_options, list) else []

        branches = self.remap_branches(q.get("subQuestions"), options, label_to_id)
        if branches is None:
            q.pop("subQuestions", None)
        else:
            q["subQuestions"] = branches
        return q

    def normalize(self, questions: Any) -> List[Dict[str, Any]]:
        if not isinstance(questions, list):
            return []
        if self._depth == 0:
            self._touched = {}
        self._depth += 1
        try:
            out = [self.normalize_question(q) for q in questions]
        finally:
            self._depth -= 1
        if self._depth == 0:
            # forget raw objects the latest top-level pass did not see
            self._assigned = self._touched
        return out


def normalize_questions(questions: Any) -> List[Dict[str, Any]]:
    return Normalizer().normalize(questions)


def parse_questions(raw: Any, normalizer: Optional[Normalizer] = None) -> List[Question]:
    """Normalize ``raw`` and validate it into ``Question`` models.

    Raises pydantic ``ValidationError`` for trees that normalize but still
    cannot be represented, e.g. an unknown question ``type``.
    """
    canonical = (normalizer or Normalizer()).normalize(raw)
    return [Question.model_validate(q) for q in canonical]


def dump_questions(questions: Iterable[Question]) -> List[Dict[str, Any]]:
    return [q.model_dump(by_alias=True, exclude_none=True) for q in questions]
