"""Admin-side edits over raw question lists.

Every function takes a list of question dicts and returns a new list; the
input and its nested lists are never modified. Results are not normalized,
the save path normalizes before persisting.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from .ids import generate_id, slugify
from .normalize import Normalizer


Questions = List[Dict[str, Any]]


def new_question(level: int = 0) -> Dict[str, Any]:
    return {
        "id": generate_id("q"),
        "title": "",
        "type": "text",
        "options": [],
        "icon": "📌" if level == 0 else "",
        "isRequired": False,
        "subQuestions": {},
    }


def _replace(questions: Questions, question_id: str, change: Callable[[Dict[str, Any]], Dict[str, Any]]) -> Questions:
    return [change(dict(q)) if q.get("id") == question_id else q for q in questions]


def _options(q: Dict[str, Any]) -> List[Dict[str, Any]]:
    opts = q.get("options")
    return list(opts) if isinstance(opts, list) else []


def add_question(questions: Questions, question: Optional[Dict[str, Any]] = None, level: int = 0) -> Questions:
    return [*questions, question if question is not None else new_question(level)]


def remove_question(questions: Questions, question_id: str) -> Questions:
    return [q for q in questions if q.get("id") != question_id]


def update_question(questions: Questions, question_id: str, field: str, value: Any) -> Questions:
    def change(q: Dict[str, Any]) -> Dict[str, Any]:
        q[field] = value
        return q

    return _replace(questions, question_id, change)


def move_question(questions: Questions, index: int, direction: int) -> Questions:
    target = index + direction
    if not (0 <= index < len(questions)) or not (0 <= target < len(questions)):
        return list(questions)
    moved = list(questions)
    moved[index], moved[target] = moved[target], moved[index]
    return moved


def change_type(questions: Questions, question_id: str, new_type: str) -> Questions:
    def change(q: Dict[str, Any]) -> Dict[str, Any]:
        q["type"] = new_type
        if new_type == "binary":
            q["options"], _ = Normalizer().canonicalize_options(q)
        elif new_type in ("radio", "checkbox"):
            opts = _options(q)
            if not opts:
                q["options"] = [{"id": generate_id("opt"), "label": ""}]
            else:
                q["options"] = [
                    {
                        "id": str(o["id"]) if isinstance(o, dict) and o.get("id") else f"opt_{pos}",
                        "label": str(o["label"]) if isinstance(o, dict) and o.get("label") is not None else "",
                    }
                    for pos, o in enumerate(opts, start=1)
                ]
        else:
            q["options"] = []
            q["subQuestions"] = {}
        return q

    return _replace(questions, question_id, change)


def add_option(questions: Questions, question_id: str, label: str = "") -> Questions:
    def change(q: Dict[str, Any]) -> Dict[str, Any]:
        q["options"] = [*_options(q), {"id": generate_id("opt"), "label": label}]
        return q

    return _replace(questions, question_id, change)


def remove_option(questions: Questions, question_id: str, option_id: str) -> Questions:
    def change(q: Dict[str, Any]) -> Dict[str, Any]:
        if q.get("type") == "binary":
            return q
        q["options"] = [o for o in _options(q) if not (isinstance(o, dict) and o.get("id") == option_id)]
        branches = dict(q.get("subQuestions") or {})
        branches.pop(option_id, None)
        q["subQuestions"] = branches
        return q

    return _replace(questions, question_id, change)


def update_option_label(questions: Questions, question_id: str, option_id: str, label: str) -> Questions:
    """Relabel one option; options left without an id get one from their label."""

    def change(q: Dict[str, Any]) -> Dict[str, Any]:
        fixed = []
        for pos, o in enumerate(_options(q), start=1):
            o = dict(o) if isinstance(o, dict) else {"label": str(o)}
            if o.get("id") == option_id:
                o["label"] = label
            ident = str(o.get("id") or "").strip()
            text = str(o.get("label") or "").strip()
            if not ident and text:
                ident = slugify(text)
            o["id"] = ident or f"opt_{pos}"
            fixed.append(o)
        branches = dict(q.get("subQuestions") or {})
        if option_id in branches and option_id not in {o["id"] for o in fixed}:
            del branches[option_id]
        q["options"] = fixed
        q["subQuestions"] = branches
        return q

    return _replace(questions, question_id, change)


def set_branch(questions: Questions, question_id: str, option_id: str, branch: Questions) -> Questions:
    def change(q: Dict[str, Any]) -> Dict[str, Any]:
        q["subQuestions"] = {**(q.get("subQuestions") or {}), option_id: list(branch)}
        return q

    return _replace(questions, question_id, change)

