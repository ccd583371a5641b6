from __future__ import annotations

import random
import re
import secrets
import time
import uuid
from typing import Any


_WHITESPACE = re.compile(r"\s+")
# ASCII alphanumerics, underscore, hyphen and CJK ideographs survive
_DISALLOWED = re.compile(r"[^a-z0-9_\u4e00-\u9fff-]")
_UNDERSCORES = re.compile(r"_+")

SLUG_MAX_LENGTH = 40


def generate_id(prefix: str = "id") -> str:
    """Return a fresh opaque identifier such as ``q_6f1c...``.

    Uses the OS randomness source; when none is available falls back to
    the current time plus a pseudo-random suffix, so this never fails.
    """
    try:
        return f"{prefix}_{uuid.uuid4()}"
    except NotImplementedError:
        millis = int(time.time() * 1000)
        return f"{prefix}_{millis}_{random.getrandbits(48):x}"


def slugify(text: Any) -> str:
    s = "" if text is None else str(text)
    s = _WHITESPACE.sub("_", s.strip().lower())
    s = _DISALLOWED.sub("", s)
    s = _UNDERSCORES.sub("_", s)[:SLUG_MAX_LENGTH]
    if s:
        return s
    return f"opt_{secrets.token_hex(3)}"
