"""Free-title resolution: ``report.docx`` -> ``report (1).docx`` -> ``report (2).docx``."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_COUNTER_RE = re.compile(r" \((?P<index>[0-9]+)\)(?P<ext>\.[^.]*)?$")


def increment_title(title: str) -> str:
    """Return *title* with its ``" (n)"`` counter bumped, or ``" (1)"`` inserted.

    The counter sits right before the extension, or at the end when
    there is none.
    """
    match = _COUNTER_RE.search(title)
    if match:
        index = int(match.group("index")) + 1
        ext = match.group("ext") or ""
        return f"{title[: match.start()]} ({index}){ext}"

    dot = title.rfind(".")
    insert_at = dot if dot != -1 else len(title)
    return f"{title[:insert_at]} (1){title[insert_at:]}"


async def get_available_title(
    title: str,
    exists: Callable[[str], Awaitable[bool]],
) -> str:
    """First variant of *title* for which ``exists`` returns False.

    The counter strictly increases on every retry, so the loop ends as
    soon as the predicate is false for some counter value.
    """
    if not await exists(title):
        return title
    candidate = title if _COUNTER_RE.search(title) else increment_title(title)
    while await exists(candidate):
        candidate = increment_title(candidate)
    return candidate
