"""SSE line classification."""

from __future__ import annotations

from .models import ClassifiedLine, LineKind

COMMENT_PREFIX = ":"
DATA_PREFIX = "data: "


def classify_line(line: str) -> ClassifiedLine:
    """
    Classify one framed line.

    Comments (``:``-prefixed, used for keep-alives) and blank lines are
    ignorable. ``data: `` lines carry a payload with surrounding whitespace
    removed. Any other field (``event:``, ``id:``, ``retry:``...) is
    unrecognized and dropped by the caller.
    """
    if line.startswith(COMMENT_PREFIX) or not line.strip():
        return ClassifiedLine(kind=LineKind.IGNORABLE, raw=line)

    if line.startswith(DATA_PREFIX):
        return ClassifiedLine(
            kind=LineKind.DATA,
            raw=line,
            payload=line[len(DATA_PREFIX):].strip(),
        )

    return ClassifiedLine(kind=LineKind.UNRECOGNIZED, raw=line)
