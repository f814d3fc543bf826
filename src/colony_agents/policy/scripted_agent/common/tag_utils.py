from __future__ import annotations

from typing import Optional

NAME_SEPARATOR = "-"


def archetype_from_name(name: str) -> str:
    """Archetype tag is everything before the first separator: ``worker-1200-0`` -> ``worker``."""
    if not name:
        return "unknown"
    return name.split(NAME_SEPARATOR, 1)[0] or "unknown"


def make_agent_name(archetype: str, tick: int, sequence: int) -> str:
    return f"{archetype}{NAME_SEPARATOR}{tick}{NAME_SEPARATOR}{sequence}"


def parse_directive(name: str) -> tuple[str, Optional[str]]:
    """Split a directive marker name into ``(kind, argument)``.

    ``claim:W1N1`` -> ``("claim", "W1N1")``; ``defend`` -> ``("defend", None)``.
    The argument is the text after the last ``:`` and may be empty.
    """
    if ":" not in name:
        return name, None
    kind = name.split(":", 1)[0]
    return kind, name.rsplit(":", 1)[1]
