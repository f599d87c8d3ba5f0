"""Line codec for the session log.

One record per logical line, fields joined by a comma. A field containing the
separator, a quote or a newline is wrapped in quotes with internal quotes
doubled. Field-count validation is left to the caller.
"""

from typing import Iterable, List, Optional

SEPARATOR = ","
QUOTE = '"'

_NEEDS_QUOTING = (SEPARATOR, QUOTE, "\n")


def escape_field(value: object) -> str:
    """Escape a single field value for the log line."""
    text = str(value)
    if any(token in text for token in _NEEDS_QUOTING):
        return QUOTE + text.replace(QUOTE, QUOTE * 2) + QUOTE
    return text


def encode(fields: Iterable[object]) -> str:
    """Encode field values as one line (without the trailing newline)."""
    return SEPARATOR.join(escape_field(field) for field in fields)


def decode(line: str) -> List[str]:
    """Split a line back into field values, undoing the quoting from encode()."""
    values: List[str] = []
    current: List[str] = []
    in_quotes = False

    i = 0
    while i < len(line):
        char = line[i]

        if char == QUOTE:
            if in_quotes and i + 1 < len(line) and line[i + 1] == QUOTE:
                current.append(QUOTE)
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == SEPARATOR and not in_quotes:
            values.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1

    values.append("".join(current))
    return values


def split_lines(text: str) -> List[str]:
    """Split log text into logical lines.

    A newline inside a quoted field doesn't end the line: physical lines
    are joined until every opened quote is closed. Empty lines are kept;
    callers filter them.
    """
    lines: List[str] = []
    pending: Optional[str] = None

    for physical in text.split("\n"):
        candidate = physical if pending is None else pending + "\n" + physical
        if candidate.count(QUOTE) % 2:
            pending = candidate
            continue
        pending = None
        lines.append(candidate)

    if pending is not None:
        lines.append(pending)
    return lines
