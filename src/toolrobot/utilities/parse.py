import logging

logger = logging.getLogger(__name__)

QUOTE = '"'
ESCAPE = "\\"


def check_matched_pairs(string: str, open_char="(", close_char=")") -> bool:
    """Check that all parentheses in a string are balanced and nested properly.

    Characters inside double-quoted literals are ignored.
    """
    count = 0
    in_literal = False
    escaped = False
    for c in string:
        if escaped:
            escaped = False
            continue
        if c == ESCAPE and in_literal:
            escaped = True
        elif c == QUOTE:
            in_literal = not in_literal
        elif in_literal:
            continue
        elif c == open_char:
            count += 1
        elif c == close_char:
            count -= 1
        if count < 0:
            return False
    return count == 0


def split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split text on separators that are outside of nested brackets and string literals.

    A separator inside `(...)`, `[...]`, `{...}`, or an unescaped `"..."` is not a split point.
    Every piece is trimmed and empty pieces are dropped.

    Examples
    --------
    >>> split_top_level('outer(inner(1, 2), 3), "a,b"')
    ['outer(inner(1, 2), 3)', '"a,b"']
    """
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    in_literal = False
    escaped = False

    for char in text:
        if escaped:
            current.append(char)
            escaped = False
        elif char == ESCAPE and in_literal:
            current.append(char)
            escaped = True
        elif char == QUOTE:
            in_literal = not in_literal
            current.append(char)
        elif in_literal:
            current.append(char)
        elif char in "([{":
            depth += 1
            current.append(char)
        elif char in ")]}":
            depth -= 1
            current.append(char)
        elif char == sep and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)

    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def find_closing(text: str, start: int, open_char: str = "{", close_char: str = "}") -> int:
    """Return the index of the delimiter closing the one at `start`, or -1 if unbalanced."""
    if text[start] != open_char:
        raise ValueError(f"Expected '{open_char}' at index {start}, found '{text[start]}'")

    count = 0
    in_literal = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if escaped:
            escaped = False
        elif char == ESCAPE and in_literal:
            escaped = True
        elif char == QUOTE:
            in_literal = not in_literal
        elif in_literal:
            continue
        elif char == open_char:
            count += 1
        elif char == close_char:
            count -= 1
            if count == 0:
                return i
    return -1


def is_quoted(text: str) -> bool:
    """Determine whether text is a single double-quoted literal."""
    return len(text) >= 2 and text[0] == QUOTE and text[-1] == QUOTE


def unquote(text: str) -> str:
    """Strip enclosing double quotes and resolve backslash escapes."""
    if not is_quoted(text):
        return text

    body = text[1:-1]
    escapes = {"n": "\n", "t": "\t", "r": "\r", QUOTE: QUOTE, ESCAPE: ESCAPE}
    out: list[str] = []
    chars = iter(body)
    for char in chars:
        if char == ESCAPE:
            nxt = next(chars, "")
            out.append(escapes.get(nxt, ESCAPE + nxt))
        else:
            out.append(char)
    return "".join(out)
