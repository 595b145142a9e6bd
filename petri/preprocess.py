"""
Macro preprocessing for configuration strings.

Replaces every ${...} span with the textual result of evaluating its
contents, and collapses $$ into a literal $. A single forward pass:
substituted text is never scanned again, and an unmatched ${ leaves the
rest of the string untouched.
"""

from typing import Callable

from .constants import MACRO_CHAR, MACRO_OPEN, MACRO_CLOSE


def find_brace_match(text: str, open_pos: int, open_char: str = MACRO_OPEN,
                     close_char: str = MACRO_CLOSE) -> int:
    """
    Find the brace closing the one at open_pos, honoring nesting.

    Returns:
        Index of the matching close brace, or -1 if there is none
    """
    depth = 0
    for pos in range(open_pos, len(text)):
        ch = text[pos]
        if ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return pos
    return -1


def preprocess(text: str, execute: Callable[[str], str]) -> str:
    """
    Expand ${...} macros in a string.

    Args:
        text: Input string
        execute: Evaluates the inside of a ${...} span and returns its text
            (may itself call preprocess for nested strings)

    Returns:
        Expanded string

    Example:
        preprocess("size=${2*4}", evaluator)  ->  "size=8"
        preprocess("cost: $$5", evaluator)     ->  "cost: $5"
    """
    out = []
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        if ch != MACRO_CHAR or i + 1 >= n:
            out.append(ch)
            i += 1
            continue

        nxt = text[i + 1]
        if nxt == MACRO_CHAR:
            out.append(MACRO_CHAR)
            i += 2
            continue

        if nxt != MACRO_OPEN:
            out.append(ch)
            i += 1
            continue

        end = find_brace_match(text, i + 1)
        if end == -1:
            out.append(text[i:])  # No closing brace: leave the rest as is
            break

        out.append(str(execute(text[i + 2:end])))
        i = end + 1

    return ''.join(out)
