"""
Lua tokenizer.

Splits Lua 5.x source into tokens without discarding anything: whitespace
and comments are tokens too, so joining every token's text gives back the
exact input. The bundler reads `require` calls from this form and the
minifier rebuilds compact source from it.

Token kinds:
    name, keyword, number, string, comment, op, space
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from luabuild.errors import LuaSyntaxError


KEYWORDS = frozenset({
    "and", "break", "do", "else", "elseif", "end", "false", "for",
    "function", "goto", "if", "in", "local", "nil", "not", "or",
    "repeat", "return", "then", "true", "until", "while",
})

_SPACE_CHARS = " \t\n\r\f\v"
_SPACE_RE = re.compile(r"[ \t\n\r\f\v]+")
# Byte order mark as text, and as UTF-8 bytes read through latin-1
BOMS = ("\ufeff", "\xef\xbb\xbf")
_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(
    r"0[xX](?:[0-9a-fA-F]*\.?[0-9a-fA-F]*)(?:[pP][+-]?\d+)?"
    r"|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"
)
_DIGITS = "0123456789"
_LONG_OPEN_RE = re.compile(r"\[(=*)\[")
# Longest operators first
_OPERATORS = (
    "...", "..", "==", "~=", "<=", ">=", "//", "::", "<<", ">>",
    "+", "-", "*", "/", "%", "^", "#", "&", "~", "|", "<", ">", "=",
    "(", ")", "{", "}", "[", "]", ";", ":", ",", ".",
)


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    line: int = 1

    @property
    def is_trivia(self) -> bool:
        """Whitespace or comment."""
        return self.kind in ("space", "comment")

    def string_value(self) -> Optional[str]:
        """
        Contents of a string token, without its delimiters.

        Escapes in short strings are only unescaped for the common cases
        (quotes and backslashes); module names never need more.
        """
        if self.kind != "string":
            return None
        text = self.text
        if text[0] in "\"'":
            body = text[1:-1]
            return re.sub(r"\\(.)", r"\1", body)
        match = _LONG_OPEN_RE.match(text)
        level = len(match.group(1))
        body = text[level + 2:-(level + 2)]
        # A newline right after the opening bracket is not part of the string
        if body.startswith("\r\n"):
            return body[2:]
        if body.startswith("\n"):
            return body[1:]
        return body


def _read_long_bracket(source: str, pos: int, line: int, what: str) -> int:
    """Return the end offset of the long bracket opening at `pos`."""
    match = _LONG_OPEN_RE.match(source, pos)
    closing = "]" + match.group(1) + "]"
    end = source.find(closing, match.end())
    if end < 0:
        raise LuaSyntaxError(f"Unfinished long {what}", line)
    return end + len(closing)


def _read_short_string(source: str, pos: int, line: int) -> int:
    quote = source[pos]
    length = len(source)
    i = pos + 1
    while i < length:
        ch = source[i]
        if ch == "\\":
            escaped = source[i + 1:i + 2]
            i += 2
            if escaped == "z":
                while i < length and source[i] in _SPACE_CHARS:
                    i += 1
            elif escaped in ("\r", "\n") and source[i:i + 1] in ("\r", "\n") and source[i] != escaped:
                # \r\n and \n\r count as a single line break
                i += 1
            continue
        if ch == quote:
            return i + 1
        if ch in "\r\n":
            break
        i += 1
    raise LuaSyntaxError("Unfinished string", line)


def tokenize(source: str) -> List[Token]:
    """
    Tokenize Lua source.

    Args:
        source: Lua code

    Returns:
        Tokens in source order, trivia included

    Raises:
        LuaSyntaxError: On unterminated strings/comments or unknown characters
    """
    tokens: List[Token] = []
    pos = 0
    line = 1
    length = len(source)
    bom = next((b for b in BOMS if source.startswith(b)), "")

    while pos < length:
        ch = source[pos]

        if ch in _SPACE_CHARS:
            end = _SPACE_RE.match(source, pos).end()
            kind = "space"

        elif pos == 0 and bom:
            end = len(bom)
            kind = "space"

        elif pos == len(bom) and source.startswith("#!", pos):
            # Shebang line
            newline = source.find("\n", pos)
            end = newline if newline >= 0 else length
            kind = "comment"

        elif source.startswith("--", pos):
            if _LONG_OPEN_RE.match(source, pos + 2):
                end = _read_long_bracket(source, pos + 2, line, "comment")
            else:
                newline = source.find("\n", pos)
                end = newline if newline >= 0 else length
            kind = "comment"

        elif ch in "\"'":
            end = _read_short_string(source, pos, line)
            kind = "string"

        elif ch == "[" and _LONG_OPEN_RE.match(source, pos):
            end = _read_long_bracket(source, pos, line, "string")
            kind = "string"

        elif ch in _DIGITS or (ch == "." and pos + 1 < length and source[pos + 1] in _DIGITS):
            end = _NUMBER_RE.match(source, pos).end()
            kind = "number"

        elif _NAME_RE.match(source, pos):
            end = _NAME_RE.match(source, pos).end()
            kind = "keyword" if source[pos:end] in KEYWORDS else "name"

        else:
            for op in _OPERATORS:
                if source.startswith(op, pos):
                    end = pos + len(op)
                    kind = "op"
                    break
            else:
                raise LuaSyntaxError(f"Unexpected character {ch!r}", line)

        text = source[pos:end]
        tokens.append(Token(kind, text, line))
        line += text.count("\n")
        pos = end

    return tokens
