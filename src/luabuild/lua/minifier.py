"""
Lua minifier.

Rebuilds source from tokens with comments and whitespace removed. A single
space is kept only where two neighbouring tokens would otherwise lex as
something else (`local x`, `a - -b`, `1 ..x`, `t[ [[s]] ]`).
"""

from typing import Iterable, List

from luabuild.lua.lexer import Token


_WORD_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_")
# Two-character sequences that would merge into a different token
_MERGING_PAIRS = frozenset({
    "--", "..", "==", "~=", "<=", ">=", "//", "::", "<<", ">>", "[[", "[=",
})


def _needs_space(prev: Token, token: Token) -> bool:
    a = prev.text[-1]
    b = token.text[0]
    if a in _WORD_CHARS and b in _WORD_CHARS:
        return True
    if a + b in _MERGING_PAIRS:
        return True
    # `1 .. x` must not become `1..x`, `a.b` after a number must stay apart
    if prev.kind == "number" and b == ".":
        return True
    if token.kind == "number" and a == ".":
        return True
    return False


def minify(tokens: Iterable[Token]) -> str:
    """
    Produce compact Lua source from a token stream.

    Args:
        tokens: Output of `tokenize`, trivia included or not

    Returns:
        Minified source
    """
    parts: List[str] = []
    prev = None
    for token in tokens:
        if token.is_trivia:
            continue
        if prev is not None and _needs_space(prev, token):
            parts.append(" ")
        parts.append(token.text)
        prev = token
    return "".join(parts)
