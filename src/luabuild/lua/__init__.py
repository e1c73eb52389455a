"""Lua source handling: tokenizer, bundler and minifier."""

from .bundler import ModuleBundler, find_requires
from .lexer import Token, tokenize
from .minifier import minify

__all__ = ["ModuleBundler", "Token", "find_requires", "minify", "tokenize"]
