"""
Tests for the Lua tokenizer.

The tokenizer must be lossless: joining every token's text gives back the
input exactly.
"""

import pytest

from luabuild.errors import LuaSyntaxError
from luabuild.lua.lexer import Token, tokenize


def kinds(source):
    return [(t.kind, t.text) for t in tokenize(source) if not t.is_trivia]


SAMPLE = '''#!/usr/bin/env lua
-- A comment
local core = require("core:utils")
--[==[ long
comment ]==]
local s = [[
multi
line]] .. 'single \\' quoted' .. "double"
local n = 0x1F + 3.5e-2 + .5 // 2
if n ~= 1 and n >= 2 then print(#s, n << 1) end
goto done ::done::
'''


class TestLossless:
    """Concatenated tokens reproduce the source."""

    def test_roundtrip_sample(self):
        assert "".join(t.text for t in tokenize(SAMPLE)) == SAMPLE

    def test_empty_source(self):
        assert tokenize("") == []


class TestTokenKinds:
    """Individual token classification."""

    def test_keywords_and_names(self):
        assert kinds("local x = nil") == [
            ("keyword", "local"), ("name", "x"), ("op", "="), ("keyword", "nil"),
        ]

    def test_numbers(self):
        assert [text for kind, text in kinds("1 2.5 .5 0xFF 1e10 3.0E-2") if kind == "number"] == [
            "1", "2.5", ".5", "0xFF", "1e10", "3.0E-2",
        ]

    def test_longest_operator_wins(self):
        assert [text for _, text in kinds("a...b..c==d~=e<=f>=g//h::i<<j>>k")
                if not text.isalpha()] == ["...", "..", "==", "~=", "<=", ">=", "//", "::", "<<", ">>"]

    def test_line_comment_stops_at_newline(self):
        tokens = tokenize("-- note\nx")
        assert tokens[0].kind == "comment"
        assert tokens[0].text == "-- note"
        assert tokens[-1].text == "x"

    def test_long_comment_with_level(self):
        tokens = tokenize("--[=[ a ]] b ]=]x")
        assert tokens[0].kind == "comment"
        assert tokens[0].text == "--[=[ a ]] b ]=]"

    def test_long_string(self):
        tokens = tokenize("[==[a]]b]==]")
        assert len(tokens) == 1
        assert tokens[0].kind == "string"
        assert tokens[0].string_value() == "a]]b"

    def test_long_string_skips_first_newline(self):
        assert tokenize("[[\nabc]]")[0].string_value() == "abc"

    def test_short_string_escapes(self):
        token = tokenize(r'"say \"hi\""')[0]
        assert token.kind == "string"
        assert token.string_value() == 'say "hi"'

    def test_index_bracket_is_operator(self):
        assert kinds("t[1]") == [("name", "t"), ("op", "["), ("number", "1"), ("op", "]")]

    def test_shebang_is_comment(self):
        tokens = tokenize("#!/usr/bin/lua\nprint(1)")
        assert tokens[0].kind == "comment"

    def test_z_escape_skips_following_whitespace(self):
        source = 'x = "abc\\z\n   def"'
        assert kinds(source) == [("name", "x"), ("op", "="), ("string", '"abc\\z\n   def"')]

    def test_backslash_crlf_continuation(self):
        source = 'x = "abc\\\r\ndef"\r\ny = 1'
        tokens = tokenize(source)
        assert "".join(t.text for t in tokens) == source
        assert [t.text for t in tokens if t.kind == "string"] == ['"abc\\\r\ndef"']

    def test_bare_carriage_return_ends_string(self):
        with pytest.raises(LuaSyntaxError):
            tokenize('x = "abc\rdef"')

    @pytest.mark.parametrize("bom", ["\ufeff", "\xef\xbb\xbf"])
    def test_leading_byte_order_mark(self, bom):
        source = bom + "#!/usr/bin/lua\nprint(1)"
        tokens = tokenize(source)
        assert tokens[0] == Token("space", bom)
        assert tokens[1].kind == "comment"
        assert "".join(t.text for t in tokens) == source

    def test_line_numbers(self):
        tokens = [t for t in tokenize("a\n[[x\ny]]\nb") if not t.is_trivia]
        assert [t.line for t in tokens] == [1, 2, 4]


class TestErrors:
    """Unterminated constructs are reported with their line."""

    def test_unfinished_string(self):
        with pytest.raises(LuaSyntaxError) as excinfo:
            tokenize('x = "abc\ny = 1')
        assert excinfo.value.line == 1

    def test_unfinished_long_string(self):
        with pytest.raises(LuaSyntaxError):
            tokenize("x = [[abc")

    def test_unfinished_long_comment(self):
        with pytest.raises(LuaSyntaxError) as excinfo:
            tokenize("\n\n--[[ never closed")
        assert excinfo.value.line == 3

    def test_unexpected_character(self):
        with pytest.raises(LuaSyntaxError):
            tokenize("x = $")
