"""Tests for the lenient tokenizer."""

import pytest

from src.tools.scanner import (
    TokenKind,
    classify_word,
    iter_with_context,
    next_significant,
    prev_significant,
    render,
    string_body,
    tokenize,
)


def _kinds(text: str) -> list[TokenKind]:
    return [t.kind for t in tokenize(text) if t.is_significant]


class TestTokenize:
    @pytest.mark.parametrize("text", [
        "",
        '{"a": [1, 2.5, true, null]}',
        "{name: 'Alice', // note\n skills: [js ts]}",
        '{"a": "unterminated',
        "/* block */ [1,,2]]",
        "{“smart”: ‘quotes’}",
        'see https://example.com/x?y=1 now',
        "\\ stray \x00 chars ' \"",
    ])
    def test_render_round_trip(self, text):
        assert render(tokenize(text)) == text

    def test_basic_kinds(self):
        assert _kinds('{"a": [1, true]}') == [
            TokenKind.LBRACE, TokenKind.STRING, TokenKind.COLON,
            TokenKind.LBRACKET, TokenKind.NUMBER, TokenKind.COMMA,
            TokenKind.LITERAL, TokenKind.RBRACKET, TokenKind.RBRACE,
        ]

    def test_string_with_escaped_quote(self):
        tokens = tokenize(r'"say \"hi\"" x')
        assert tokens[0].text == r'"say \"hi\""'
        assert tokens[0].terminated

    def test_single_quoted_string(self):
        tok = tokenize("'it\\'s'")[0]
        assert tok.kind == TokenKind.STRING
        assert tok.quote == "'"
        assert string_body(tok) == "it\\'s"

    def test_unterminated_string(self):
        tok = tokenize('"abc')[0]
        assert tok.kind == TokenKind.STRING
        assert not tok.terminated
        assert string_body(tok) == "abc"

    def test_comments(self):
        tokens = tokenize("1 // rest of line\n2 /* x */")
        comments = [t.text for t in tokens if t.kind == TokenKind.COMMENT]
        assert comments == ["// rest of line", "/* x */"]

    def test_url_is_one_word(self):
        tokens = tokenize("https://example.com/path")
        assert len(tokens) == 1
        assert tokens[0].kind == TokenKind.BAREWORD

    def test_apostrophe_inside_word(self):
        tokens = tokenize("don't stop")
        assert tokens[0].text == "don't"
        assert tokens[0].kind == TokenKind.BAREWORD


class TestClassifyWord:
    def test_literals(self):
        for word in ("true", "false", "null", "True", "None", "undefined"):
            assert classify_word(word) == TokenKind.LITERAL

    def test_numbers(self):
        for word in ("0", "-12", "3.14", "1.5e3"):
            assert classify_word(word) == TokenKind.NUMBER

    def test_barewords(self):
        for word in ("Python", "1.2.3", "01", "v2"):
            assert classify_word(word) == TokenKind.BAREWORD


class TestContext:
    def test_containers(self):
        tokens = tokenize('{"a": [1]}')
        contexts = [(t.text, c) for _, t, c in iter_with_context(tokens)]
        assert contexts == [
            ("{", None),
            ('"a"', TokenKind.LBRACE),
            (":", TokenKind.LBRACE),
            (" ", TokenKind.LBRACE),
            ("[", TokenKind.LBRACE),
            ("1", TokenKind.LBRACKET),
            ("]", TokenKind.LBRACKET),
            ("}", TokenKind.LBRACE),
        ]

    def test_significant_neighbours(self):
        tokens = tokenize("[1 /* c */ , 2]")
        assert tokens[next_significant(tokens, 1)].kind == TokenKind.COMMA
        assert tokens[prev_significant(tokens, 1)].kind == TokenKind.LBRACKET
        assert next_significant(tokens, len(tokens) - 1) is None
        assert prev_significant(tokens, 0) is None
