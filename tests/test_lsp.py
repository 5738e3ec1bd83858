"""Tests for the 2-way SQL language server helper functions."""

import pytest
from lsprotocol import types

from twoway_sql.lsp.server import (
    _in_directive,
    _word_at_position,
    completion_items,
    diagnose,
    hover_text,
    lexpos_to_position,
)
from twoway_sql.template import TemplateEngine


@pytest.fixture(scope="module")
def engine():
    return TemplateEngine()


# ---------------------------------------------------------------------------
# lexpos_to_position
# ---------------------------------------------------------------------------


class TestLexposToPosition:
    def test_start_of_single_line(self):
        pos = lexpos_to_position("SELECT", 0)
        assert pos == types.Position(line=0, character=0)

    def test_middle_of_second_line(self):
        pos = lexpos_to_position("SELECT *\nFROM t", 11)
        assert pos == types.Position(line=1, character=2)

    def test_empty_source_offset_zero(self):
        pos = lexpos_to_position("", 0)
        assert pos == types.Position(line=0, character=0)

    def test_newline_character_itself(self):
        # The newline after "ab" is at offset 2
        pos = lexpos_to_position("ab\ncd", 2)
        assert pos == types.Position(line=0, character=2)


# ---------------------------------------------------------------------------
# diagnose
# ---------------------------------------------------------------------------


class TestDiagnose:
    def test_valid_template(self, engine):
        assert diagnose(engine, "SELECT * FROM t /*IF a*/WHERE a = :a/*END*/") == []

    def test_unterminated_comment(self, engine):
        diagnostics = diagnose(engine, "SELECT 1\nWHERE /*IF a")
        assert len(diagnostics) == 1
        diagnostic = diagnostics[0]
        assert diagnostic.range.start == types.Position(line=1, character=6)
        assert diagnostic.severity == types.DiagnosticSeverity.Error
        assert "Unterminated comment" in diagnostic.message

    def test_structural_error(self, engine):
        diagnostics = diagnose(engine, "SELECT 1 /*END*/")
        assert diagnostics[0].range.start == types.Position(line=0, character=9)
        assert diagnostics[0].message == "END without matching IF or BEGIN"

    def test_invalid_condition(self, engine):
        diagnostics = diagnose(engine, "/*IF a ==*/x/*END*/")
        assert diagnostics[0].message.startswith("Invalid condition 'a =='")


# ---------------------------------------------------------------------------
# completion / hover
# ---------------------------------------------------------------------------


class TestCompletion:
    def test_in_directive(self):
        assert _in_directive("SELECT /*IF a") is True
        assert _in_directive("SELECT /*IF a*/ x") is False
        assert _in_directive("SELECT x") is False

    def test_keywords_after_comment_start(self):
        labels = [item.label for item in completion_items("WHERE /*")]
        assert labels[:2] == ["IF", "ELIF"]
        assert "BEGIN" in labels

    def test_functions_inside_condition(self):
        items = completion_items("/*IF is_")
        labels = [item.label for item in items]
        assert "is_empty" in labels
        assert "SF.isNotBlank" in labels
        assert all(item.kind == types.CompletionItemKind.Function for item in items)

    def test_nothing_outside_directives(self):
        assert completion_items("SELECT * FROM t") == []


class TestHover:
    def test_word_at_position(self):
        assert _word_at_position("/*IF SF.isEmpty(x)*/", 7) == "SF.isEmpty"
        assert _word_at_position("/*IF a*/", 2) == "IF"
        assert _word_at_position("/*IF a*/", 0) == ""
        assert _word_at_position("abc", 10) == ""

    def test_directive_hover(self):
        assert hover_text("BEGIN").startswith("**BEGIN**: Optional block")

    def test_function_hover(self):
        assert hover_text("is_blank").startswith("**is_blank()**")
        assert hover_text("SF.isBlank") == "**SF.isBlank()**: string function"

    def test_unknown_word(self):
        assert hover_text("employees") is None
