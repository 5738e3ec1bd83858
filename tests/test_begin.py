"""Tests for optional BEGIN ... END blocks."""

import pytest

from twoway_sql import TemplateEngine, TransformOptions
from twoway_sql.errors import MissingParameterError

SEARCH = (
    "SELECT * FROM emp "
    "/*BEGIN*/WHERE "
    "/*IF id != null*/id = /*id*/1/*END*/ "
    "/*IF name != null*/AND name = /*name*/'x'/*END*/"
    "/*END*/"
)


@pytest.fixture
def engine():
    return TemplateEngine()


@pytest.fixture
def tidy_engine():
    return TemplateEngine(TransformOptions(collapse_whitespace=True, fix_dangling_keywords=True))


class TestBeginBlock:
    def test_block_with_only_absent_bind_is_dropped(self, engine):
        result = engine.render("SELECT 1 /*BEGIN*/AND x = /*x*/1/*END*/")
        assert result.sql == "SELECT 1 "
        assert result.binds == ()

    def test_block_with_present_bind_is_kept(self, engine):
        result = engine.render("SELECT 1 /*BEGIN*/AND x = /*x*/1/*END*/", {"x": 2})
        assert result.sql == "SELECT 1 AND x = ?"
        assert result.values == [2]

    def test_null_counts_as_present(self, engine):
        result = engine.render("/*BEGIN*/AND x = /*x*/1/*END*/", {"x": None})
        assert result.sql == "AND x = ?"
        assert result.values == [None]

    def test_block_without_variables_is_dropped(self, engine):
        assert engine.render("a/*BEGIN*/static/*END*/b").sql == "ab"

    def test_block_dropped_when_no_condition_holds(self, engine):
        assert engine.render(SEARCH).sql == "SELECT * FROM emp "

    def test_block_kept_when_a_condition_holds(self, engine):
        result = engine.render(SEARCH, {"id": 3})
        assert result.sql == "SELECT * FROM emp WHERE id = ? "
        assert result.values == [3]

    def test_dangling_keywords_are_fixed(self, tidy_engine):
        assert tidy_engine.render(SEARCH, {"name": "a"}).sql == "SELECT * FROM emp WHERE name = ?"
        assert tidy_engine.render(SEARCH, {"id": 1, "name": "a"}).sql == (
            "SELECT * FROM emp WHERE id = ? AND name = ?"
        )
        assert tidy_engine.render(SEARCH).sql == "SELECT * FROM emp"

    def test_partially_present_block_raises(self, engine):
        with pytest.raises(MissingParameterError) as exc_info:
            engine.render("/*BEGIN*/a = /*a*/1 AND b = /*b*/2/*END*/", {"a": 1})
        assert exc_info.value.name == "b"

    def test_fully_absent_block_with_several_binds_is_dropped(self, engine):
        assert engine.render("x/*BEGIN*/a = /*a*/1 AND b = /*b*/2/*END*/").sql == "x"

    def test_embedded_value_counts(self, engine):
        template = "ORDER BY id/*BEGIN*/, /*$extra*/name/*END*/"
        assert engine.render(template).sql == "ORDER BY id"
        assert engine.render(template, {"extra": "dept"}).sql == "ORDER BY id, dept"

    def test_nested_blocks(self, engine):
        source = "/*BEGIN*/WHERE a = /*a*/1/*BEGIN*/ AND b = /*b*/2/*END*//*END*/"
        assert engine.render(source, {"a": 1}).sql == "WHERE a = ?"
        assert engine.render(source, {"a": 1, "b": 2}).sql == "WHERE a = ? AND b = ?"
        assert engine.render(source).sql == ""

    def test_inner_block_keeps_outer_alive(self, engine):
        source = "/*BEGIN*/WHERE 1 = 1/*BEGIN*/ AND b = /*b*/2/*END*//*END*/"
        assert engine.render(source, {"b": 5}).sql == "WHERE 1 = 1 AND b = ?"
        assert engine.render(source).sql == ""

    def test_absent_names_outside_block_still_raise(self, engine):
        with pytest.raises(MissingParameterError):
            engine.render("/*BEGIN*/a = /*a*/1/*END*/ AND b = :b", {"a": 1})
