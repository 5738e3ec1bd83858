"""Tests for SQL clean-up passes."""

import pytest

from twoway_sql import postprocess
from twoway_sql.config import TransformOptions


class TestFixDanglingKeywords:
    @pytest.mark.parametrize(
        "sql, expected",
        [
            ("SELECT * FROM t WHERE AND a = 1", "SELECT * FROM t WHERE a = 1"),
            ("SELECT * FROM t WHERE\n  OR a = 1", "SELECT * FROM t WHERE\n  a = 1"),
            ("SELECT * FROM t WHERE", "SELECT * FROM t"),
            ("SELECT * FROM t WHERE ORDER BY a", "SELECT * FROM t ORDER BY a"),
            ("SELECT * FROM (SELECT 1 FROM t WHERE ) x", "SELECT * FROM (SELECT 1 FROM t ) x"),
            ("SELECT a FROM t GROUP BY a HAVING;", "SELECT a FROM t GROUP BY a;"),
            ("UPDATE t SET , a = 1", "UPDATE t SET a = 1"),
            ("SELECT a, b, FROM t", "SELECT a, b FROM t"),
            ("INSERT INTO t (a, b,) VALUES (1, 2)", "INSERT INTO t (a, b) VALUES (1, 2)"),
            ("SELECT * FROM t WHERE a = 1 AND b = 2", "SELECT * FROM t WHERE a = 1 AND b = 2"),
        ],
    )
    def test_fix(self, sql, expected):
        assert postprocess.fix_dangling_keywords(sql) == expected

    def test_words_containing_keywords_are_kept(self):
        sql = "SELECT band, orders FROM t WHERE brand = 1"
        assert postprocess.fix_dangling_keywords(sql) == sql


class TestWhitespace:
    def test_collapse_whitespace(self):
        assert postprocess.collapse_whitespace("  SELECT   a,\t b \nFROM  t  ") == "SELECT a, b\nFROM t"

    def test_remove_blank_lines(self):
        assert postprocess.remove_blank_lines("SELECT 1\n\n   \nFROM t\n") == "SELECT 1\nFROM t"


class TestApply:
    def test_disabled_by_default(self):
        sql = "SELECT *  FROM t WHERE\n\n"
        assert postprocess.apply(sql, TransformOptions()) == sql

    def test_literals_and_comments_are_protected(self):
        options = TransformOptions(collapse_whitespace=True, fix_dangling_keywords=True)
        sql = "SELECT 'a  WHERE  AND', \"x,  )\" FROM t  -- WHERE\n/* a ,  FROM */ WHERE AND b = 1"
        assert postprocess.apply(sql, options) == (
            "SELECT 'a  WHERE  AND', \"x,  )\" FROM t -- WHERE\n/* a ,  FROM */ WHERE b = 1"
        )

    def test_all_passes(self):
        options = TransformOptions(
            collapse_whitespace=True,
            remove_blank_lines=True,
            fix_dangling_keywords=True,
        )
        sql = "SELECT *\n  FROM emp\n  WHERE\n\n    AND   id = ?\n\n"
        assert postprocess.apply(sql, options) == "SELECT *\nFROM emp\nWHERE\nid = ?"
