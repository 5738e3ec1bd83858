"""Tests for the template engine facade: options, paramstyles, mappers and auto binders."""

import datetime
import enum
from concurrent.futures import ThreadPoolExecutor

import pytest

from twoway_sql import MapperRegistry, TemplateEngine, TransformOptions
from twoway_sql.context import MappingLookup
from twoway_sql.errors import EvaluationError, MissingParameterError, ParseError
from twoway_sql.evaluator import DefaultExpressionEvaluator, FunctionRegistry


class Status(enum.Enum):
    ACTIVE = "A"
    RETIRED = "R"


class Money:
    def __init__(self, cents):
        self.cents = cents


class MoneyMapper:
    def can_accept(self, value):
        return isinstance(value, Money)

    def to_bind(self, value):
        return value.cents / 100

    def to_literal(self, value):
        return f"{value.cents / 100:.2f}"


@pytest.fixture
def engine():
    return TemplateEngine()


class TestTransformOptions:
    def test_defaults(self):
        options = TransformOptions()
        assert options.paramstyle == "qmark"
        assert options.validate_expressions is True
        assert options.postprocess is False

    def test_unknown_paramstyle(self):
        with pytest.raises(ValueError, match="Unknown paramstyle 'dollar'"):
            TransformOptions(paramstyle="dollar")

    def test_from_mapping(self):
        options = TransformOptions.from_mapping({"paramstyle": "named", "strict_names": True})
        assert options.paramstyle == "named"
        assert options.strict_names is True

    def test_from_mapping_rejects_unknown_keys(self):
        with pytest.raises(ValueError, match="Unknown option"):
            TransformOptions.from_mapping({"paramstyel": "named"})


class TestParamstyles:
    SOURCE = "SELECT * FROM t WHERE name LIKE 'a%' AND id = /*user.id*/1 AND x IN /*xs*/(1)"
    PARAMS = {"user": {"id": 7}, "xs": [1, 2]}

    @pytest.mark.parametrize(
        "paramstyle, expected",
        [
            ("qmark", "SELECT * FROM t WHERE name LIKE 'a%' AND id = ? AND x IN (?, ?)"),
            ("numeric", "SELECT * FROM t WHERE name LIKE 'a%' AND id = :1 AND x IN (:2, :3)"),
            ("named", "SELECT * FROM t WHERE name LIKE 'a%' AND id = :user_id AND x IN (:xs_0, :xs_1)"),
            ("format", "SELECT * FROM t WHERE name LIKE 'a%%' AND id = %s AND x IN (%s, %s)"),
            (
                "pyformat",
                "SELECT * FROM t WHERE name LIKE 'a%%' AND id = %(user_id)s AND x IN (%(xs_0)s, %(xs_1)s)",
            ),
        ],
    )
    def test_placeholders(self, paramstyle, expected):
        engine = TemplateEngine(TransformOptions(paramstyle=paramstyle))
        assert engine.render(self.SOURCE, self.PARAMS).sql == expected

    def test_as_dict(self):
        engine = TemplateEngine(TransformOptions(paramstyle="named"))
        result = engine.render(self.SOURCE, self.PARAMS)
        assert result.as_dict() == {"user_id": 7, "xs_0": 1, "xs_1": 2}

    def test_colliding_keys_get_a_suffix(self):
        engine = TemplateEngine(TransformOptions(paramstyle="named"))
        result = engine.render(
            "a = /*user.id*/1 AND b = /*user_id*/2 AND c = /*user.id*/1",
            {"user": {"id": 1}, "user_id": 2},
        )
        assert result.sql == "a = :user_id AND b = :user_id_2 AND c = :user_id"
        assert result.as_dict() == {"user_id": 1, "user_id_2": 2}

    def test_colliding_keys_in_pyformat(self):
        engine = TemplateEngine(TransformOptions(paramstyle="pyformat"))
        result = engine.render("x IN /*ids*/(1) AND y = /*ids_0*/0", {"ids": [5, 6], "ids_0": 9})
        assert result.sql == "x IN (%(ids_0)s, %(ids_1)s) AND y = %(ids_0_2)s"
        assert result.as_dict() == {"ids_0": 5, "ids_1": 6, "ids_0_2": 9}


class TestMappers:
    def test_enum_binds_by_value(self, engine):
        result = engine.render("WHERE status = /*status*/'A'", {"status": Status.RETIRED})
        assert result.values == ["R"]

    def test_default_literals(self, engine):
        source = "SELECT /*$flag*/true, /*#day*/'2000-01-01', /*#status*/'A', /*$n*/1"
        result = engine.render(
            source,
            {"flag": False, "day": datetime.date(2024, 2, 29), "status": Status.ACTIVE, "n": 42},
        )
        assert result.sql == "SELECT FALSE, '2024-02-29', 'A', 42"

    def test_datetime_literal(self, engine):
        value = datetime.datetime(2024, 1, 2, 3, 4, 5)
        assert engine.render("SELECT /*#ts*/''", {"ts": value}).sql == "SELECT '2024-01-02 03:04:05'"

    def test_custom_mappers(self):
        mappers = MapperRegistry(bind_mappers=[MoneyMapper()], literal_mappers=[MoneyMapper()])
        engine = TemplateEngine(mappers=mappers)

        result = engine.render("SELECT /*$price*/0 WHERE p = /*price*/0", {"price": Money(1250)})
        assert result.sql == "SELECT 12.50 WHERE p = ?"
        assert result.values == [12.5]

    def test_added_mapper_takes_precedence(self):
        class UpperEnum:
            def can_accept(self, value):
                return isinstance(value, enum.Enum)

            def to_bind(self, value):
                return value.name

        mappers = MapperRegistry()
        mappers.add_bind_mapper(UpperEnum())
        engine = TemplateEngine(mappers=mappers)

        assert engine.render("x = :s", {"s": Status.ACTIVE}).values == ["ACTIVE"]

    def test_added_literal_mapper_takes_precedence(self):
        class NumericBool:
            def can_accept(self, value):
                return isinstance(value, bool)

            def to_literal(self, value):
                return "1" if value else "0"

        mappers = MapperRegistry()
        mappers.add_literal_mapper(NumericBool())
        engine = TemplateEngine(mappers=mappers)

        result = engine.render("SELECT /*$on*/true, /*#off*/'x'", {"on": True, "off": False})
        assert result.sql == "SELECT 1, '0'"

    def test_mappers_apply_to_in_list_items(self, engine):
        result = engine.render("x IN /*s*/('A')", {"s": [Status.ACTIVE, Status.RETIRED]})
        assert result.values == ["A", "R"]


class TestAutoBinders:
    def test_defaults_are_bound(self, engine):
        engine.add_auto_binder(lambda params: params.update(tenant=7))
        template = engine.parse("WHERE tenant = /*tenant*/1 AND id = /*id*/1")

        assert template.transform({"id": 1}).values == [7, 1]

    def test_binder_values_override_explicit_parameters(self, engine):
        engine.add_auto_binder(lambda params: params.update(upd="auto"))
        assert engine.render("x = /*upd*/1", {"upd": "explicit"}).values == ["auto"]

    def test_explicit_parameters_supply_other_names(self, engine):
        engine.add_auto_binder(lambda params: params.update(tenant=7))
        result = engine.render("WHERE tenant = :tenant AND id = :id", {"tenant": 9, "id": 3})
        assert result.values == [7, 3]

    def test_defaults_are_visible_to_conditions(self, engine):
        engine.add_auto_binder(lambda params: params.update(deleted=False))
        assert engine.render("x/*IF deleted == false*/ AND live/*END*/").sql == "x AND live"

    def test_remove_binder(self, engine):
        def binder(params):
            params["tenant"] = 7

        engine.add_auto_binder(binder)
        engine.remove_auto_binder(binder)
        with pytest.raises(MissingParameterError):
            engine.render("WHERE tenant = :tenant")


class TestEngine:
    def test_validation_at_parse_time(self, engine):
        with pytest.raises(ParseError):
            engine.parse("/*IF a ==*/x/*END*/")

    def test_validation_disabled(self):
        engine = TemplateEngine(TransformOptions(validate_expressions=False))
        template = engine.parse("/*IF a ==*/x/*END*/")
        with pytest.raises(EvaluationError):
            template.transform({})

    def test_strict_names_option(self):
        engine = TemplateEngine(TransformOptions(strict_names=True))
        with pytest.raises(EvaluationError):
            engine.render("/*IF a != null*/x/*END*/")

    def test_custom_functions(self):
        engine = TemplateEngine(functions=FunctionRegistry({"is_even": lambda n: n % 2 == 0}))
        assert engine.render("/*IF is_even(n)*/even/*ELSE*/odd/*END*/", {"n": 4}).sql == "even"

    def test_functions_need_default_evaluator(self):
        with pytest.raises(ValueError):
            TemplateEngine(evaluator=DefaultExpressionEvaluator(), functions=FunctionRegistry())

    def test_custom_evaluator(self):
        class AlwaysTrue:
            def compile(self, expression):
                return expression

            def evaluate(self, expression, lookup):
                return True

        engine = TemplateEngine(evaluator=AlwaysTrue())
        assert engine.render("/*IF anything at all*/yes/*END*/").sql == "yes"

    def test_custom_lookup(self, engine):
        class Env:
            def has_value(self, name):
                return name == "table"

            def get_value(self, name):
                return "sales.orders"

        template = engine.parse("SELECT * FROM /*$table*/orders")
        assert template.transform(lookup=Env()).sql == "SELECT * FROM sales.orders"

    def test_params_and_lookup_are_exclusive(self, engine):
        template = engine.parse("SELECT 1")
        with pytest.raises(ValueError):
            template.transform({}, lookup=MappingLookup({}))

    def test_template_metadata(self, engine):
        template = engine.parse("a = :a /*IF b*/AND c = /*#c*/'x'/*END*/", name="q.sql")
        assert template.name == "q.sql"
        assert template.parameter_names() == ["a", "c"]
        assert repr(template) == "SqlTemplate(name='q.sql', branches=1)"

    def test_shared_template_across_threads(self, engine):
        template = engine.parse(
            "SELECT * FROM t WHERE 1 = 1"
            "/*IF id != null*/ AND id = /*id*/1/*END*/"
            "/*IF ids != null*/ AND id IN /*ids*/(1)/*END*/"
        )

        def run(i):
            params = {"id": i} if i % 2 else {"ids": list(range(i % 5 + 1))}
            return i, template.transform(params)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(run, range(200)))

        for i, result in results:
            if i % 2:
                assert result.sql == "SELECT * FROM t WHERE 1 = 1 AND id = ?"
                assert result.values == [i]
            else:
                n = i % 5 + 1
                assert result.sql == "SELECT * FROM t WHERE 1 = 1 AND id IN (" + ", ".join(["?"] * n) + ")"
                assert result.values == list(range(n))
