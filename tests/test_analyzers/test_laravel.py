"""Tests for shared Laravel helpers and route chain walking."""

import pytest

from shieldlint.analyzers.laravel import (
    array_entry,
    config_array,
    env_key,
    is_eloquent_model,
    json_key_line,
    literal_value,
    load_json,
    looks_like_model,
)
from shieldlint.analyzers.routing import iter_route_chains, middleware_names, route_uri
from shieldlint.exceptions import AnalysisError
from shieldlint.syntax.nodes import (
    ArrayItem,
    ArrayLiteral,
    ClassDecl,
    ConstantRef,
    FunctionCall,
    IntLiteral,
    MethodCall,
    StaticCall,
    StringLiteral,
    Variable,
)


class TestModelHeuristics:
    """Tests for model detection."""

    @pytest.mark.parametrize("type_name,expected", [
        ("App\\Models\\User", True),
        ("Invoice", True),
        ("DB", False),
        ("UserService", False),
        ("PaymentController", False),
        ("Service", True),
    ])
    def test_looks_like_model(self, type_name, expected):
        """Unknown classes count as models; framework classes and suffixes do not."""
        assert looks_like_model(type_name) is expected

    def test_is_eloquent_model(self):
        """Extending Model or living in App\\Models marks a model."""
        assert is_eloquent_model(ClassDecl("Post", extends="Illuminate\\Database\\Eloquent\\Model"))
        assert is_eloquent_model(ClassDecl("Tag", namespace="App\\Models"))
        assert not is_eloquent_model(ClassDecl("Billing", namespace="App\\Services"))


class TestConfigArrays:
    """Tests for config array helpers."""

    def test_dotted_lookup(self, parser, tmp_path, sample_hashing_config):
        """Dotted keys descend into nested arrays."""
        path = tmp_path / "hashing.php"
        path.write_text(sample_hashing_config, encoding="utf-8")

        array = config_array(parser.parse(path))

        assert literal_value(array_entry(array, "driver").value) == "bcrypt"
        assert array_entry(array, "bcrypt.rounds").line == 6
        assert array_entry(array, "argon.missing") is None
        assert array_entry(None, "driver") is None

    @pytest.mark.parametrize("node,expected", [
        (StringLiteral("lax"), "lax"),
        (IntLiteral(12), 12),
        (ConstantRef("TRUE"), True),
        (ConstantRef("null"), None),
        (FunctionCall("env", (StringLiteral("APP_DEBUG"), ConstantRef("false"))), False),
        (FunctionCall("env", (StringLiteral("APP_DEBUG"),)), None),
        (ArrayLiteral((ArrayItem(StringLiteral("a")), ArrayItem(IntLiteral(1)))), ["a", 1]),
    ])
    def test_literal_value(self, node, expected):
        """Literals and env() defaults resolve to Python values."""
        assert literal_value(node) == expected

    def test_non_literal(self):
        """Anything computed is NotImplemented."""
        assert literal_value(Variable("x")) is NotImplemented
        assert literal_value(ConstantRef("PHP_EOL")) is NotImplemented

    def test_env_key(self):
        """Reads the variable name of env()."""
        assert env_key(FunctionCall("env", (StringLiteral("APP_KEY"),))) == "APP_KEY"
        assert env_key(FunctionCall("config", (StringLiteral("app.key"),))) is None


class TestComposerHelpers:
    """Tests for JSON helpers."""

    def test_load_json(self, tmp_path):
        """Missing files are None; malformed ones raise AnalysisError."""
        path = tmp_path / "composer.json"
        assert load_json(path) is None

        path.write_text('{"require": {}}', encoding="utf-8")
        assert load_json(path) == {"require": {}}

        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(AnalysisError, match="does not contain a JSON object"):
            load_json(path)

    def test_json_key_line(self):
        """Finds the quoted key, defaulting to line 1."""
        lines = ["{", '    "require": {', '        "php": "^8.2"', "    }", "}"]

        assert json_key_line(lines, "php") == 3
        assert json_key_line(lines, "laravel/framework") == 1


class TestRouteChains:
    """Tests for route chain walking."""

    @staticmethod
    def auth(call):
        return "auth" in middleware_names(call)

    def test_group_guards_inner_routes(self, parser, tmp_path, sample_routes):
        """Routes inside an auth group inherit its middleware."""
        path = tmp_path / "web.php"
        path.write_text(sample_routes, encoding="utf-8")

        chains = list(iter_route_chains(parser.parse(path), self.auth))

        verbs = [(chain.verb_call.name, chain.guarded) for chain in chains if chain.verb_call is not None]
        assert verbs == [("get", False), ("post", False), ("put", True), ("post", False)]
        assert [chain.is_group for chain in chains].count(True) == 1

    def test_middleware_names(self):
        """Strings and class constants both name middleware."""
        call = MethodCall(
            StaticCall("Route", "middleware", ()),
            "group",
            (ArrayLiteral((ArrayItem(StringLiteral("auth:sanctum"), StringLiteral("middleware")),)),),
        )

        assert middleware_names(call) == ["auth:sanctum"]
        assert middleware_names(StaticCall("Route", "middleware", (StringLiteral("auth"), StringLiteral("verified")))) == [
            "auth",
            "verified",
        ]

    def test_route_uri(self):
        """URIs come from the first argument or a group prefix."""
        assert route_uri(StaticCall("Route", "post", (StringLiteral("/users"),))) == "/users"
        group = StaticCall("Route", "group", (ArrayLiteral((ArrayItem(StringLiteral("admin"), StringLiteral("prefix")),)),))
        assert route_uri(group) == "admin"
        assert route_uri(StaticCall("Route", "post", (Variable("uri"),))) is None
