"""Tests for the SQL injection rule."""

import pytest

from shieldlint.analyzers.results import Severity, Status
from shieldlint.analyzers.security.sql_injection import SqlInjectionRule, sql_position
from shieldlint.syntax.nodes import FunctionCall, NamedArgument, StringLiteral, Variable

NATIVE_QUERIES = '''<?php

function legacy($id, $name)
{
    $pdo = new PDO('sqlite::memory:');
    $pdo->query("SELECT * FROM users WHERE name = '" . $name . "'");
    $link = mysqli_connect('localhost');
    mysqli_query($link, 'SELECT * FROM orders WHERE id = ' . $id);
    pg_query('SELECT 1');
    DB::unprepared('DROP TABLE sessions');
}
'''

POSTGRES_QUERIES = '''<?php

function lookup($conn, $id)
{
    pg_prepare($conn, 'find_user', 'SELECT * FROM users WHERE id = ' . $id);
    pg_query_params('SELECT * FROM users WHERE id = $1', [$_GET['id']]);
    pg_query_params($conn, 'SELECT * FROM orders WHERE id = $1', [$id]);
    pg_query_params("SELECT * FROM orders WHERE ref = '$id'", []);
    pg_prepare('find_order', 'SELECT * FROM orders WHERE id = ' . $id);
    pg_send_prepare($conn, 'find_all', 'SELECT * FROM users WHERE id = ' . $id);
    pg_query($conn, 'SELECT 1');
}
'''

REQUEST_SQL = '''<?php

namespace App\\Http\\Controllers;

use Illuminate\\Support\\Facades\\DB;

class ReportController extends Controller
{
    public function run($request)
    {
        $rows = DB::select($request->input('sql'));
        $more = DB::table('orders')->whereRaw('total > ?', [$request->input('min')])->get();
        return [$rows, $more];
    }
}
'''


class TestSqlInjectionRule:
    """Tests for SqlInjectionRule."""

    @pytest.fixture
    def rule(self):
        return SqlInjectionRule()

    def test_raw_queries(self, rule, make_context, sample_sql):
        """Interpolated and concatenated SQL is flagged, bindings are not."""
        context = make_context({"app/Repositories/search.php": sample_sql})

        outcome = rule.evaluate(context)

        assert outcome.status is Status.FAILED
        assert [f.location.line_number for f in outcome.findings] == [7, 9]
        assert all(f.severity is Severity.CRITICAL for f in outcome.findings)
        assert outcome.findings[0].metadata == {"method": "DB::select()"}
        assert outcome.findings[1].metadata == {"method": "whereRaw()"}

    def test_native_database_calls(self, rule, make_context):
        """PDO, mysqli and DB::unprepared calls with built SQL."""
        context = make_context({"app/Legacy/queries.php": NATIVE_QUERIES})

        outcome = rule.evaluate(context)

        assert {f.location.line_number for f in outcome.findings} == {6, 8, 10}
        labels = {f.metadata["method"] for f in outcome.findings}
        assert labels == {"->query()", "mysqli_query()", "DB::unprepared()"}

    def test_request_input_as_sql(self, rule, make_context):
        """Even a single request field used as SQL is flagged."""
        context = make_context({"app/Http/Controllers/ReportController.php": REQUEST_SQL})

        outcome = rule.evaluate(context)

        assert [f.location.line_number for f in outcome.findings] == [11]
        assert outcome.summary == "Found 1 potential SQL injection vulnerabilities"

    def test_safe_code_passes(self, rule, make_context):
        """Parameterised queries pass."""
        context = make_context({
            "app/Models/User.php": "<?php\n$users = DB::select('SELECT * FROM users WHERE id = ?', [$id]);\n",
        })

        outcome = rule.evaluate(context)

        assert outcome.status is Status.PASSED
        assert outcome.summary == "No SQL injection vulnerabilities detected"

    def test_skipped_without_php(self, rule, make_context):
        """Nothing to scan without PHP files."""
        context = make_context({"resources/views/home.blade.php": "<h1>Home</h1>"})

        assert rule.evaluate(context).status is Status.SKIPPED

    def test_postgres_query_argument(self, rule, make_context):
        """The query argument is found with and without an explicit connection."""
        context = make_context({"app/Legacy/postgres.php": POSTGRES_QUERIES})

        outcome = rule.evaluate(context)

        assert sorted(f.location.line_number for f in outcome.findings) == [5, 8, 9, 10]
        labels = [f.metadata["method"] for f in sorted(outcome.findings, key=lambda f: f.location.line_number)]
        assert labels == ["pg_prepare()", "pg_query_params()", "pg_prepare()", "pg_send_prepare()"]


class TestSqlPosition:
    """Tests for locating the SQL argument of native calls."""

    @pytest.mark.parametrize("name,arg_count,expected", [
        ("mysqli_query", 2, 1),
        ("mysqli_query", 3, 1),
        ("pg_query", 1, 0),
        ("pg_query", 2, 1),
        ("pg_prepare", 2, 1),
        ("pg_prepare", 3, 2),
        ("pg_send_prepare", 3, 2),
        ("pg_query_params", 2, 0),
        ("pg_query_params", 3, 1),
        ("pg_send_query_params", 3, 1),
    ])
    def test_positions(self, name, arg_count, expected):
        """Optional connections shift the query left."""
        call = FunctionCall(name, tuple(Variable(f"a{i}") for i in range(arg_count)))

        assert sql_position(call) == expected

    def test_named_arguments_are_not_positional(self):
        """Named arguments do not count toward the arity."""
        call = FunctionCall("pg_query", (NamedArgument("query", StringLiteral("SELECT 1")),))

        assert sql_position(call) == 0
