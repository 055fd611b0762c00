"""Tests for the mass assignment rule."""

import pytest

from shieldlint.analyzers.base import ScanContext
from shieldlint.analyzers.results import Severity, Status
from shieldlint.analyzers.security.mass_assignment import MassAssignmentRule, input_risk
from shieldlint.syntax.nodes import ArrayItem, ArrayLiteral, MethodCall, StaticCall, StringLiteral, Variable

PROFILE_SERVICE = '''<?php

class ProfileService
{
    public function save($request, $user)
    {
        $user->fill($request->except(['is_admin']));
        DB::table('users')->where('id', $user->id)->update($request->all());
        $user->update(['name' => $request->input('name')]);
    }
}
'''

GUARDED_MODEL = '''<?php

namespace App\\Models;

use Illuminate\\Database\\Eloquent\\Model;

class Invoice extends Model
{
    protected $guarded = [];
}
'''


def except_call() -> MethodCall:
    deny_list = ArrayLiteral((ArrayItem(StringLiteral("is_admin")),))
    return MethodCall(Variable("request"), "except", (deny_list,))


class TestMassAssignmentRule:
    """Tests for MassAssignmentRule."""

    @pytest.fixture
    def rule(self):
        return MassAssignmentRule()

    def test_static_create_with_all_input(self, rule, make_context, sample_controller):
        """User::create($request->all()) is Critical; only() is safe."""
        context = make_context({"app/Http/Controllers/UserController.php": sample_controller})

        outcome = rule.evaluate(context)

        assert outcome.status is Status.FAILED
        assert len(outcome.findings) == 1
        finding = outcome.findings[0]
        assert finding.message == "Static call to create() with unfiltered request data"
        assert finding.severity is Severity.CRITICAL
        assert finding.location.line_number == 12
        assert finding.metadata == {"method": "create", "call_type": "static", "input": "unfiltered"}

    def test_instance_and_builder_calls(self, rule, make_context):
        """fill() with except() and builder update() with all() are reported."""
        context = make_context({"app/Services/ProfileService.php": PROFILE_SERVICE})

        outcome = rule.evaluate(context)

        found = [(f.location.line_number, f.severity, f.message) for f in outcome.findings]
        assert sorted(found) == [
            (7, Severity.HIGH, "Instance call to fill() with blacklist filtering of request data"),
            (8, Severity.CRITICAL, "Query builder call to update() with unfiltered request data"),
        ]

    def test_unprotected_model(self, rule, make_context, sample_unprotected_model):
        """Models without $fillable or $guarded are High."""
        context = make_context({"app/Models/Comment.php": sample_unprotected_model})

        outcome = rule.evaluate(context)

        assert len(outcome.findings) == 1
        finding = outcome.findings[0]
        assert finding.message == "Model Comment has no $fillable or $guarded protection"
        assert finding.severity is Severity.HIGH
        assert finding.location.line_number == 7

    def test_empty_guarded(self, rule, make_context):
        """$guarded = [] is Critical."""
        context = make_context({"app/Models/Invoice.php": GUARDED_MODEL})

        outcome = rule.evaluate(context)

        assert [(f.location.line_number, f.severity) for f in outcome.findings] == [(9, Severity.CRITICAL)]

    def test_fillable_model_passes(self, rule, make_context, sample_model):
        """A model with $fillable has no mass assignment issue."""
        context = make_context({"app/Models/Post.php": sample_model})

        assert rule.evaluate(context).status is Status.PASSED

    def test_blacklist_severity_on_direct_call(self, rule, tmp_path):
        """except() input on a static create is High."""
        call = StaticCall("User", "create", (except_call(),))

        finding = rule.check_call(ScanContext(root=tmp_path), tmp_path / "x.php", call, "static")

        assert finding.severity is Severity.HIGH
        assert finding.message == "Static call to create() with blacklist filtering of request data"


class TestInputRisk:
    """Tests for input_risk."""

    def test_blacklist_is_high(self):
        """A deny list is High."""
        severity, _, kind = input_risk([except_call()])

        assert severity is Severity.HIGH
        assert kind == "blacklist"

    def test_all_input_is_critical(self):
        """All input is Critical."""
        severity, node, kind = input_risk([MethodCall(Variable("request"), "all")])

        assert severity is Severity.CRITICAL
        assert kind == "unfiltered"
        assert node.name == "all"

    def test_literal_arrays_are_safe(self):
        """Literal data carries no risk."""
        assert input_risk([ArrayLiteral((ArrayItem(StringLiteral("x")),))]) is None
