"""Tests for the cookie security rule."""

import pytest

from shieldlint.analyzers.results import Severity, Status
from shieldlint.analyzers.security.cookie_security import UNKNOWN, CookieSecurityRule, effective_value
from shieldlint.syntax.nodes import ConstantRef, FunctionCall, StringLiteral

KERNEL_WITHOUT_ENCRYPTION = '''<?php

namespace App\\Http;

class Kernel extends HttpKernel
{
    protected $middlewareGroups = [
        'web' => [
            // \\App\\Http\\Middleware\\EncryptCookies::class,
            \\Illuminate\\Session\\Middleware\\StartSession::class,
        ],
    ];
}
'''

KERNEL_WITH_ENCRYPTION = '''<?php

namespace App\\Http;

class Kernel extends HttpKernel
{
    protected $middlewareGroups = [
        'web' => [
            \\App\\Http\\Middleware\\EncryptCookies::class,
            \\Illuminate\\Session\\Middleware\\StartSession::class,
        ],
    ];
}
'''

BOOTSTRAP_REPLACING_WEB_GROUP = '''<?php

return Application::configure(dirname(__DIR__))
    ->withMiddleware(function ($middleware) {
        $middleware->group('web', [
            StartSession::class,
        ]);
    })
    ->create();
'''


class TestCookieSecurityRule:
    """Tests for CookieSecurityRule."""

    @pytest.fixture
    def rule(self):
        return CookieSecurityRule()

    def test_insecure_session_config(self, rule, make_context, sample_session_config):
        """Each weak session flag is reported on its own line."""
        context = make_context({"config/session.php": sample_session_config})

        outcome = rule.evaluate(context)

        assert outcome.status is Status.FAILED
        found = {(f.location.line_number, f.severity) for f in outcome.findings}
        assert found == {(6, Severity.HIGH), (7, Severity.CRITICAL), (8, Severity.MEDIUM)}

    def test_env_without_default_is_unknown(self, rule, make_context):
        """Values decided only by the environment are not reported."""
        config = (
            "<?php\n\nreturn [\n"
            "    'secure' => env('SESSION_SECURE_COOKIE'),\n"
            "    'http_only' => true,\n"
            "    'same_site' => 'lax',\n"
            "];\n"
        )
        context = make_context({"config/session.php": config})

        assert rule.evaluate(context).status is Status.PASSED

    def test_commented_out_middleware(self, rule, make_context):
        """A commented EncryptCookies line is Critical."""
        context = make_context({"app/Http/Kernel.php": KERNEL_WITHOUT_ENCRYPTION})

        outcome = rule.evaluate(context)

        assert len(outcome.findings) == 1
        finding = outcome.findings[0]
        assert finding.message == "EncryptCookies middleware is commented out"
        assert finding.location.line_number == 9
        assert finding.metadata["status"] == "commented"

    def test_registered_middleware(self, rule, make_context):
        """A registered EncryptCookies passes."""
        context = make_context({"app/Http/Kernel.php": KERNEL_WITH_ENCRYPTION})

        assert rule.evaluate(context).status is Status.PASSED

    def test_bootstrap_web_group_without_encryption(self, rule, make_context):
        """Redefining the web group without EncryptCookies is Critical."""
        context = make_context({"bootstrap/app.php": BOOTSTRAP_REPLACING_WEB_GROUP})

        outcome = rule.evaluate(context)

        assert [(f.location.line_number, f.severity) for f in outcome.findings] == [(5, Severity.CRITICAL)]
        assert outcome.findings[0].message == "EncryptCookies middleware is not registered globally"

    def test_skipped_without_configuration(self, rule, make_context):
        """No session config or kernel means Skipped."""
        context = make_context({"routes/web.php": "<?php\n"})

        assert rule.evaluate(context).status is Status.SKIPPED


class TestEffectiveValue:
    """Tests for effective_value."""

    def test_env_default(self):
        """env() with a default resolves to the default."""
        node = FunctionCall("env", (StringLiteral("SESSION_SECURE_COOKIE"), ConstantRef("false")))

        assert effective_value(node) is False

    def test_env_without_default(self):
        """env() without a default is unknown."""
        assert effective_value(FunctionCall("env", (StringLiteral("SESSION_SECURE_COOKIE"),))) is UNKNOWN

    def test_non_literal(self):
        """Computed values are unknown."""
        assert effective_value(FunctionCall("config", (StringLiteral("app.secure"),))) is UNKNOWN
