"""Cross-site scripting through unescaped output."""

import re
from typing import Optional

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.analyzers.text import read_lines
from shieldlint.matchers import DEFAULT_INPUT_SOURCES, classify_input
from shieldlint.syntax.finders import find_nodes_of_kind, find_static_calls, walk
from shieldlint.syntax.nodes import Block, FunctionCall, SyntaxNode, short_name

RAW_OUTPUT = re.compile(r"\{!!(.*?)!!\}")
ESCAPED_OUTPUT = re.compile(r"\{\{(?!--)(.*?)\}\}")
SCRIPT_OPEN = re.compile(r"<script[^>]*>", re.IGNORECASE)
SCRIPT_CLOSE = re.compile(r"</script>", re.IGNORECASE)
USER_INPUT = re.compile(
    r"\$_(GET|POST|REQUEST|COOKIE)\b"
    r"|\b(Input|Request)::"
    r"|\brequest\s*\("
    r"|\$request\s*->"
)
JSON_DIRECTIVE_INPUT = re.compile(r"@json\(\s*\$_(GET|POST|REQUEST|COOKIE)")
SAFE_RAW_OUTPUT = re.compile(r"^\s*(json_encode\s*\(|e\s*\(|csrf_field\s*\(|method_field\s*\(|\$__env->|Js::from|\$slot\b|\$attributes\b)")

OUTPUT_KINDS = {"echo_statement", "print_intrinsic"}


class XssRule(Rule):
    """Unescaped Blade output and echoed request input.

    Blade templates are scanned line by line; plain PHP files through the
    syntax tree so that escaping wrappers are recognised by position.
    """

    metadata = RuleMetadata(
        id="xss-vulnerabilities",
        name="XSS Vulnerabilities Analyzer",
        description="Detects unescaped output of user input in Blade templates and PHP code",
        category=Category.SECURITY,
        default_severity=Severity.HIGH,
        tags=frozenset({"xss", "cross-site-scripting", "security", "blade"}),
        docs_url="https://laravel.com/docs/blade#displaying-unescaped-data",
        time_to_fix=15,
    )

    passed_summary = "No XSS vulnerabilities detected"
    failed_summary = "Found {count} potential XSS issue{s}"

    class Options(RuleOptions):
        escaping_functions: tuple[str, ...] = (
            "e", "htmlspecialchars", "htmlentities", "strip_tags", "intval", "json_encode", "urlencode", "rawurlencode",
        )

    def applies(self, context: ScanContext) -> bool:
        return bool(context.blade_files or context.php_files)

    def skip_reason(self, context: ScanContext) -> str:
        return "No Blade templates or PHP files found to analyze"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for path in context.blade_files:
            findings.extend(self.check_blade(context, path, read_lines(path)))
        for path in context.php_files:
            tree = self.parse(path)
            if tree:
                findings.extend(self.check_php(context, path, tree))
        return findings

    # Blade

    def check_blade(self, context: ScanContext, path, lines: list[str]) -> list[Finding]:
        findings = []
        in_script = False
        for index, line in enumerate(lines):
            opens, closes = SCRIPT_OPEN.search(line), SCRIPT_CLOSE.search(line)
            if opens:
                in_script = True

            for match in RAW_OUTPUT.finditer(line):
                expression = match.group(1)
                if USER_INPUT.search(expression):
                    findings.append(self.finding(
                        context,
                        "Unescaped Blade output of request data",
                        path,
                        index + 1,
                        severity=Severity.CRITICAL,
                        recommendation="Use {{ }} instead of {!! !!}, or sanitize the value with e() or an HTML purifier",
                        metadata={"expression": expression.strip()},
                    ))
                elif not SAFE_RAW_OUTPUT.match(expression):
                    findings.append(self.finding(
                        context,
                        "Unescaped Blade output",
                        path,
                        index + 1,
                        severity=Severity.MEDIUM,
                        recommendation="Prefer {{ }}; keep {!! !!} for trusted, already sanitized HTML only",
                        metadata={"expression": expression.strip()},
                    ))

            if in_script and (
                any(USER_INPUT.search(m.group(1)) for m in ESCAPED_OUTPUT.finditer(line))
                or JSON_DIRECTIVE_INPUT.search(line)
            ):
                findings.append(self.finding(
                    context,
                    "User data in JavaScript without proper encoding",
                    path,
                    index + 1,
                    severity=Severity.HIGH,
                    recommendation="Use @json() or Js::from() to pass request data into scripts",
                ))

            if closes and not (opens and opens.start() > closes.start()):
                in_script = False
        return findings

    # Plain PHP

    def check_php(self, context: ScanContext, path, tree) -> list[Finding]:
        findings = []
        for node in find_nodes_of_kind(tree, Block):
            if node.kind not in OUTPUT_KINDS:
                continue
            tainted = self.unescaped_input(node.body)
            if tainted is None:
                continue
            statement = "echo" if node.kind == "echo_statement" else "print"
            severity = Severity.CRITICAL if classify_input(tainted) == "superglobal" else Severity.HIGH
            findings.append(self.finding(
                context,
                f"Potential XSS: {statement} of request input without escaping",
                path,
                node.line,
                severity=severity,
                recommendation="Escape output with e() or htmlspecialchars($value, ENT_QUOTES, 'UTF-8')",
                metadata={"statement": statement},
            ))

        for call in find_static_calls(tree, "Response", "make"):
            if self.unescaped_input(call.args) is not None:
                findings.append(self.finding(
                    context,
                    "Potential XSS: Response::make() with unescaped request input",
                    path,
                    call.line,
                    severity=Severity.HIGH,
                    recommendation="Escape user input before rendering or return response()->json()",
                ))
        return findings

    def unescaped_input(self, nodes) -> Optional[SyntaxNode]:
        """First read of request input that no escaping function wraps."""
        escaping = {name.lower() for name in self.options.escaping_functions}
        escaped: set[int] = set()
        for node in walk(nodes):
            if isinstance(node, FunctionCall) and short_name(node.name).lower() in escaping:
                escaped.update(id(inner) for inner in walk(node.args))
                continue
            if id(node) in escaped:
                continue
            if classify_input(node, DEFAULT_INPUT_SOURCES) in ("superglobal", "bulk", "scoped"):
                return node
        return None
