"""Entry point: python -m aabhalint [--json] [--fix] [--fail-on LEVEL] <paths...>"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .config import PolicyLocator
from .core.engine import EvalResult, PolicyEngine, PolicyLoadError
from .core.fixes import apply_fixes
from .core.models import Finding
from .core.values import to_plain
from .scanners.python_source import PythonSourceScanner, ScannedFile, collect_source_files

_SEVERITY_RANK = {"suggestion": 0, "problem": 1}

# Upper bound on fix passes per file; conflicting insertions need another pass
_MAX_FIX_PASSES = 10


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="aabhalint",
        description="Lint decorator-declared business entities in Python source",
    )
    parser.add_argument("paths", nargs="*", type=Path, help="Python files or directories to lint")
    parser.add_argument("--json", action="store_true", dest="json_output", help="Output findings as JSON")
    parser.add_argument("--policy", type=Path, help="Path to a custom policy YAML")
    parser.add_argument("--rule", action="append", dest="rules", metavar="ID", help="Only run this rule (repeatable)")
    parser.add_argument("--fix", action="store_true", help="Apply available fixes to the files in place")
    parser.add_argument(
        "--fail-on",
        choices=list(_SEVERITY_RANK),
        default="problem",
        help="Minimum severity that causes a non-zero exit code (default: problem)",
    )
    parser.add_argument("--list-rules", action="store_true", help="List the policy's rules and exit")
    parser.add_argument("--verbose", action="store_true", help="Log debug details to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    # Load policy
    locator = PolicyLocator(policy_path=args.policy)
    policy_path = locator.resolve()
    try:
        engine = PolicyEngine(policy_path)
    except PolicyLoadError as e:
        print(f"error: {e}", file=sys.stderr)
        print(f"  searched: {', '.join(locator.searched_locations())}", file=sys.stderr)
        return 1
    try:
        engine.select(args.rules)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if args.list_rules:
        for check in sorted(engine.checks, key=lambda c: c.rule_id):
            print(f"{check.rule_id} [{check.severity}] {check.title}")
            print(f"  {check.docs_url}")
        return 0

    if not args.paths:
        print("No paths given.", file=sys.stderr)
        print("Usage: python -m aabhalint <file-or-directory> [...]", file=sys.stderr)
        return 1

    # Scan sources
    scanner = PythonSourceScanner(engine.annotations)
    scanned, warnings = scanner.scan(collect_source_files(args.paths))

    if args.fix:
        scanned = [_fix_file(scanner, engine, f, warnings) for f in scanned]

    # Evaluate policy
    records = [r for f in scanned for r in f.records]
    result: EvalResult = engine.evaluate(records)
    findings = result.findings
    all_warnings = warnings + result.warnings

    # Print warnings to stderr (all modes)
    for w in all_warnings:
        print(f"warning: {w}", file=sys.stderr)

    # Output
    if args.json_output:
        meta: dict = {"schema_version": "0.1", "tool_version": __version__, "policy_path": str(policy_path)}
        if all_warnings:
            meta["warnings"] = all_warnings
        output = {
            "meta": meta,
            "annotations": [
                {
                    "path": r.source.path,
                    "line": r.location.line,
                    "kind": r.kind,
                    "decorator": r.name,
                    "class_name": r.class_name,
                    "metadata": to_plain(r.metadata),
                }
                for r in records
            ],
            "findings": [f.as_dict() for f in findings],
        }
        print(json.dumps(output, indent=2, default=str))
    elif not findings:
        print(f"Lint complete. No issues found in {len(scanned)} file(s).")
    else:
        for finding in findings:
            loc = finding.location
            print(f"{loc.path}:{loc.line}:{loc.column}: [{finding.severity}] {finding.rule_id}: {finding.message}")
            if finding.confidence != "high":
                print(f"  confidence: {finding.confidence} (metadata is not fully static)")
            if finding.autofix_available:
                print("  autofix: available (run with --fix)")
        print()
        fixable = sum(1 for f in findings if f.autofix_available)
        print(f"{len(findings)} finding(s), {fixable} fixable.")

    # Exit code based on --fail-on threshold
    threshold = _SEVERITY_RANK[args.fail_on]
    return 1 if any(_SEVERITY_RANK.get(f.severity, 0) >= threshold for f in findings) else 0


def _fix_file(
    scanner: PythonSourceScanner,
    engine: PolicyEngine,
    scanned: ScannedFile,
    warnings: list[str],
) -> ScannedFile:
    """Apply fixes to one file until none apply, write it back and return the rescanned result.

    A pass that leaves the findings unchanged is discarded and ends the loop.
    """
    current = scanned
    findings = engine.evaluate(current.records).findings
    total = 0
    for _ in range(_MAX_FIX_PASSES):
        fixes = [f.fix for f in findings if f.fix is not None]
        if not fixes:
            break
        outcome = apply_fixes(current.source.text, fixes)
        try:
            rescanned = scanner.scan_text(outcome.text, current.path)
        except SyntaxError as e:
            warnings.append(f"{current.path}: fixes would produce invalid syntax ({e.msg}); not applied")
            break
        remaining = engine.evaluate(rescanned.records).findings
        if _finding_keys(remaining) == _finding_keys(findings):
            warnings.append(f"{current.path}: fixes did not resolve any finding; not applied")
            break
        total += len(outcome.applied)
        current, findings = rescanned, remaining

    if total:
        Path(current.path).write_text(current.source.text, encoding="utf-8")
        print(f"fixed {total} issue(s) in {current.path}", file=sys.stderr)
    return current


def _finding_keys(findings: list[Finding]) -> list[tuple[str, str, str]]:
    return sorted((f.rule_id, f.message_id, str(f.data.get("className"))) for f in findings)


if __name__ == "__main__":
    sys.exit(main())
