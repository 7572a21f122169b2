#!/usr/bin/env python3
"""Security & PII gate for source files.

Fails if:
- print( found in runtime code (src/**)
- a logger call mentions buyer or credential data without redaction
- a logger message is an f-string (values belong in extra_fields)

Logger calls usually span several lines, so each call is checked as a
whole, from "logger.x(" to its closing parenthesis.

Usage:
    python scripts/gate_security_pii.py
"""

import re
import sys
from pathlib import Path

# Keywords that must not appear in logger calls without redaction
SENSITIVE_KEYWORDS = (
    "payload",
    "email",
    "request.body",
    "body_bytes",
    "api_key",
    "secret_key",
    "password",
    "control_sum",
)

PRINT_PATTERN = re.compile(r"\bprint\s*\(")

LOGGER_CALL_PATTERN = re.compile(
    r"logger\.(debug|info|warning|error|critical|exception)\s*\("
)
FSTRING_MESSAGE_PATTERN = re.compile(r"""^\s*f["']""")

# Redaction helpers, plus contexts prebuilt with them
REDACTION_PATTERNS = (
    "safe_log_context",
    "redact_value",
    "redact_string",
    "mask_email",
    "log_ctx",
)


def _call_text(content: str, start: int) -> str:
    """Return the source of a call, from start to its closing parenthesis."""
    depth = 0
    for pos in range(start, len(content)):
        char = content[pos]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return content[start : pos + 1]
    return content[start:]


def check_file(filepath: Path) -> list[str]:
    """Check a single file for violations. Returns list of error messages."""
    errors = []
    try:
        content = filepath.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return []

    for lineno, line in enumerate(content.splitlines(), start=1):
        code_part = line.split("#")[0]
        if PRINT_PATTERN.search(code_part):
            errors.append(f"{filepath}:{lineno}: print() not allowed in runtime code")

    for match in LOGGER_CALL_PATTERN.finditer(content):
        lineno = content.count("\n", 0, match.start()) + 1
        call = _call_text(content, match.end() - 1)
        arguments = call[1:]

        if FSTRING_MESSAGE_PATTERN.match(arguments):
            errors.append(f"{filepath}:{lineno}: logger message must not be an f-string")

        call_lower = call.lower()
        has_redaction = any(rp in call for rp in REDACTION_PATTERNS)
        for keyword in SENSITIVE_KEYWORDS:
            if keyword in call_lower and not has_redaction:
                errors.append(
                    f"{filepath}:{lineno}: logger call with '{keyword}' "
                    "must use redaction (safe_log_context/mask_email)"
                )
    return errors


def main() -> int:
    """Run gate check on src directory."""
    src_dir = Path("src")

    if not src_dir.exists():
        src_dir = Path(__file__).parent.parent / "src"

    if not src_dir.exists():
        sys.stderr.write("Error: src directory not found\n")
        return 1

    all_errors: list[str] = []
    for pyfile in sorted(src_dir.rglob("*.py")):
        all_errors.extend(check_file(pyfile))

    if all_errors:
        sys.stderr.write("Security/PII gate FAILED:\n")
        for err in all_errors:
            sys.stderr.write(f"  {err}\n")
        return 1

    sys.stdout.write("Security/PII gate PASSED\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
