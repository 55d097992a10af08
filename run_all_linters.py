#!/usr/bin/env python3
"""Run formatters, linters and the test suite in one go.

Steps, in order: black, isort, ruff, pylint, pytest. Every step runs even if
an earlier one fails; a summary at the end lists what failed.

Usage:
    python run_all_linters.py            # check only
    python run_all_linters.py --fix      # let black/isort/ruff rewrite files
"""

from pathlib import Path
import subprocess
import sys

ROOT = Path(__file__).parent
PACKAGES = ["app", "core", "infrastructure", "main.py"]


def run_step(cmd: list[str], name: str) -> tuple[bool, str]:
    """Run one tool; returns (passed, combined output)."""
    print(f"\n{'=' * 60}")
    print(f"{name}: {' '.join(cmd)}")
    print("=" * 60)

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False, cwd=ROOT)
    except OSError as e:
        print(f"FAILED to start: {e}")
        return False, str(e)

    output = result.stdout + result.stderr
    passed = result.returncode == 0
    print("OK" if passed else "FAILED")
    if output.strip():
        print(output)
    return passed, output


def build_steps(fix: bool) -> list[tuple[list[str], str]]:
    py = [sys.executable, "-m"]
    return [
        (py + ["black", "."] + ([] if fix else ["--check"]), "black"),
        (py + ["isort", "."] + ([] if fix else ["--check-only"]), "isort"),
        (py + ["ruff", "check", "."] + (["--fix"] if fix else []), "ruff"),
        (py + ["pylint"] + PACKAGES, "pylint"),
        (py + ["pytest", "-q"], "pytest"),
    ]


def main() -> None:
    fix = "--fix" in sys.argv[1:]
    results = [(name, *run_step(cmd, name)) for cmd, name in build_steps(fix)]

    print(f"\n{'=' * 60}")
    print("Summary")
    print("=" * 60)
    for name, passed, _ in results:
        print(f"{name:8} {'passed' if passed else 'FAILED'}")

    failed = [name for name, passed, _ in results if not passed]
    if failed:
        print(f"\nFailed steps: {', '.join(failed)}")
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
