"""Shared failure table display utility for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.base import RefreshResult

# Constants for table formatting
MAX_NAME_LENGTH = 37
NAME_TRUNCATE_LENGTH = 34
MAX_ERROR_MSG_LENGTH = 37
ERROR_MSG_TRUNCATE_LENGTH = 34


def print_failure_table(results: list[RefreshResult], names: dict[str, str] | None = None) -> None:
    """
    Print a simple table of entries whose pass failed or reported errors.

    Args:
        results: Pass results; only failed ones or ones carrying errors are shown
        names: Display names by entry id

    """
    problems = [result for result in results if result.failed or result.errors]
    if not problems:
        return
    names = names or {}

    print("\n" + "=" * 80)
    print(f"{'IMAGE REFRESH PROBLEMS':^80}")
    print("=" * 80)
    print(f"Total: {len(problems)} entries\n")

    print(f"{'ENTRY':<40} | {'ERROR':<37}")
    print("-" * 80)

    for result in problems:
        name = names.get(result.entry_id, result.entry_id)
        if len(name) > MAX_NAME_LENGTH:
            name = name[:NAME_TRUNCATE_LENGTH] + "..."

        error_msg = result.errors[0] if result.errors else "Unknown error"
        if len(error_msg) > MAX_ERROR_MSG_LENGTH:
            error_msg = error_msg[:ERROR_MSG_TRUNCATE_LENGTH] + "..."

        marker = "✗" if result.failed else "!"
        print(f"{marker} {name:<38} | {error_msg:<37}")

    print("\n💡 TIP: Run with -vv to see provider and download errors in full\n")
