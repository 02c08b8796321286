"""Safe error message formatting utilities.

Ensures exceptions always have useful display messages, even when their
str() representation is empty.
"""

from __future__ import annotations

from rich.markup import escape as _escape_markup

from ..errors import ModuleNotResolvedError
from ..errors import ResolutionError

FRIENDLY_MESSAGES: dict[type, str] = {
    PermissionError: "Permission denied while reading the project.",
    FileNotFoundError: "A required file or directory does not exist.",
    KeyboardInterrupt: "Operation interrupted by user.",
}


def format_error_message(e: BaseException, *, include_type: bool = True) -> str:
    """Format an exception into a useful display message.

    Examples:
        >>> format_error_message(ValueError("invalid input"))
        'ValueError: invalid input'

        >>> format_error_message(ValueError("invalid input"), include_type=False)
        'invalid input'
    """
    error_str = str(e)
    error_type = type(e).__name__

    if error_str:
        if include_type and error_type not in error_str:
            return f"{error_type}: {error_str}"
        return error_str

    for exc_type, friendly_msg in FRIENDLY_MESSAGES.items():
        if isinstance(e, exc_type):
            return f"{error_type}: {friendly_msg}"

    return f"{error_type}: (no additional details)"


def format_resolution_error(e: ResolutionError) -> str:
    """Rich markup for a resolution failure, with search details when available."""
    lines = [f"[red]Error:[/red] {escape_markup(e)}"]
    if isinstance(e, ModuleNotResolvedError):
        for path in getattr(e, "search_paths", [])[:5]:
            lines.append(f"  [dim]searched {escape_markup(path)}[/dim]")
        candidates = getattr(e, "candidates", [])
        for path in candidates[:5]:
            lines.append(f"  [dim]tried {escape_markup(path)}[/dim]")
        if len(candidates) > 5:
            lines.append(f"  [dim]... and {len(candidates) - 5} more[/dim]")
    return "\n".join(lines)


def escape_markup(value: object) -> str:
    """Escape a value for safe interpolation into Rich markup strings."""
    return _escape_markup(str(value))
