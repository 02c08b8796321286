"""CLI command groups for platform-resolver."""

__all__ = [
    "config",
]
