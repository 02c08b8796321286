"""Shared helpers for CLI output."""
