"""CLI output styling.

Status output is a column of "Label: value" rows; outcomes get a green
check or a red cross. Styling is dropped automatically when output is not
a terminal (click strips ANSI codes).
"""

from __future__ import annotations

__all__ = [
    "echo_field",
    "style_dim",
    "style_error",
    "style_label",
    "style_success",
]

import click


def style_label(label: str) -> str:
    return click.style(f"{label}:", fg="cyan", bold=True)


def style_success(message: str) -> str:
    return click.style(f"✓ {message}", fg="green")


def style_error(message: str) -> str:
    return click.style(f"✗ {message}", fg="red")


def style_dim(message: str) -> str:
    return click.style(message, dim=True)


def echo_field(label: str, value: str | None, *, missing: str = "not set") -> None:
    """Print one status row, showing missing dimmed when value is None.

    Example:
        >>> echo_field("Account", None, missing="not signed in")
        Account: not signed in
    """
    shown = value if value is not None else style_dim(missing)
    click.echo(f"{style_label(label)} {shown}")
