"""Jinja2 environment for feed_discover templates."""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup, escape

from .models import CategoryPath

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

_ENV: Environment | None = None


def _nl2br(value: str | None) -> Markup:
    """Convert newlines to <br> tags while escaping HTML."""
    if not value:
        return Markup("")
    return Markup("<br>".join(escape(value).splitlines()))


def _path_label(path: CategoryPath) -> str:
    return path.label()


def _stars(rating: float | None) -> str:
    """Render a 0-5 rating in half-star steps, e.g. 3.5 -> '***+'."""
    if rating is None:
        return ""
    halves = int(round(rating * 2))
    return "*" * (halves // 2) + ("+" if halves % 2 else "")


def get_environment() -> Environment:
    """Return a cached Jinja environment configured for package templates."""
    global _ENV
    if _ENV is None:
        loader = FileSystemLoader(str(TEMPLATE_DIR))
        _ENV = Environment(
            loader=loader,
            autoescape=select_autoescape(["html", "xml", "html.j2"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        _ENV.filters["nl2br"] = _nl2br
        _ENV.filters["path_label"] = _path_label
        _ENV.filters["stars"] = _stars
    return _ENV
