from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape
from markupsafe import Markup, escape

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def money(value: Any) -> str:
    return f"${float(value or 0):,.2f}"


def nl2br(value: Any) -> Markup:
    return Markup("<br>").join(escape(str(value or "")).split("\n"))


def _build_environment() -> Environment:
    environment = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    environment.filters["money"] = money
    environment.filters["nl2br"] = nl2br
    return environment


templates = _build_environment()


def render(template_name: str, **context: Any) -> str:
    return templates.get_template(template_name).render(**context)


__all__ = ["money", "nl2br", "render", "templates", "TEMPLATES_DIR"]
