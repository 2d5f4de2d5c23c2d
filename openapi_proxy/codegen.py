"""Render templates and write generated output.

Takes the context from context_builder and produces a Markdown catalog of
every tool.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import jinja2

TEMPLATE_DIR = Path(__file__).parent / "templates"
DEFAULT_OUTPUT = Path("TOOLS.md")


def render(context: dict[str, Any]) -> str:
    """Render the catalog template."""
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    template = env.get_template("catalog.md.j2")
    return template.render(**context)


def generate(context: dict[str, Any], output_path: Path | None = None) -> Path:
    """Render the catalog and write it to ``output_path``."""
    output_path = output_path or DEFAULT_OUTPUT
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render(context))

    print(f"Generated {output_path} ({context['tool_count']} tools)")
    return output_path
