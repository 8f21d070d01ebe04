"""Jinja2 template adapter.

Implements the core TemplatePort. The template file is looked up on every
render so an updated template is picked up without a restart.
"""

from __future__ import annotations

import os

from jinja2 import Environment, FileSystemLoader, StrictUndefined


def quote_message(message: str) -> str:
    """Render a submission as a Markdown quote, turning "-" bullets into "*"."""

    quoted = "> " + message.strip().replace("\n", "\n> ")
    return quoted.replace("> -", "> *")


class JinjaTemplateRenderer:
    """TemplatePort adapter rendering Markdown reports with Jinja2."""

    def __init__(self, template_path: str) -> None:
        directory, self._template_name = os.path.split(os.path.abspath(template_path))
        self._environment = Environment(
            loader=FileSystemLoader(directory),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._environment.filters["quote"] = quote_message

    def render(self, context: dict) -> str:
        template = self._environment.get_template(self._template_name)
        return template.render(**context)
