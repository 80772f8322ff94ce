# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/templating.py

from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

from stackgen.errors import TemplateError

log = logging.getLogger("stackgen")

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


class TemplateRenderer:
    def __init__(self, templates_dir: Optional[Path] = None):
        self.templates_dir = templates_dir or TEMPLATES_DIR
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        # shell-safe interpolation for generated scripts
        self.env.filters["shquote"] = shlex.quote

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        try:
            tmpl = self.env.get_template(template_name)
        except TemplateNotFound as e:
            raise TemplateError(f"Missing template: {template_name} (in {self.templates_dir})") from e

        log.debug("rendering %s", template_name)
        return tmpl.render(**context)
