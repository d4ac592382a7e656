# src/docgen/services/template_engine.py

import logging
from typing import Any

from jinja2 import ChainableUndefined, Environment, Template, TemplateError
from opentelemetry import trace

from docgen.errors import RenderError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def build_environment() -> Environment:
    # Non-strict: missing values render as empty strings
    return Environment(
        autoescape=False,
        undefined=ChainableUndefined,
        keep_trailing_newline=True,
    )


class TemplateEngine:
    """
    Expands markup templates against request data.

    Compiled templates are cached by (type, format, version). Entries are
    only ever added, never mutated, so concurrent jobs share them without
    locking; two threads compiling the same key at once both produce an
    equivalent template and setdefault keeps the first.
    """

    def __init__(self, environment: Environment | None = None):
        self._env = environment or build_environment()
        self._compiled: dict[tuple[str, str, str], Template] = {}

    def compiled(self, cache_key: tuple[str, str, str], source: str) -> Template:
        template = self._compiled.get(cache_key)
        if template is not None:
            return template

        try:
            template = self._env.from_string(source)
        except TemplateError as exc:
            raise RenderError(f"Template {cache_key[2]} could not be compiled: {exc}") from exc

        logger.debug("Compiled template %s", cache_key)
        return self._compiled.setdefault(cache_key, template)

    def render(self, template, data: Any, metadata: dict) -> str:
        """
        Render a resolved template. The context exposes `data` and `metadata`;
        when `data` is an object its keys are also available at top level.
        """
        with tracer.start_as_current_span("templates.render") as span:
            span.set_attribute("template.id", template.id)

            # Input keys first so they never shadow `metadata` or `data`
            context: dict[str, Any] = dict(data) if isinstance(data, dict) else {}
            context.update(metadata=metadata, data=data)

            try:
                rendered = self.compiled(template.cache_key, template.content).render(context)
            except TemplateError as exc:
                raise RenderError(f"Template {template.id} failed to render: {exc}") from exc

            span.set_attribute("markup.length", len(rendered))
            return rendered

    def __len__(self) -> int:
        return len(self._compiled)
