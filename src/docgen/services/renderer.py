# src/docgen/services/renderer.py

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

import yaml
from opentelemetry import trace

from docgen.errors import UnsupportedFormatError
from docgen.metrics import render_duration_seconds
from docgen.models.enums import DocumentFormat, DocumentType
from docgen.services.document_compiler import PandocCompiler
from docgen.services.storage import RenderedFile
from docgen.services.template_engine import TemplateEngine
from docgen.utils.filename_utils import build_artifact_filename

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_PDF_PAGE = re.compile(rb"/Type\s*/Page(?![a-zA-Z])")


@dataclass(frozen=True)
class DocumentMetadata:
    title: str
    author: str
    version: str
    project_name: str
    organization: str = ""
    standard: str = ""
    classification: str | None = None
    distribution_statement: str | None = None
    generated_date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_request(cls, request) -> "DocumentMetadata":
        """
        Title comes from the request; the rest from input_params["metadata"]
        when present, falling back to values derived from the request.
        """
        params = request.input_params if isinstance(request.input_params, dict) else {}
        overrides = params.get("metadata") or {}
        if not isinstance(overrides, dict):
            overrides = {}

        document_type = DocumentType(request.document_type)

        return cls(
            title=request.title,
            author=str(overrides.get("author") or f"user-{request.requested_by}"),
            version=str(overrides.get("version") or "1.0"),
            project_name=str(overrides.get("project_name") or request.project_id),
            organization=str(overrides.get("organization") or ""),
            standard=document_type.standard,
            classification=overrides.get("classification") or None,
            distribution_statement=overrides.get("distribution_statement") or None,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "author": self.author,
            "version": self.version,
            "project_name": self.project_name,
            "organization": self.organization,
            "standard": self.standard,
            "classification": self.classification,
            "distribution_statement": self.distribution_statement,
            "generated_date": self.generated_date.isoformat(),
        }

    def front_matter(self) -> str:
        header = {
            "title": self.title,
            "author": self.author,
            "version": self.version,
            "project": self.project_name,
            "organization": self.organization,
            "date": self.generated_date.strftime("%Y-%m-%d"),
        }
        if self.classification:
            header["classification"] = self.classification
        body = yaml.safe_dump(header, sort_keys=False, allow_unicode=True)
        return f"---\n{body}---\n\n"

    def compiler_variables(self) -> dict[str, str]:
        variables = {
            "title": self.title,
            "author": self.author,
            "date": self.generated_date.strftime("%B %d, %Y"),
        }
        if self.classification:
            variables["classification"] = self.classification
        return variables


def parse_formats(formats: Sequence[str]) -> list[DocumentFormat]:
    """Validate every requested format before any rendering starts."""
    parsed = []
    for fmt in formats:
        try:
            parsed.append(DocumentFormat(str(fmt).lower()))
        except ValueError:
            raise UnsupportedFormatError(f"Unsupported format: {fmt}")
    return parsed


def count_pdf_pages(data: bytes) -> int | None:
    pages = len(_PDF_PAGE.findall(data))
    return pages or None


class DocumentRenderer:
    """
    Turns one template plus input data into a file per requested format.

    Every format expands the template to markdown first; markdown is
    emitted as-is with a YAML front-matter block, html and pdf are
    compiled from it by pandoc.
    """

    def __init__(self, engine: TemplateEngine, compiler: PandocCompiler):
        self.engine = engine
        self.compiler = compiler

    def render_all(
        self,
        template,
        input_params: Any,
        formats: Sequence[str],
        metadata: DocumentMetadata,
    ) -> list[RenderedFile]:
        """
        All-or-nothing: the first failing format aborts the whole call.
        """
        parsed = parse_formats(formats)

        with tracer.start_as_current_span("render.all_formats") as span:
            span.set_attribute("render.formats", [f.value for f in parsed])
            files = [self.render_one(template, input_params, fmt, metadata) for fmt in parsed]

        logger.info(
            "Rendered %d format(s) for title=%r",
            len(files),
            metadata.title,
        )
        return files

    def render_one(
        self,
        template,
        input_params: Any,
        fmt: DocumentFormat,
        metadata: DocumentMetadata,
    ) -> RenderedFile:
        start = time.perf_counter()

        with tracer.start_as_current_span("render.format") as span:
            span.set_attribute("render.format", fmt.value)

            markup = self.engine.render(template, input_params, metadata.as_dict())

            page_count = None
            if fmt is DocumentFormat.MARKDOWN:
                data = (metadata.front_matter() + markup).encode("utf-8")
            elif fmt is DocumentFormat.HTML:
                data = self.compiler.to_html(markup, metadata.compiler_variables())
            elif fmt is DocumentFormat.PDF:
                data = self.compiler.to_pdf(markup, metadata.compiler_variables())
                page_count = count_pdf_pages(data)
            else:
                raise UnsupportedFormatError(f"Unsupported format: {fmt}")

            elapsed = time.perf_counter() - start
            span.set_attribute("render.bytes", len(data))

        render_duration_seconds.labels(format=fmt.value).observe(elapsed)
        logger.info(
            "Rendered %s for title=%r size=%d duration_ms=%d",
            fmt.value,
            metadata.title,
            len(data),
            int(elapsed * 1000),
        )

        return RenderedFile(
            format=fmt.value,
            content_type=fmt.content_type,
            file_name=build_artifact_filename(metadata.title, fmt.extension),
            data=data,
            rendering_duration_ms=int(elapsed * 1000),
            page_count=page_count,
        )
