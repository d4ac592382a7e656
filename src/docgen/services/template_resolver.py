# src/docgen/services/template_resolver.py

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from opentelemetry import trace
from sqlalchemy.orm import Session

from docgen.errors import TemplateNotFoundError
from docgen.repositories.document_template_repository import DocumentTemplateRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class ResolvedTemplate:
    id: int
    name: str
    template_type: str
    format: str
    schema_version: str
    content: str
    updated_at: datetime | None = None

    @property
    def cache_key(self) -> tuple[str, str, str]:
        stamp = self.updated_at.isoformat() if self.updated_at else "-"
        return (self.template_type, self.format, f"{self.id}:{self.schema_version}:{stamp}")

    @classmethod
    def from_model(cls, template) -> "ResolvedTemplate":
        return cls(
            id=template.id,
            name=template.name,
            template_type=template.template_type,
            format=template.format,
            schema_version=template.schema_version,
            content=template.template_content,
            updated_at=template.updated_at,
        )


class TemplateResolver:
    """Pick the markup template for a job."""

    def __init__(self, repository=DocumentTemplateRepository):
        self.repository = repository

    def resolve(
        self,
        db: Session,
        tenant_id: UUID,
        *,
        template_id: int | None,
        document_type: str,
        format: str,
    ) -> ResolvedTemplate:
        with tracer.start_as_current_span("templates.resolve") as span:
            span.set_attribute("tenant_id", str(tenant_id))
            span.set_attribute("template.type", document_type)
            span.set_attribute("template.format", format)

            if template_id is not None:
                span.set_attribute("template.id", template_id)
                template = self.repository.get_active_by_id(db, template_id, tenant_id)
                if template is None:
                    raise TemplateNotFoundError(
                        f"Template {template_id} not found or inactive"
                    )
            else:
                template = self.repository.get_default_for_type(db, tenant_id, document_type, format)
                if template is None:
                    raise TemplateNotFoundError(
                        f"No default template found for document type '{document_type}' "
                        f"and format '{format}'"
                    )

        logger.info(
            "Resolved template id=%s name=%s for type=%s tenant=%s",
            template.id,
            template.name,
            document_type,
            tenant_id,
        )
        return ResolvedTemplate.from_model(template)
