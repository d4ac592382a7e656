# src/docgen/repositories/document_template_repository.py

import logging
from uuid import UUID

from opentelemetry import trace
from sqlalchemy import or_
from sqlalchemy.orm import Session

from docgen.models.document_template import DocumentTemplate

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def _visible_to(tenant_id: UUID):
    # System templates are shared by every tenant
    return or_(
        DocumentTemplate.tenant_id == tenant_id,
        DocumentTemplate.is_system.is_(True),
    )


class DocumentTemplateRepository:

    @staticmethod
    def get_active_by_id(db: Session, template_id: int, tenant_id: UUID) -> DocumentTemplate | None:
        with tracer.start_as_current_span("db.get_document_template") as span:
            span.set_attribute("template.id", template_id)
            span.set_attribute("tenant_id", str(tenant_id))

            return (
                db.query(DocumentTemplate)
                .filter(
                    DocumentTemplate.id == template_id,
                    DocumentTemplate.is_active.is_(True),
                    _visible_to(tenant_id),
                )
                .first()
            )

    @staticmethod
    def get_default_for_type(
        db: Session,
        tenant_id: UUID,
        template_type: str,
        format: str,
    ) -> DocumentTemplate | None:
        """
        Most recently updated active template for (type, format).
        Tenant-authored templates take precedence over system ones.
        """
        with tracer.start_as_current_span("db.get_default_document_template") as span:
            span.set_attribute("template.type", template_type)
            span.set_attribute("template.format", format)

            template = (
                db.query(DocumentTemplate)
                .filter(
                    DocumentTemplate.template_type == template_type,
                    DocumentTemplate.format == format,
                    DocumentTemplate.is_active.is_(True),
                    _visible_to(tenant_id),
                )
                .order_by(
                    DocumentTemplate.is_system.asc(),
                    DocumentTemplate.updated_at.desc(),
                    DocumentTemplate.id.desc(),
                )
                .first()
            )

        logger.debug(
            "Default template for type=%s format=%s tenant=%s -> %s",
            template_type,
            format,
            tenant_id,
            getattr(template, "id", None),
        )
        return template
