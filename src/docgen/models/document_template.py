from sqlalchemy import Column, Integer, BigInteger, String, Text, Boolean, Uuid, Index

from docgen.db.database import Base
from docgen.models.mixins import TimestampMixin


class DocumentTemplate(Base, TimestampMixin):
    __tablename__ = "document_templates"
    __table_args__ = (
        Index("ix_document_templates_lookup", "tenant_id", "template_type", "format"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Uuid, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    template_type = Column(String, nullable=False)
    format = Column(String, nullable=False)
    template_content = Column(Text, nullable=False)
    schema_version = Column(String, nullable=False, default="1.0")

    is_system = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(BigInteger, nullable=True)
