from sqlalchemy import Column, Integer, BigInteger, String, Text, JSON, DateTime, Uuid, Index
from sqlalchemy.orm import relationship

from docgen.db.database import Base
from docgen.models.enums import JobStatus
from docgen.models.mixins import TimestampMixin


class GenerationJob(Base, TimestampMixin):
    __tablename__ = "generation_jobs"
    __table_args__ = (
        Index("ix_generation_jobs_tenant_project", "tenant_id", "project_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Uuid, nullable=False, index=True)
    project_id = Column(BigInteger, nullable=False)
    template_id = Column(Integer, nullable=True)
    correlation_id = Column(Uuid, nullable=True)

    title = Column(String, nullable=False)
    document_type = Column(String, nullable=False)
    status = Column(String, nullable=False, default=JobStatus.QUEUED.value)
    requested_formats = Column(JSON, nullable=False)
    input_params = Column(JSON, nullable=False)
    generation_metadata = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    requested_by = Column(BigInteger, nullable=False)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    artifacts = relationship(
        "DocumentArtifact",
        back_populates="job",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DocumentArtifact.format",
    )

    @property
    def is_terminal(self) -> bool:
        return JobStatus(self.status).is_terminal

    def __repr__(self) -> str:
        return f"<GenerationJob id={self.id} status={self.status} tenant={self.tenant_id}>"
