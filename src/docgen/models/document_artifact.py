from sqlalchemy import Column, Integer, BigInteger, String, ForeignKey, Uuid, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from docgen.db.database import Base


class DocumentArtifact(Base):
    __tablename__ = "document_artifacts"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Uuid, nullable=False, index=True)
    job_id = Column(
        Integer,
        ForeignKey("generation_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    format = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    storage_path = Column(String, nullable=False)
    file_size = Column(BigInteger, nullable=False)
    content_type = Column(String, nullable=False)
    sha256_checksum = Column(String(64), nullable=False)
    page_count = Column(Integer, nullable=True)
    rendering_duration_ms = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    job = relationship("GenerationJob", back_populates="artifacts")
