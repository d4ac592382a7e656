# src/docgen/api/routes/documents.py

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel

from docgen.api.dependencies.services import get_document_service
from docgen.api.dependencies.tenant import get_tenant_id
from docgen.errors import JobNotFoundError
from docgen.services.document_service import DocumentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["Documents"])


# --- Pydantic models ---------------------------------------------------------

class ArtifactOut(BaseModel):
    id: int
    format: str
    file_name: str
    storage_path: str
    file_size: int
    content_type: str
    sha256_checksum: str
    page_count: Optional[int] = None
    rendering_duration_ms: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DocumentOut(BaseModel):
    id: int
    project_id: int
    template_id: Optional[int] = None
    correlation_id: Optional[UUID] = None
    title: str
    document_type: str
    status: str
    requested_formats: List[str]
    generation_metadata: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    requested_by: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DocumentDetailOut(DocumentOut):
    artifacts: List[ArtifactOut] = []


class DocumentPageOut(BaseModel):
    items: List[DocumentOut]
    total: int
    limit: int
    offset: int


class DownloadLinkOut(BaseModel):
    url: str
    file_name: str
    expires_in: int


# --- Endpoints ---------------------------------------------------------------

@router.get("", response_model=DocumentPageOut)
def list_documents(
    project_id: Optional[int] = None,
    document_type: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    tenant_id: UUID = Depends(get_tenant_id),
    service: DocumentService = Depends(get_document_service),
):
    """
    List generated documents for the current tenant, newest first.
    """
    page = service.list_documents(
        tenant_id,
        project_id=project_id,
        document_type=document_type,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    return {
        "items": [DocumentOut.model_validate(job) for job in page.items],
        "total": page.total,
        "limit": page.limit,
        "offset": page.offset,
    }


@router.get("/{document_id}", response_model=DocumentDetailOut)
def get_document(
    document_id: int,
    tenant_id: UUID = Depends(get_tenant_id),
    service: DocumentService = Depends(get_document_service),
):
    try:
        job, artifacts = service.get_document(tenant_id, document_id)
    except JobNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found",
        )

    detail = DocumentOut.model_validate(job).model_dump()
    detail["artifacts"] = [ArtifactOut.model_validate(a) for a in artifacts]
    return detail


@router.get(
    "/{document_id}/artifacts/{artifact_id}/download",
    response_model=DownloadLinkOut,
)
def download_artifact(
    document_id: int,
    artifact_id: int,
    tenant_id: UUID = Depends(get_tenant_id),
    service: DocumentService = Depends(get_document_service),
):
    """
    Return a time-limited retrieval link for one artifact.
    """
    try:
        link = service.create_download_link(tenant_id, document_id, artifact_id)
    except JobNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Artifact not found",
        )
    except (ClientError, BotoCoreError):
        logger.exception("Failed to generate retrieval link artifact=%s", artifact_id)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not generate download link",
        )

    return {"url": link.url, "file_name": link.file_name, "expires_in": link.expires_in}


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: int,
    tenant_id: UUID = Depends(get_tenant_id),
    service: DocumentService = Depends(get_document_service),
):
    """
    HARD delete a document, its artifacts and the stored files.
    """
    try:
        service.delete_document(tenant_id, document_id)
    except JobNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
