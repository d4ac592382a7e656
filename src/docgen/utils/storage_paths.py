# src/docgen/utils/storage_paths.py

from uuid import UUID


def build_job_prefix(tenant_id: UUID, project_id: int, job_id: int) -> str:
    """
    {tenant_id}/documents/{project_id}/{job_id}/
    """
    return f"{tenant_id}/documents/{project_id}/{job_id}/"


def build_artifact_path(tenant_id: UUID, project_id: int, job_id: int, file_name: str) -> str:
    """
    Object key for one rendered file:
    {tenant_id}/documents/{project_id}/{job_id}/{file_name}
    """
    return f"{build_job_prefix(tenant_id, project_id, job_id)}{file_name}"
