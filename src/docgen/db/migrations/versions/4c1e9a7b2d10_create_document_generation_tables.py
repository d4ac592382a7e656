"""create document generation tables

Revision ID: 4c1e9a7b2d10
Revises:
Create Date: 2026-10-17 09:12:44.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4c1e9a7b2d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# The setting reverts to '' (not NULL) once a transaction-local value ends
TENANT_PREDICATE = "tenant_id = NULLIF(current_setting('app.current_tenant', true), '')::uuid"


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "document_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("template_type", sa.String(), nullable=False),
        sa.Column("format", sa.String(), nullable=False),
        sa.Column("template_content", sa.Text(), nullable=False),
        sa.Column("schema_version", sa.String(), nullable=False, server_default="1.0"),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.BigInteger(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_document_templates_lookup",
        "document_templates",
        ["tenant_id", "template_type", "format"],
    )

    op.create_table(
        "generation_jobs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.BigInteger(), nullable=False),
        sa.Column("template_id", sa.Integer(), nullable=True),
        sa.Column("correlation_id", sa.Uuid(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("document_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="queued"),
        sa.Column("requested_formats", sa.JSON(), nullable=False),
        sa.Column("input_params", sa.JSON(), nullable=False),
        sa.Column("generation_metadata", sa.JSON(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("requested_by", sa.BigInteger(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('queued', 'processing', 'rendering', 'uploading', 'completed', 'failed')",
            name="ck_generation_jobs_status",
        ),
    )
    op.create_index("ix_generation_jobs_tenant_id", "generation_jobs", ["tenant_id"])
    op.create_index("ix_generation_jobs_tenant_project", "generation_jobs", ["tenant_id", "project_id"])

    op.create_table(
        "document_artifacts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column(
            "job_id",
            sa.Integer(),
            sa.ForeignKey("generation_jobs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("format", sa.String(), nullable=False),
        sa.Column("file_name", sa.String(), nullable=False),
        sa.Column("storage_path", sa.String(), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("content_type", sa.String(), nullable=False),
        sa.Column("sha256_checksum", sa.String(64), nullable=False),
        sa.Column("page_count", sa.Integer(), nullable=True),
        sa.Column("rendering_duration_ms", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_document_artifacts_tenant_id", "document_artifacts", ["tenant_id"])
    op.create_index("ix_document_artifacts_job_id", "document_artifacts", ["job_id"])

    # Row-level security: rows are only visible to the tenant bound to the
    # current transaction (see docgen.db.tenant).
    for table in ("generation_jobs", "document_artifacts"):
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY")
        op.execute(
            f"CREATE POLICY {table}_tenant_isolation ON {table} "
            f"USING ({TENANT_PREDICATE}) WITH CHECK ({TENANT_PREDICATE})"
        )

    op.execute("ALTER TABLE document_templates ENABLE ROW LEVEL SECURITY")
    op.execute("ALTER TABLE document_templates FORCE ROW LEVEL SECURITY")
    op.execute(
        "CREATE POLICY document_templates_tenant_isolation ON document_templates "
        f"USING (is_system OR {TENANT_PREDICATE}) WITH CHECK ({TENANT_PREDICATE})"
    )


def downgrade() -> None:
    for table in ("document_templates", "document_artifacts", "generation_jobs"):
        op.execute(f"DROP POLICY IF EXISTS {table}_tenant_isolation ON {table}")

    op.drop_index("ix_document_artifacts_job_id", table_name="document_artifacts")
    op.drop_index("ix_document_artifacts_tenant_id", table_name="document_artifacts")
    op.drop_table("document_artifacts")

    op.drop_index("ix_generation_jobs_tenant_project", table_name="generation_jobs")
    op.drop_index("ix_generation_jobs_tenant_id", table_name="generation_jobs")
    op.drop_table("generation_jobs")

    op.drop_index("ix_document_templates_lookup", table_name="document_templates")
    op.drop_table("document_templates")
