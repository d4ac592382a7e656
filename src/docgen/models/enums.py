# src/docgen/models/enums.py

from enum import Enum


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    RENDERING = "rendering"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @classmethod
    def predecessors(cls, status: "JobStatus") -> tuple["JobStatus", ...]:
        """Statuses a job may be in immediately before moving to `status`."""
        return tuple(src for src, targets in _TRANSITIONS.items() if status in targets)

    @classmethod
    def can_transition(cls, current: "JobStatus", new: "JobStatus") -> bool:
        return new in _TRANSITIONS.get(JobStatus(current), ())


# queued -> processing -> rendering -> uploading -> completed
# failed is reachable from processing, rendering and uploading only.
_TRANSITIONS = {
    JobStatus.QUEUED: (JobStatus.PROCESSING,),
    JobStatus.PROCESSING: (JobStatus.RENDERING, JobStatus.FAILED),
    JobStatus.RENDERING: (JobStatus.UPLOADING, JobStatus.FAILED),
    JobStatus.UPLOADING: (JobStatus.COMPLETED, JobStatus.FAILED),
    JobStatus.COMPLETED: (),
    JobStatus.FAILED: (),
}


class DocumentFormat(str, Enum):
    MARKDOWN = "markdown"
    HTML = "html"
    PDF = "pdf"

    @property
    def extension(self) -> str:
        return _FORMAT_EXTENSIONS[self]

    @property
    def content_type(self) -> str:
        return _FORMAT_CONTENT_TYPES[self]


_FORMAT_EXTENSIONS = {
    DocumentFormat.MARKDOWN: "md",
    DocumentFormat.HTML: "html",
    DocumentFormat.PDF: "pdf",
}

_FORMAT_CONTENT_TYPES = {
    DocumentFormat.MARKDOWN: "text/markdown; charset=utf-8",
    DocumentFormat.HTML: "text/html; charset=utf-8",
    DocumentFormat.PDF: "application/pdf",
}


class DocumentType(str, Enum):
    """
    Closed set of document kinds the worker produces.

    Requests are decoded into one of these variants up front; adding a
    document kind means adding a member here and an entry in _STANDARDS.
    """

    SRS = "srs"
    SYRS = "syrs"
    STAKRS = "stakrs"
    CONOPS = "conops"
    DRD = "drd"
    SECURITY_SCAN_REPORT = "security_scan_report"
    COMPLIANCE_AUDIT_REPORT = "compliance_audit_report"
    TEST_EXECUTION_REPORT = "test_execution_report"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if member.value == key:
                    return member
            alias = _LEGACY_ALIASES.get(key)
            if alias is not None:
                return cls(alias)
        return None

    @property
    def standard(self) -> str:
        return _STANDARDS[self]


_LEGACY_ALIASES = {
    "ieee830_srs": "srs",
    "milstd498_srs": "srs",
    "iso29148_software_requirements": "srs",
    "iso29148_system_requirements": "syrs",
    "iso29148_stakeholder_requirements": "stakrs",
    "iso29148_concept_of_operations": "conops",
    "ieee830_drd": "drd",
}

_STANDARDS = {
    DocumentType.SRS: "Software Requirements Specification (ISO/IEC/IEEE 29148)",
    DocumentType.SYRS: "System Requirements Specification (ISO/IEC/IEEE 29148)",
    DocumentType.STAKRS: "Stakeholder Requirements Specification (ISO/IEC/IEEE 29148)",
    DocumentType.CONOPS: "Concept of Operations (ISO/IEC/IEEE 29148)",
    DocumentType.DRD: "Data Requirements Description (IEEE 830)",
    DocumentType.SECURITY_SCAN_REPORT: "Security Scan Report",
    DocumentType.COMPLIANCE_AUDIT_REPORT: "Compliance Audit Report",
    DocumentType.TEST_EXECUTION_REPORT: "Test Execution Report",
}
