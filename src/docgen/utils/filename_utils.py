# src/docgen/utils/filename_utils.py

import re
from datetime import datetime, timezone

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_title(title: str) -> str:
    """
    Make a document title safe for use inside an object key.
    Every character other than ASCII letters, digits, '-' and '_' becomes '_'.
    """
    if not title:
        return "document"
    return _UNSAFE_CHARS.sub("_", title)


def build_artifact_filename(title: str, extension: str, generated_at: datetime | None = None) -> str:
    """
    "Alpha Spec", "md" -> "Alpha_Spec_20261017_093000.md"
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    stamp = generated_at.strftime("%Y%m%d_%H%M%S")
    return f"{sanitize_title(title)}_{stamp}.{extension.lstrip('.')}"
