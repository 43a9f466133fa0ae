"""JourneyQA evidence store -- filesystem ArtifactSink.

Writes each attached artifact into the run's evidence directory and keeps
an ordered record of what was attached so the report can list it.
"""

from __future__ import annotations

import dataclasses
import logging
import mimetypes
import re
from pathlib import Path

logger = logging.getLogger("journeyqa.engine.evidence")

_EXTENSIONS = {
    "image/png": ".png",
    "text/html": ".html",
    "application/json": ".json",
    "text/markdown": ".md",
    "text/plain": ".txt",
}


@dataclasses.dataclass(frozen=True)
class Attachment:
    """One artifact written by the evidence store."""

    name: str
    path: str
    mime_type: str
    size_bytes: int


class EvidenceStore:
    """Stores artifacts under ``evidence_dir``; never overwrites an earlier one."""

    def __init__(self, evidence_dir: Path) -> None:
        self._evidence_dir = evidence_dir
        self._attachments: list[Attachment] = []

    @property
    def evidence_dir(self) -> Path:
        return self._evidence_dir

    @property
    def attachments(self) -> list[Attachment]:
        return list(self._attachments)

    def attach_artifact(self, name: str, data: bytes, mime_type: str) -> str:
        """Write ``data`` to ``<evidence_dir>/<name><ext>`` and return the path."""
        self._evidence_dir.mkdir(parents=True, exist_ok=True)
        ext = _EXTENSIONS.get(mime_type) or mimetypes.guess_extension(mime_type) or ".bin"
        stem = re.sub(r"[^A-Za-z0-9._-]+", "-", name).strip("-") or "artifact"

        path = self._evidence_dir / f"{stem}{ext}"
        suffix = 2
        while path.exists():
            path = self._evidence_dir / f"{stem}-{suffix}{ext}"
            suffix += 1

        path.write_bytes(data)
        attachment = Attachment(name=name, path=str(path), mime_type=mime_type, size_bytes=len(data))
        self._attachments.append(attachment)
        logger.debug("Attached %s (%s, %d bytes)", path, mime_type, len(data))
        return str(path)
