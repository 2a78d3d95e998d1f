"""
Evidence upload handling for case reports.

Uploads arrive as three multipart fields (see EVIDENCE_FIELDS). Every file
is checked before anything touches the disk, so a rejected report leaves
no stray files behind. Accepted files get a random name inside the upload
directory and are served back under the uploads URL prefix.
"""

import logging
import re
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable

from bson import ObjectId

from barangay.core.errors import ValidationError
from barangay.models.case import EVIDENCE_FIELDS, MIN_EVIDENCE_FILES, EvidenceKind

logger = logging.getLogger(__name__)

_EXT_RE = re.compile(r"^[a-z0-9]{1,10}$")


@dataclass
class IncomingFile:
    """One uploaded file, already read into memory."""
    field: str
    filename: str
    content: bytes
    content_type: str = ""

    @property
    def kind(self) -> EvidenceKind:
        return EVIDENCE_FIELDS[self.field][0]

    @property
    def size(self) -> int:
        return len(self.content)


async def collect_uploads(form, max_bytes: int) -> list[IncomingFile]:
    """
    Pull the evidence fields out of a parsed multipart form.

    Reads at most `max_bytes + 1` bytes per file so an oversized upload is
    detected without buffering all of it.
    """
    collected = []
    for field in EVIDENCE_FIELDS:
        for upload in form.getlist(field):
            if isinstance(upload, str) or not hasattr(upload, "read"):
                # Plain text value sent under a file field
                continue
            content = await upload.read(max_bytes + 1)
            collected.append(
                IncomingFile(
                    field=field,
                    filename=upload.filename or "",
                    content=content,
                    content_type=upload.content_type or "",
                )
            )
    return collected


def files_of_kind(files: Iterable[IncomingFile], kind: EvidenceKind) -> list[IncomingFile]:
    return [f for f in files if f.kind is kind]


class EvidenceStore:
    """Validates and writes evidence files to the upload directory."""

    def __init__(self, upload_dir: Path, url_prefix: str = "/uploads", max_bytes: int = 10 * 1024 * 1024):
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes

    def check_limits(self, files: list[IncomingFile]) -> None:
        """Per-field count limits and per-file size checks."""
        for field, (_kind, max_count) in EVIDENCE_FIELDS.items():
            count = sum(1 for f in files if f.field == field)
            if count > max_count:
                raise ValidationError(f"Too many files for {field} (max {max_count}).")

        failed = []
        for f in files:
            if f.size == 0:
                failed.append(f"File is empty: {f.filename or 'unnamed'}")
            elif f.size > self.max_bytes:
                failed.append(
                    f"File too large: {f.filename or 'unnamed'} (max {self.max_bytes // (1024 * 1024)} MB)"
                )
        for reason in failed:
            logger.warning("Evidence file rejected: %s", reason)
        if len(failed) == 1:
            raise ValidationError(f"File upload failed: {failed[0]}. Please try uploading again.")
        if failed:
            raise ValidationError("Multiple file uploads failed. Please check your files and try again.")

    def check_type_rules(self, type_of_case: str, files: list[IncomingFile]) -> None:
        if type_of_case == "Physical Assault" and not files_of_kind(files, EvidenceKind.MEDICO_LEGAL):
            raise ValidationError(
                "For Physical Assault cases, a medico-legal or physical exam file is required."
            )
        if type_of_case == "Vandalism" and not files_of_kind(files, EvidenceKind.VANDALISM_IMAGE):
            raise ValidationError("For Vandalism cases, at least one image proof is required.")

    def check_minimum(self, files: list[IncomingFile]) -> None:
        if len(files) < MIN_EVIDENCE_FILES:
            raise ValidationError(f"Please upload at least {MIN_EVIDENCE_FILES} evidence files.")

    def stored_name(self, original: str) -> str:
        ext = original.rsplit(".", 1)[-1].lower() if "." in original else ""
        if not _EXT_RE.match(ext):
            ext = "bin"
        return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}.{ext}"

    def save(
        self,
        files: list[IncomingFile],
        uploader: dict,
        now: datetime,
    ) -> tuple[list[dict], list[Path]]:
        """
        Write every file and build the evidence entries.

        Returns (evidences, written paths). If a write fails, the files
        already written by this call are removed before re-raising.
        """
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        evidences = []
        written: list[Path] = []
        # Stored in field order: general evidence, medico-legal, vandalism images
        ordered = [f for kind in EvidenceKind for f in files_of_kind(files, kind)]
        try:
            for f in ordered:
                name = self.stored_name(f.filename)
                path = self.upload_dir / name
                path.write_bytes(f.content)
                written.append(path)
                evidences.append({
                    "_id": ObjectId(),
                    "kind": f.kind.value,
                    "filename": f.filename,
                    "url": f"{self.url_prefix}/{name}",
                    "uploadedAt": now,
                    "uploadedBy": uploader,
                })
        except OSError:
            logger.exception("Writing evidence files to %s failed", self.upload_dir)
            self.cleanup(written)
            raise
        logger.info("Stored %s evidence file(s) in %s", len(written), self.upload_dir)
        return evidences, written

    def cleanup(self, paths: Iterable[Path]) -> int:
        """Remove written files; returns how many were deleted."""
        removed = 0
        for path in paths:
            try:
                path.unlink()
                removed += 1
                logger.info("Cleaned up evidence file %s", path.name)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Failed to clean up %s: %s", path, e)
        return removed


def evidence_store_from_settings(settings) -> EvidenceStore:
    return EvidenceStore(
        upload_dir=Path(settings.upload_dir),
        url_prefix=settings.upload_url_prefix,
        max_bytes=settings.max_upload_bytes,
    )
