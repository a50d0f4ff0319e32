"""Fail-fast validation of raw job records.

:class:`JobValidator` turns the flat key/value record delivered by the
transport into a :class:`~overseer.models.job.Job`, or raises
:class:`~overseer.errors.ClientFault` with a human-readable reason.  It only
reads the filesystem; nothing is created or removed here.
"""

from __future__ import annotations

import logging
import re
import zipfile
import zlib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from overseer.errors import ClientFault
from overseer.models.job import Job

logger = logging.getLogger(__name__)

# Checked in this order; the first missing one is reported.
REQUIRED_FIELDS: tuple[str, ...] = (
    "docker_image_name_tag",
    "output_path",
    "submission",
    "assessment",
    "timestamp",
    "task_id",
)

# Loose form of the Docker reference grammar: optional registry host/port,
# slash-separated lowercase path components, optional tag and digest.
_IMAGE_REF_RE: re.Pattern[str] = re.compile(
    r"^(?:[a-zA-Z0-9.-]+(?::[0-9]+)?/)?"
    r"[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*"
    r"(?:/[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*)*"
    r"(?::[A-Za-z0-9_][A-Za-z0-9_.-]{0,127})?"
    r"(?:@sha256:[a-f0-9]{64})?$"
)


def is_valid_image_reference(reference: object) -> bool:
    """Return ``True`` if *reference* looks like a usable ``name:tag``."""
    if not isinstance(reference, str) or not reference.strip():
        return False
    return _IMAGE_REF_RE.match(reference) is not None


def is_valid_archive(path: str | Path) -> bool:
    """Return ``True`` if *path* is a readable zip archive with intact members."""
    # Encrypted members raise RuntimeError, unknown compression methods
    # NotImplementedError, and a damaged deflate stream zlib.error.
    try:
        if not zipfile.is_zipfile(path):
            return False
        with zipfile.ZipFile(path) as archive:
            return archive.testzip() is None
    except (
        OSError,
        zipfile.BadZipFile,
        zlib.error,
        RuntimeError,
        NotImplementedError,
        EOFError,
    ) as exc:
        logger.warning("Archive check failed for %s: %s", path, exc)
        return False


def is_flag_set(value: object) -> bool:
    """Integer 0/1 flags; anything other than the integer 1 counts as unset."""
    return isinstance(value, int) and not isinstance(value, bool) and value == 1


class JobValidator:
    """Validate raw job records before any side effect happens.

    Parameters
    ----------
    root_path:
        Optional prefix prepended to ``submission``, ``assessment`` and
        ``output_path`` (development mode, where the producer sends paths
        relative to a shared mount).
    """

    def __init__(self, root_path: str = "") -> None:
        self._root_path = root_path

    def validate(self, raw: Any) -> Job:
        if not isinstance(raw, Mapping):
            raise ClientFault("Job payload must be a key/value record")

        for name in REQUIRED_FIELDS:
            if raw.get(name) is None:
                raise ClientFault(f"PARAM `{name}` is required")

        task_id = raw["task_id"]
        if isinstance(task_id, bool) or not isinstance(task_id, int):
            raise ClientFault(f"Invalid task_id: {task_id}")

        image = raw["docker_image_name_tag"]
        if not is_valid_image_reference(image):
            raise ClientFault("A valid Docker image name:tag is needed")

        output_path = raw["output_path"]
        if not isinstance(output_path, str) or not output_path.strip():
            raise ClientFault("A valid output_path is needed")

        submission = raw["submission"]
        assessment = raw["assessment"]
        if not isinstance(submission, str) or not isinstance(assessment, str):
            raise ClientFault("PARAM `submission` and `assessment` must be paths")

        if self._root_path:
            logger.info("Prepending root path %s to job paths", self._root_path)
            output_path = f"{self._root_path}{output_path}"
            submission = f"{self._root_path}{submission}"
            assessment = f"{self._root_path}{assessment}"

        submission_is_archive = is_flag_set(raw.get("zip_file"))
        if submission_is_archive:
            if not Path(submission).is_file():
                raise ClientFault(f"Zip file not found: {submission}")
        elif not Path(submission).is_dir():
            # Without the zip_file flag a pre-extracted folder is expected.
            raise ClientFault(f"Folder not found: {submission}")

        if not Path(assessment).is_file():
            raise ClientFault(f"Zip file not found: {assessment}")

        if submission_is_archive and not is_valid_archive(submission):
            raise ClientFault(f"Invalid zip file: {submission}")

        if not is_valid_archive(assessment):
            raise ClientFault(f"Invalid zip file: {assessment}")

        return Job(
            task_id=task_id,
            timestamp=raw["timestamp"],
            submission=submission,
            assessment=assessment,
            image=image,
            output_path=output_path,
            submission_is_archive=submission_is_archive,
            skip_cleanup=is_flag_set(raw.get("skip_rm")),
        )
