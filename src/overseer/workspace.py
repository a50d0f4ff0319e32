"""Workspace staging and teardown.

The workspace is the host directory bind-mounted into both phase
containers.  It is emptied before anything is staged into it and emptied
(or, for a per-task workspace, deleted) once an accepted job is over,
whichever way the job ended.
"""

from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path, PurePosixPath
from types import TracebackType

from overseer.models.job import Job

logger = logging.getLogger(__name__)


def clear_directory(path: Path | None) -> None:
    """Recursively and forcefully remove everything inside *path*.

    The directory itself is kept.  A ``None`` or non-existent path is a
    no-op.
    """
    if path is None or not path.exists():
        return
    logger.info("Recursively force removing: %s/*", path)
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child, ignore_errors=True)
        else:
            child.unlink(missing_ok=True)


def extract_flat(archive_path: str | Path, destination: Path) -> list[str]:
    """Extract every file entry of a zip archive directly into *destination*.

    Directory structure is discarded: each entry lands under its base name
    and later entries overwrite earlier ones with the same name.  Returns the
    names written, in archive order.
    """
    written: list[str] = []
    with zipfile.ZipFile(archive_path) as archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            name = PurePosixPath(info.filename.replace("\\", "/")).name
            if name in ("", ".", ".."):
                continue
            logger.info("Extracting %s", info.filename)
            path = destination / name
            # Replace, never write through, whatever a folder submission left here.
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink(missing_ok=True)
            with archive.open(info) as source, open(path, "wb") as target:
                shutil.copyfileobj(source, target)
            written.append(name)
    return written


class WorkspaceStager:
    """Produce an empty-then-populated workspace for exactly one job."""

    def reset(self, workspace: Path) -> None:
        """Create *workspace* if needed, otherwise empty it."""
        if not workspace.exists():
            workspace.mkdir(parents=True, exist_ok=True)
        else:
            clear_directory(workspace)

    def stage(self, job: Job, workspace: Path) -> None:
        """Reset *workspace* and populate it with the submission, then the assessment.

        Assessment files are extracted last so they take precedence over
        submission files with the same name.
        """
        logger.info("Docker execution path: %s", workspace)
        self.reset(workspace)

        if job.submission_is_archive:
            logger.info("Extracting submission from zip file %s", job.submission)
            extract_flat(job.submission, workspace)
        else:
            logger.info("Copying submission files from %s", job.submission)
            shutil.copytree(job.submission, workspace, symlinks=True, dirs_exist_ok=True)

        logger.info("Extracting assessment from %s", job.assessment)
        extract_flat(job.assessment, workspace)


class CleanupManager:
    """Guaranteed workspace teardown, used as a ``with`` block around a job.

    The workspace may be assigned after entering the block, once it is
    known.  Teardown runs once on exit, whether the block finished or
    raised, and is skipped entirely when *skip* is set.  With *remove_root*
    the workspace directory itself is deleted rather than emptied.
    """

    def __init__(
        self,
        workspace: Path | None = None,
        skip: bool = False,
        remove_root: bool = False,
    ) -> None:
        self.workspace = workspace
        self.skip = skip
        self.remove_root = remove_root
        self.runs = 0

    def __enter__(self) -> CleanupManager:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        self.run()
        return False

    def run(self) -> None:
        if self.runs:
            return
        self.runs += 1
        if self.skip:
            logger.info("Skipping workspace cleanup for %s", self.workspace)
            return
        if self.remove_root and self.workspace is not None and self.workspace.exists():
            logger.info("Removing workspace %s", self.workspace)
            shutil.rmtree(self.workspace, ignore_errors=True)
            return
        clear_directory(self.workspace)
