"""Folding phase output into the job's accumulated artifacts.

Each phase script writes a token-named log (``<token>.txt``) and optionally
a token-named YAML status document (``<token>.yaml``) into the output
directory.  :class:`OutputMerger` folds both into ``output.txt`` and
``output.yaml`` and removes the scratch files; :class:`ChangeRecorder`
stores the container's filesystem-change report next to them.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

ACCUMULATED_LOG = "output.txt"
ACCUMULATED_STATUS = "output.yaml"

# ``Kind`` values returned by the Docker ``/containers/{id}/changes`` endpoint.
_CHANGE_KINDS: dict[int, str] = {0: "C", 1: "A", 2: "D"}


def append_text_artifact(source: Path, target: Path) -> None:
    """Append *source* to *target*, separated by one blank line.

    If *target* does not exist yet, *source* is copied verbatim.
    """
    if not target.exists():
        shutil.copyfile(source, target)
        return

    existing = target.read_text(encoding="utf-8", errors="replace")
    addition = source.read_text(encoding="utf-8", errors="replace")
    with open(target, "a", encoding="utf-8") as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        f.write("\n")
        f.write(addition)


def _load_mapping(path: Path) -> dict[str, Any]:
    """Load a YAML mapping, treating empty or unusable documents as empty."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8", errors="replace"))
    except yaml.YAMLError as exc:
        logger.warning("Ignoring malformed status document %s: %s", path.name, exc)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Ignoring status document %s: expected a mapping, got %s",
            path.name,
            type(data).__name__,
        )
        return {}
    return data


def _dump_mapping(data: dict[str, Any], path: Path) -> None:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False, default_flow_style=False)


def format_changes(changes: list[dict[str, Any]] | None) -> str:
    """Render Docker SDK ``container.diff()`` output like ``docker diff``."""
    if not changes:
        return ""
    lines = [
        f"{_CHANGE_KINDS.get(change.get('Kind'), '?')} {change.get('Path', '')}"
        for change in changes
    ]
    return "\n".join(lines) + "\n"


class OutputMerger:
    """Merge one phase's scratch files into the accumulated artifacts."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir

    def merge(self, token: str, phase: str, exit_code: int) -> None:
        """Fold the scratch files named by *token*, then delete them."""
        log_file = self.output_dir / f"{token}.txt"
        status_file = self.output_dir / f"{token}.yaml"
        try:
            self.merge_log(log_file, exit_code)
            self.merge_status(status_file, phase, exit_code)
        finally:
            log_file.unlink(missing_ok=True)
            status_file.unlink(missing_ok=True)

    def merge_log(self, log_file: Path, exit_code: int) -> None:
        if not log_file.exists():
            logger.info("Results file: %s does not exist", log_file)
            return

        content = log_file.read_text(encoding="utf-8", errors="replace")
        with open(log_file, "a", encoding="utf-8") as f:
            if content and not content.endswith("\n"):
                f.write("\n")
            f.write(f"exit code: {exit_code}\n")

        append_text_artifact(log_file, self.output_dir / ACCUMULATED_LOG)

    def merge_status(self, status_file: Path, phase: str, exit_code: int) -> None:
        if not status_file.exists():
            logger.info("Results file: %s does not exist", status_file)
            return

        incoming = _load_mapping(status_file)
        incoming["exit_code"] = exit_code
        incoming[f"{phase}_exit_code"] = exit_code

        accumulated_file = self.output_dir / ACCUMULATED_STATUS
        if accumulated_file.exists():
            merged = _load_mapping(accumulated_file)
            # Keys from the current phase win on conflict.
            merged.update(incoming)
        else:
            merged = incoming
        _dump_mapping(merged, accumulated_file)


class ChangeRecorder:
    """Persist a phase's filesystem-change report as ``<phase>-diff.txt``."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir

    def record(self, phase: str, changes: str) -> Path:
        if changes.strip():
            logger.info("docker diff (%s):\n%s", phase, changes)
        else:
            logger.info("docker diff (%s): nothing changed", phase)
        path = self.output_dir / f"{phase}-diff.txt"
        path.write_text(changes, encoding="utf-8")
        return path
