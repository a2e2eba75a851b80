"""On-disk mapping artifacts: ``<base_dir>/mappings/run_<run_id>.json``.

An artifact fully reverses anonymization, so it is written owner-only
(0600) inside an owner-only directory (0700) that carries its own
``.gitignore``. Nothing here deletes artifacts implicitly.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, ClassVar

from necromancer.logging.logger import Log
from necromancer.privacy.exceptions import (
    MappingFormatError,
    MappingNotFoundError,
    MappingRestoreError,
    MappingWriteError,
)
from necromancer.privacy.models import MappingSnapshot
from necromancer.privacy.tokenizer import Tokenizer

_RUN_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_REQUIRED_FIELDS = ("run_id", "created_at", "salt", "mappings")


def generate_run_id(now: datetime | None = None) -> str:
    """Sortable run identifier from the wall clock (UTC)."""
    moment = now if now is not None else datetime.now(timezone.utc)
    return moment.strftime("%Y%m%d_%H%M%S_%f")


class MappingStore:
    """Saves, loads, lists and deletes per-run mapping artifacts."""

    DEFAULT_BASE_DIR: ClassVar[Path] = Path(".necromancer")
    _GITIGNORE: ClassVar[str] = (
        "# Ignore all mapping files - they contain sensitive data\nmappings/\n"
    )

    def __init__(self, base_dir: Path | None = None) -> None:
        self._base_dir = base_dir if base_dir is not None else self.DEFAULT_BASE_DIR

    @property
    def mappings_dir(self) -> Path:
        return self._base_dir / "mappings"

    def path_for(self, run_id: str) -> Path:
        """Artifact path for *run_id*.

        Raises:
            ValueError: if *run_id* contains anything but [A-Za-z0-9_-].
        """
        if not _RUN_ID_RE.match(run_id):
            raise ValueError(f"Invalid run id: {run_id!r}")
        return self.mappings_dir / f"run_{run_id}.json"

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save(self, tokenizer: Tokenizer, run_id: str) -> Path:
        """Write *tokenizer*'s salt and table to the artifact for *run_id*.

        The tokenizer lock is held only while the snapshot is copied.

        Raises:
            MappingWriteError: if the directory or file cannot be written.
        """
        path = self.path_for(run_id)
        snapshot = tokenizer.snapshot()
        document = {
            "run_id": run_id,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "salt": snapshot.salt,
            "mappings": snapshot.mappings,
        }
        try:
            self._prepare_directory()
            self._write_private(path, json.dumps(document, indent=2, ensure_ascii=False))
        except OSError as exc:
            raise MappingWriteError(f"Failed to write mapping file {path}: {exc}") from exc

        Log.info(f"Saved mapping for run {run_id}: {len(snapshot.mappings)} entries -> {path}")
        return path

    def _prepare_directory(self) -> None:
        self._base_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        self.mappings_dir.mkdir(mode=0o700, exist_ok=True)
        os.chmod(self.mappings_dir, 0o700)
        gitignore = self._base_dir / ".gitignore"
        if not gitignore.exists():
            self._write_private(gitignore, self._GITIGNORE)

    @staticmethod
    def _write_private(path: Path, content: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".json")
        try:
            os.fchmod(fd, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load(self, run_id: str) -> MappingSnapshot:
        """Read and validate the artifact for *run_id*.

        Raises:
            MappingNotFoundError: if no artifact exists.
            MappingFormatError: if it is unreadable or structurally invalid.
        """
        path = self.path_for(run_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise MappingNotFoundError(f"No mapping file for run {run_id}") from exc
        except OSError as exc:
            raise MappingFormatError(f"Cannot read mapping file {path}: {exc}") from exc

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MappingFormatError(f"Invalid JSON in mapping file {path}: {exc}") from exc

        snapshot = _build_snapshot(data)
        if data["run_id"] != run_id:
            Log.warning(f"Mapping file {path} records run id {data['run_id']!r}")
        return snapshot

    def load_into(self, tokenizer: Tokenizer, run_id: str) -> None:
        """Load the artifact and restore it into *tokenizer*, all or nothing.

        Raises:
            MappingNotFoundError: if no artifact exists.
            MappingFormatError: if the artifact is invalid; *tokenizer* is untouched.
        """
        snapshot = self.load(run_id)
        try:
            tokenizer.restore(snapshot)
        except MappingRestoreError as exc:
            raise MappingFormatError(f"Mapping for run {run_id} is inconsistent: {exc}") from exc
        Log.info(f"Restored mapping for run {run_id}: {len(snapshot.mappings)} entries")

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def delete(self, run_id: str) -> None:
        """Remove the artifact for *run_id*.

        Raises:
            MappingNotFoundError: if no artifact exists.
        """
        path = self.path_for(run_id)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise MappingNotFoundError(f"No mapping file for run {run_id}") from exc
        Log.info(f"Deleted mapping for run {run_id}")

    def list_runs(self) -> list[str]:
        """Run ids with an artifact on disk, oldest first."""
        if not self.mappings_dir.is_dir():
            return []
        return sorted(
            path.stem.removeprefix("run_")
            for path in self.mappings_dir.glob("run_*.json")
        )


def _build_snapshot(data: Any) -> MappingSnapshot:
    if not isinstance(data, dict):
        raise MappingFormatError("Mapping file must contain a JSON object")
    for name in _REQUIRED_FIELDS:
        if name not in data:
            raise MappingFormatError(f"Missing required field: {name}")
    if not isinstance(data["run_id"], str):
        raise MappingFormatError("'run_id' must be a string")
    if not isinstance(data["created_at"], str):
        raise MappingFormatError("'created_at' must be a string")
    salt = data["salt"]
    if not isinstance(salt, str) or not salt:
        raise MappingFormatError("'salt' must be a non-empty string")
    mappings = data["mappings"]
    if not isinstance(mappings, dict):
        raise MappingFormatError("'mappings' must be an object")
    seen_reals: set[str] = set()
    seen_tokens: set[str] = set()
    for index, (real, token) in enumerate(mappings.items()):
        # Messages cite positions and tokens, never the real identifier.
        if not isinstance(token, str) or not token:
            raise MappingFormatError(f"Mapping entry {index}: token must be a non-empty string")
        normalized = Tokenizer.normalize(real)
        if not normalized:
            raise MappingFormatError(f"Mapping entry {index}: identifier is empty")
        if normalized in seen_reals:
            raise MappingFormatError(f"Mapping entry {index}: identifier appears twice")
        if token in seen_tokens:
            raise MappingFormatError(f"Mapping entry {index}: token {token} appears twice")
        seen_reals.add(normalized)
        seen_tokens.add(token)
    return MappingSnapshot(salt=salt, mappings=dict(mappings))
