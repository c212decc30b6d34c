"""Filesystem repository for archiving catalog runs."""
from __future__ import annotations

import json
import re
from pathlib import Path

from catalog_checker.domain.archive.entities import ArchiveFile, ArchiveReceipt, ArchiveRunRequest
from catalog_checker.infrastructure.parsing.utils import compute_file_hash


def normalize_run_id(run_id: str) -> str:
    """Turn ``2025-05-26 15:57:13`` style ids into ``20250526_155713``."""
    if not run_id:
        return "run"
    digits = re.findall(r"\d", run_id)
    if len(digits) >= 14:
        normalized = "".join(digits[:8]) + "_" + "".join(digits[8:14])
        return normalized + "".join(digits[14:])
    sanitized = re.sub(r"[^0-9A-Za-z_-]+", "", run_id.strip())
    return sanitized or "run"


class FileSystemArchiveRepository:
    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def save_run(self, request: ArchiveRunRequest) -> ArchiveReceipt:
        run_id = normalize_run_id(request.run_id)
        run_dir = self._root / run_id
        run_dir.mkdir(parents=True, exist_ok=True)

        for archive_file in request.iter_files():
            (run_dir / Path(archive_file.name).name).write_bytes(archive_file.content)

        manifest = {
            "run_id": run_id,
            "command": request.command,
            "inputs": [self._manifest_entry(f) for f in request.inputs],
            "outputs": [self._manifest_entry(f) for f in request.outputs],
            "metadata": dict(request.metadata),
        }
        (run_dir / "manifest.json").write_text(json.dumps(manifest, indent=2, default=str), encoding="utf-8")
        return ArchiveReceipt(run_id=run_id, location=run_dir)

    @staticmethod
    def _manifest_entry(archive_file: ArchiveFile) -> dict[str, object]:
        return {
            "name": Path(archive_file.name).name,
            "bytes": len(archive_file.content),
            "sha256": compute_file_hash(archive_file.content),
        }
