"""Archive domain entities for storing snapshots and reports of a run."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Sequence


@dataclass(frozen=True)
class ArchiveFile:
    name: str
    content: bytes


@dataclass(frozen=True)
class ArchiveRunRequest:
    run_id: str
    command: str
    inputs: Sequence[ArchiveFile]
    outputs: Sequence[ArchiveFile]
    metadata: Mapping[str, object] = field(default_factory=dict)

    def iter_files(self) -> Iterable[ArchiveFile]:
        yield from self.inputs
        yield from self.outputs


@dataclass(frozen=True)
class ArchiveReceipt:
    run_id: str
    location: Path
