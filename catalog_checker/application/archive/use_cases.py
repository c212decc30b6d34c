"""Archive application use cases."""
from __future__ import annotations

from dataclasses import dataclass

from catalog_checker.domain.archive.entities import ArchiveReceipt, ArchiveRunRequest
from catalog_checker.infrastructure.archive.file_repository import FileSystemArchiveRepository


@dataclass(slots=True)
class ArchiveRunUseCase:
    repository: FileSystemArchiveRepository

    def execute(self, request: ArchiveRunRequest) -> ArchiveReceipt:
        return self.repository.save_run(request)
