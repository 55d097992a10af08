"""Lightweight view model wrapper around `ImageRecord`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from core.models import ImageRecord, ImageStatus


@dataclass
class ImageVM:
    """Expose convenient properties for bindings/templates."""

    record: ImageRecord

    @property
    def image_id(self) -> str:
        return self.record.id

    @property
    def file_name(self) -> str:
        """Base name of the source path."""
        return self.record.filename or Path(self.record.path).name

    @property
    def folder_path(self) -> str:
        """Folder portion of the source path."""
        return str(Path(self.record.path).parent)

    @property
    def person_choices(self) -> list[str]:
        """Labels the user may pick from."""
        return list(self.record.persons)

    @property
    def person_label(self) -> str:
        """Selected person, or a placeholder when none is assigned."""
        return self.record.selected_person or "(unassigned)"

    @property
    def status_text(self) -> str:
        """Status name, with the reason appended for errored images."""
        if self.record.status is ImageStatus.ERRORED and self.record.error:
            return f"{self.record.status.value}: {self.record.error}"
        return self.record.status.value

    @property
    def has_thumbnail(self) -> bool:
        return bool(self.record.thumbnail)
