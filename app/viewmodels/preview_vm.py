"""Move preview: where each selected image would land, grouped by person."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from app.viewmodels.image_vm import ImageVM


@dataclass
class PersonGroupVM:
    person: str
    folder_path: str
    items: list[ImageVM] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.items)


@dataclass
class MovePreview:
    """Summary shown before a move is confirmed.

    Attributes:
        target_dir: Destination root; empty if none was chosen yet.
        selected_count: Images in the selection.
        valid_count: Selected images that would be moved.
        unassigned_count: Selected images without a person.
        groups: One entry per destination person, in first-seen order.
    """

    target_dir: str
    selected_count: int
    valid_count: int
    unassigned_count: int
    groups: list[PersonGroupVM] = field(default_factory=list)

    @property
    def can_move(self) -> bool:
        return bool(self.target_dir) and self.valid_count > 0


def build_groups(target_dir: str, items: list[ImageVM]) -> list[PersonGroupVM]:
    """Group ready images by their selected person."""
    groups: dict[str, PersonGroupVM] = {}
    for vm in items:
        person = vm.record.selected_person
        if person is None:
            continue
        group = groups.get(person)
        if group is None:
            folder = str(Path(target_dir) / person) if target_dir else person
            group = groups[person] = PersonGroupVM(person=person, folder_path=folder)
        group.items.append(vm)
    return list(groups.values())
