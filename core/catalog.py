"""In-memory catalog of discovered images and the current selection.

The catalog keeps discovery order, never reuses an id and keeps the selection
a subset of its ids. It has no knowledge of scans or moves; sessions mutate it
through the operations below.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterable, Iterator
from dataclasses import replace

from loguru import logger

from core.errors import InvariantViolation
from core.models import ImageRecord, ImageStatus

# Statuses from which a person can still be (re)assigned
_ASSIGNABLE = (ImageStatus.SCANNED, ImageStatus.READY)


class Catalog:
    """Insertion-ordered mapping of image id to `ImageRecord` plus selection.

    Args:
        strict: Raise `InvariantViolation` on programming errors instead of
            logging them and ignoring the call.
    """

    def __init__(self, strict: bool = False) -> None:
        self._images: OrderedDict[str, ImageRecord] = OrderedDict()
        self._selection: set[str] = set()
        # Never reset by clear(): ids stay unique for the catalog's whole lifetime
        self._seen_ids: set[str] = set()
        self._strict = strict

    def __len__(self) -> int:
        return len(self._images)

    def __contains__(self, image_id: object) -> bool:
        return image_id in self._images

    def __iter__(self) -> Iterator[ImageRecord]:
        return iter(self._images.values())

    def _violation(self, message: str) -> None:
        if self._strict:
            raise InvariantViolation(message)
        logger.error("Invariant violation ignored: {}", message)

    def clear(self) -> None:
        """Remove every image and, together with them, the selection."""
        self._images.clear()
        self._selection.clear()

    def append(self, image: ImageRecord) -> bool:
        """Add a newly discovered image at the end of the catalog."""
        if image.id in self._seen_ids:
            self._violation(f"duplicate image id {image.id}")
            return False
        self._seen_ids.add(image.id)
        self._images[image.id] = image
        return True

    def get(self, image_id: str) -> ImageRecord | None:
        """Return the live record for `image_id`, if present."""
        return self._images.get(image_id)

    def find_by_path(self, path: str) -> ImageRecord | None:
        """Return the first image whose source path equals `path`."""
        for image in self._images.values():
            if image.path == path:
                return image
        return None

    def update_person(self, image_id: str, person: str) -> bool:
        """Assign `person` as the destination bucket of `image_id`.

        Absent ids are a no-op. A label outside the image's `persons` is
        rejected and `persons` is left untouched. Returns True if applied.
        """
        image = self._images.get(image_id)
        if image is None:
            logger.warning("update_person ignored, unknown image id {}", image_id)
            return False
        if person not in image.persons:
            logger.warning(
                "Rejected person {!r} for {}: not one of {}", person, image.filename, image.persons
            )
            return False
        if image.status not in _ASSIGNABLE:
            logger.warning(
                "Rejected person {!r} for {}: status is {}",
                person,
                image.filename,
                image.status.value,
            )
            return False
        image.selected_person = person
        image.status = ImageStatus.READY
        return True

    def mark_status(
        self, image_ids: Iterable[str], status: ImageStatus, error: str | None = None
    ) -> int:
        """Set `status` on every known id; returns the number updated."""
        updated = 0
        for image_id in image_ids:
            image = self._images.get(image_id)
            if image is None:
                continue
            image.status = status
            image.error = error if status is ImageStatus.ERRORED else None
            updated += 1
        return updated

    def snapshot(self) -> tuple[ImageRecord, ...]:
        """Detached copies of all images in insertion order."""
        return tuple(replace(image) for image in self._images.values())

    def person_names(self) -> list[str]:
        """Sorted distinct person labels across the catalog."""
        names: set[str] = set()
        for image in self._images.values():
            names.update(image.persons)
        return sorted(names)

    # Selection

    def select(self, image_ids: Iterable[str]) -> None:
        """Add known ids to the selection; unknown ids are ignored."""
        self._selection.update(i for i in image_ids if i in self._images)

    def deselect(self, image_ids: Iterable[str]) -> None:
        """Remove ids from the selection."""
        self._selection.difference_update(image_ids)

    def toggle(self, image_id: str) -> bool:
        """Flip selection of `image_id`; returns the new selected state."""
        if image_id in self._selection:
            self._selection.discard(image_id)
            return False
        if image_id not in self._images:
            return False
        self._selection.add(image_id)
        return True

    def clear_selection(self) -> None:
        self._selection.clear()

    def selected_ids(self) -> frozenset[str]:
        """Current selection as an immutable set."""
        return frozenset(self._selection)
