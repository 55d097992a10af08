from __future__ import annotations

import pytest

from core.catalog import Catalog
from core.errors import InvariantViolation
from core.models import ImageStatus


def test_append_keeps_discovery_order(image_factory):
    catalog = Catalog()
    for image_id in ("c", "a", "b"):
        assert catalog.append(image_factory(image_id))

    assert [image.id for image in catalog] == ["c", "a", "b"]
    assert len(catalog) == 3
    assert "a" in catalog


def test_duplicate_id_is_ignored_when_lenient(image_factory):
    catalog = Catalog()
    catalog.append(image_factory("a", ["alice"]))

    assert catalog.append(image_factory("a", ["bob"])) is False
    assert len(catalog) == 1
    assert catalog.get("a").persons == ("alice",)


def test_duplicate_id_raises_when_strict(image_factory):
    catalog = Catalog(strict=True)
    catalog.append(image_factory("a"))

    with pytest.raises(InvariantViolation):
        catalog.append(image_factory("a"))


def test_ids_are_not_reused_after_clear(image_factory):
    catalog = Catalog()
    catalog.append(image_factory("a"))
    catalog.clear()

    assert catalog.append(image_factory("a")) is False
    assert len(catalog) == 0


def test_update_person_marks_ready(image_factory):
    catalog = Catalog()
    catalog.append(image_factory("c", ["bob", "carol"]))

    assert catalog.update_person("c", "carol")
    image = catalog.get("c")
    assert image.selected_person == "carol"
    assert image.status is ImageStatus.READY
    assert image.is_ready

    assert catalog.update_person("c", "bob")
    assert image.selected_person == "bob"


def test_update_person_rejects_unknown_label(image_factory):
    catalog = Catalog()
    catalog.append(image_factory("a", ["alice"]))

    assert catalog.update_person("a", "mallory") is False
    image = catalog.get("a")
    assert image.persons == ("alice",)
    assert image.selected_person is None
    assert image.status is ImageStatus.SCANNED


def test_update_person_unknown_id_is_noop(image_factory):
    catalog = Catalog()
    catalog.append(image_factory("a", ["alice"]))

    assert catalog.update_person("zzz", "alice") is False


def test_update_person_rejected_for_moved_image(image_factory):
    catalog = Catalog()
    catalog.append(image_factory("a", ["alice"]))
    catalog.mark_status(["a"], ImageStatus.MOVED)

    assert catalog.update_person("a", "alice") is False
    assert catalog.get("a").status is ImageStatus.MOVED


def test_mark_status_sets_and_clears_error(image_factory):
    catalog = Catalog()
    catalog.append(image_factory("a"))

    assert catalog.mark_status(["a", "missing"], ImageStatus.ERRORED, "disk full") == 1
    assert catalog.get("a").error == "disk full"

    catalog.mark_status(["a"], ImageStatus.SCANNED)
    assert catalog.get("a").error is None


def test_snapshot_is_detached(image_factory):
    catalog = Catalog()
    catalog.append(image_factory("a", ["alice"]))

    snap = catalog.snapshot()
    snap[0].status = ImageStatus.MOVED

    assert catalog.get("a").status is ImageStatus.SCANNED


def test_person_names_sorted_and_distinct(image_factory):
    catalog = Catalog()
    catalog.append(image_factory("a", ["carol", "alice"]))
    catalog.append(image_factory("b", ["alice"]))
    catalog.append(image_factory("c"))

    assert catalog.person_names() == ["alice", "carol"]


def test_selection_is_subset_of_catalog(image_factory):
    catalog = Catalog()
    catalog.append(image_factory("a"))
    catalog.append(image_factory("b"))

    catalog.select(["a", "ghost"])
    assert catalog.selected_ids() == frozenset({"a"})

    assert catalog.toggle("b") is True
    assert catalog.toggle("ghost") is False
    assert catalog.toggle("a") is False
    assert catalog.selected_ids() == frozenset({"b"})

    catalog.clear()
    assert catalog.selected_ids() == frozenset()


def test_find_by_path(image_factory):
    catalog = Catalog()
    catalog.append(image_factory("a"))

    assert catalog.find_by_path("/photos/a.jpg").id == "a"
    assert catalog.find_by_path("/elsewhere/a.jpg") is None
