"""Tests for the remote tree mirror and its hydration."""

import pytest

from pygrive.exceptions import GriveAPIError
from pygrive.mime_types import FOLDER_MIME_TYPE
from pygrive.models import RemoteNode
from pygrive.store import ROOT_ID


def seed_tree(store):
    """Seed docs/{2024/{report.pdf}, readme.txt}, photos/ and a trashed folder."""
    docs = store.add(ROOT_ID, "docs")
    year = store.add(docs.id, "2024")
    store.add(year.id, "report.pdf", "application/pdf")
    store.add(docs.id, "readme.txt", "text/plain")
    photos = store.add(ROOT_ID, "photos")
    trash = store.add(ROOT_ID, "old", trashed=True)
    store.add(trash.id, "ghost.txt", "text/plain")
    return {"docs": docs, "2024": year, "photos": photos, "old": trash}


class TestHydrate:
    """Tests for RemoteTreeMirror.hydrate."""

    def test_hydrates_whole_tree(self, store, make_mirror):
        """Test that every folder is fetched recursively."""
        seeded = seed_tree(store)
        mirror = make_mirror(hydrate=False)

        report = mirror.hydrate()

        assert report.ok
        # root, docs, 2024, photos
        assert report.folders_fetched == 4
        assert report.nodes_added == 5
        assert len(mirror) == 6
        docs = mirror.get(seeded["docs"].id)
        assert docs.is_fetched
        assert {c.title for c in mirror.children_of(docs)} == {"2024", "readme.txt"}
        assert mirror.get(seeded["photos"].id).children == {}

    def test_trashed_nodes_excluded(self, store, make_mirror):
        """Test that trashed nodes are not mirrored."""
        seeded = seed_tree(store)
        mirror = make_mirror()

        assert seeded["old"].id not in mirror
        assert mirror.find_child(mirror.root, "old") is None

    def test_single_worker_does_not_deadlock(self, store, make_mirror):
        """Test nested fan-out completes with a one-thread pool."""
        parent_id = ROOT_ID
        for depth in range(6):
            parent_id = store.add(parent_id, f"level{depth}").id

        mirror = make_mirror(hydrate=False, max_workers=1)
        report = mirror.hydrate()

        assert report.ok
        assert report.folders_fetched == 7

    def test_failed_listing_stops_subtree(self, store, make_mirror):
        """Test a failing folder is reported and left unfetched."""
        seeded = seed_tree(store)
        store.fail("list", seeded["docs"].id)
        mirror = make_mirror(hydrate=False)

        report = mirror.hydrate()

        assert not report.ok
        assert len(report.failures) == 1
        assert report.failures[0].node.id == seeded["docs"].id
        assert isinstance(report.failures[0].error, GriveAPIError)
        docs = mirror.get(seeded["docs"].id)
        assert docs.children is None
        assert seeded["2024"].id not in mirror
        # Sibling subtrees are unaffected
        assert mirror.get(seeded["photos"].id).is_fetched

    def test_rehydrate_is_append_only(self, store, make_mirror):
        """Test hydrating again keeps existing nodes and adds new ones."""
        seeded = seed_tree(store)
        mirror = make_mirror()
        docs = mirror.get(seeded["docs"].id)
        store.add(seeded["docs"].id, "new.txt", "text/plain")

        report = mirror.hydrate(docs)

        assert report.nodes_added == 1
        assert mirror.get(seeded["docs"].id) is docs
        assert mirror.find_child(docs, "new.txt") is not None
        assert mirror.find_child(docs, "readme.txt") is not None


class TestLabelPath:
    """Tests for RemoteTreeMirror.label_path."""

    def test_nested_label_path(self, store, make_mirror):
        """Test label-paths are derived from parent links."""
        seeded = seed_tree(store)
        mirror = make_mirror()
        year = mirror.get(seeded["2024"].id)
        report = mirror.find_child(year, "report.pdf")

        assert mirror.label_path(mirror.root) == ""
        assert mirror.label_path(year) == "docs/2024"
        assert mirror.label_path(report) == "docs/2024/report.pdf"


class TestAddChild:
    """Tests for RemoteTreeMirror.add_child and ensure_fetched."""

    def test_add_folder_gets_empty_child_map(self, make_mirror):
        """Test that created folders are known to be empty."""
        mirror = make_mirror()
        folder = RemoteNode(id="n1", title="new", mime_type=FOLDER_MIME_TYPE)

        added = mirror.add_child(mirror.root, folder)

        assert added is folder
        assert folder.children == {}
        assert folder.parent_id == mirror.root.id
        assert mirror.label_path(folder) == "new"

    def test_add_existing_id_returns_registered_node(self, store, make_mirror):
        """Test ids stay unique within the mirror."""
        seeded = seed_tree(store)
        mirror = make_mirror()
        duplicate = RemoteNode(
            id=seeded["docs"].id, title="docs", mime_type=FOLDER_MIME_TYPE
        )

        added = mirror.add_child(mirror.root, duplicate)

        assert added is mirror.get(seeded["docs"].id)
        assert added is not duplicate
        assert len(mirror.children_of(mirror.root)) == 2

    def test_add_to_unfetched_folder_raises(self, make_mirror):
        """Test a partial child map is never published."""
        mirror = make_mirror(hydrate=False)
        child = RemoteNode(id="n1", title="a.txt", mime_type="text/plain")

        with pytest.raises(ValueError, match="not been fetched"):
            mirror.add_child(mirror.root, child)
        assert mirror.root.children is None

    def test_ensure_fetched_hydrates_lazily(self, store, make_mirror):
        """Test ensure_fetched lists an unfetched folder once."""
        seed_tree(store)
        mirror = make_mirror(hydrate=False)

        mirror.ensure_fetched(mirror.root)
        calls = len(store.calls)
        mirror.ensure_fetched(mirror.root)

        assert mirror.root.is_fetched
        assert len(store.calls) == calls

    def test_ensure_fetched_raises_on_failure(self, store, make_mirror):
        """Test a failing listing surfaces as GriveAPIError."""
        store.fail("list", ROOT_ID)
        mirror = make_mirror(hydrate=False)

        with pytest.raises(GriveAPIError, match="Could not list"):
            mirror.ensure_fetched(mirror.root)
