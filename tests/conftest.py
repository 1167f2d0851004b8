"""Shared fixtures for the pygrive test-suite."""

import pytest

from pygrive.store import ROOT_ID, MemoryStore
from pygrive.sync.dispatcher import ChangeDispatcher
from pygrive.sync.materializer import DirectoryMaterializer
from pygrive.sync.mirror import RemoteTreeMirror
from pygrive.sync.operations import SyncOperations
from pygrive.sync.resolver import PathResolver


@pytest.fixture
def store():
    """Provide an empty in-memory remote store."""
    return MemoryStore()


@pytest.fixture
def make_mirror(store):
    """Build a mirror over the store, hydrated unless told otherwise."""

    def _make(hydrate=True, max_workers=4):
        mirror = RemoteTreeMirror(store.get_node(ROOT_ID), store, max_workers)
        if hydrate:
            mirror.hydrate()
        return mirror

    return _make


@pytest.fixture
def make_dispatcher(store, make_mirror, tmp_path):
    """Wire a dispatcher for ``tmp_path`` over a freshly hydrated mirror."""

    def _make(strict=False):
        mirror = make_mirror()
        resolver = PathResolver(mirror, strict=strict)
        materializer = DirectoryMaterializer(mirror, store, resolver)
        operations = SyncOperations(store, mirror)
        return ChangeDispatcher(tmp_path, mirror, resolver, materializer, operations)

    return _make
