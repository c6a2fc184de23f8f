"""Tests for project name resolution and index rebuilding."""

from __future__ import annotations

import pytest
from pathlib import Path

from membank.errors import NormalizationFailure
from membank.services.resolver import ProjectNameResolver, rebuild_project_index
from membank.storage.files import FsFileStore
from membank.storage.index import ProjectIndex
from membank.storage.locks import LockManager
from membank.storage.metadata import METADATA_FILENAME, MetadataStore, ProjectMetadata


@pytest.fixture
def store(tmp_path: Path) -> FsFileStore:
    return FsFileStore(tmp_path)


@pytest.fixture
def index(tmp_path: Path) -> ProjectIndex:
    return ProjectIndex(tmp_path, LockManager(tmp_path / ".locks"))


@pytest.fixture
def resolver(store: FsFileStore, index: ProjectIndex) -> ProjectNameResolver:
    return ProjectNameResolver(store, index)


def _create(resolver: ProjectNameResolver, store: FsFileStore, index: ProjectIndex, name: str) -> str:
    """What the facade does on a first write."""
    resolution = resolver.resolve_for_creation(name)
    store.write_file(resolution.directory_name, "a.md", "x")
    if resolution.is_new:
        index.set_mapping(resolution.friendly_name, resolution.directory_name)
    return resolution.directory_name


class TestResolve:
    def test_unknown(self, resolver: ProjectNameResolver):
        assert resolver.resolve("nothing here") is None

    def test_exact_directory(self, resolver: ProjectNameResolver, store: FsFileStore):
        store.write_file("legacy_dir", "a.md", "x")
        assert resolver.resolve("legacy_dir") == "legacy_dir"

    def test_index_mapping(self, resolver: ProjectNameResolver, store: FsFileStore, index: ProjectIndex):
        store.write_file("custom-dir", "a.md", "x")
        index.set_mapping("Friendly Name", "custom-dir")
        assert resolver.resolve("Friendly Name") == "custom-dir"

    def test_index_mapping_to_missing_directory(self, resolver: ProjectNameResolver, index: ProjectIndex):
        index.set_mapping("Ghost", "ghost-dir")
        assert resolver.resolve("Ghost") is None

    def test_normalized_fallback(self, resolver: ProjectNameResolver, store: FsFileStore):
        store.write_file("my-project", "a.md", "x")
        assert resolver.resolve("My Project") == "my-project"

    def test_unnormalizable_name(self, resolver: ProjectNameResolver):
        assert resolver.resolve("!!!") is None

    def test_never_creates(self, resolver: ProjectNameResolver, tmp_path: Path):
        resolver.resolve("New Project")
        assert not (tmp_path / "new-project").exists()


class TestResolveForCreation:
    def test_new_project(self, resolver: ProjectNameResolver):
        resolution = resolver.resolve_for_creation("My Project")
        assert resolution.directory_name == "my-project"
        assert resolution.friendly_name == "My Project"
        assert resolution.is_new

    def test_idempotent(self, resolver: ProjectNameResolver, store: FsFileStore, index: ProjectIndex):
        first = _create(resolver, store, index, "My Project")
        again = resolver.resolve_for_creation("My Project")
        assert again.directory_name == first
        assert not again.is_new

    def test_collision_gets_suffix(self, resolver: ProjectNameResolver, store: FsFileStore, index: ProjectIndex):
        assert _create(resolver, store, index, "My Project") == "my-project"
        assert _create(resolver, store, index, "my project!") == "my-project-1"
        assert _create(resolver, store, index, "MY PROJECT") == "my-project-2"

        # each friendly name keeps resolving to its own directory
        assert resolver.resolve("My Project") == "my-project"
        assert resolver.resolve("my project!") == "my-project-1"

    def test_unclaimed_legacy_directory_reused(self, resolver: ProjectNameResolver, store: FsFileStore):
        store.write_file("notes", "a.md", "x")
        resolution = resolver.resolve_for_creation("Notes")
        assert resolution.directory_name == "notes"
        assert not resolution.is_new

    def test_identity_mapping_does_not_claim(
        self, resolver: ProjectNameResolver, store: FsFileStore, index: ProjectIndex
    ):
        store.write_file("notes", "a.md", "x")
        index.set_mapping("notes", "notes")
        assert resolver.resolve_for_creation("Notes").directory_name == "notes"

    def test_normalization_failure(self, resolver: ProjectNameResolver):
        with pytest.raises(NormalizationFailure):
            resolver.resolve_for_creation("???")


class TestRebuildIndex:
    def test_rebuild(self, tmp_path: Path, store: FsFileStore, index: ProjectIndex):
        metadata = MetadataStore(tmp_path)
        store.write_file("with-meta", "a.md", "x")
        metadata.write_metadata("with-meta", ProjectMetadata.new("With Meta", "with-meta"))
        store.write_file("legacy", "a.md", "x")
        store.write_file("broken", "a.md", "x")
        (tmp_path / "broken" / METADATA_FILENAME).write_text("{oops")
        index.set_mapping("Stale", "gone")

        report = rebuild_project_index(store, metadata, index)

        assert (report.total, report.with_metadata, report.without_metadata) == (3, 1, 2)
        assert index.get_all_mappings() == {
            "With Meta": "with-meta",
            "legacy": "legacy",
            "broken": "broken",
        }

    def test_metadata_errors_do_not_abort(self, tmp_path: Path, store: FsFileStore, index: ProjectIndex):
        class ExplodingMetadata(MetadataStore):
            def read_metadata(self, directory_name):
                if directory_name == "bad":
                    raise RuntimeError("disk on fire")
                return super().read_metadata(directory_name)

        store.write_file("bad", "a.md", "x")
        store.write_file("good", "a.md", "x")
        report = rebuild_project_index(store, ExplodingMetadata(tmp_path), index)

        assert report.total == 2
        assert index.get_directory_name("bad") == "bad"

    def test_empty_root(self, tmp_path: Path, index: ProjectIndex):
        report = rebuild_project_index(FsFileStore(tmp_path / "none"), MetadataStore(tmp_path), index)
        assert report.total == 0
        assert index.get_all_mappings() == {}
