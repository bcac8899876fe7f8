"""Tests for remote tree path helpers."""

from swsync.models import ProjectStructure, RemoteFile, RemoteFolder
from swsync.sync.structure import (
    ancestor_paths,
    filter_to_subtree,
    find_empty_folders,
    find_folder_path,
    get_folder_id,
    get_remote_content_root,
    get_remote_files_map,
    get_remote_folders_map,
    is_folder_empty,
    is_under,
    local_path_to_remote_path,
    normalize_bundle_path,
    normalize_folder_path,
    path_depth,
    rekey_subtree,
)


def make_structure() -> ProjectStructure:
    """source/dist/{index.html, assets/app.js} plus a root README."""
    assets = RemoteFolder(
        id="f-assets", name="assets", files=[RemoteFile(id="file-app", name="app.js")]
    )
    dist = RemoteFolder(
        id="f-dist",
        name="dist",
        files=[RemoteFile(id="file-index", name="index.html")],
        folders=[assets],
    )
    source = RemoteFolder(id="f-source", name="source", folders=[dist])
    return ProjectStructure(
        name="app",
        files=[RemoteFile(id="file-readme", name="README.md")],
        folders=[source],
    )


class TestPathHelpers:
    """Tests for path normalization helpers."""

    def test_content_root(self):
        assert get_remote_content_root("dist") == "source/dist"
        assert get_remote_content_root("/build/web/") == "source/build/web"
        assert get_remote_content_root("") == "source"

    def test_normalize_bundle_path(self):
        assert normalize_bundle_path("\\dist\\") == "dist"

    def test_dot_segments_dropped(self):
        assert normalize_bundle_path("./dist") == "dist"
        assert normalize_bundle_path("./build/./web/") == "build/web"
        assert normalize_bundle_path(".") == ""
        assert get_remote_content_root("./dist") == "source/dist"
        assert local_path_to_remote_path("dist", "./dist") == "source/dist"

    def test_normalize_folder_path_lowercases(self):
        assert normalize_folder_path("Source\\Dist") == "source/dist"

    def test_local_to_remote(self):
        """Test mapping project-relative paths under source/."""
        assert local_path_to_remote_path("dist/index.html", "dist") == "source/dist/index.html"
        assert local_path_to_remote_path("dist", "dist") == "source/dist"

    def test_ancestor_paths(self):
        assert ancestor_paths("source/dist/js/app.js") == [
            "source",
            "source/dist",
            "source/dist/js",
        ]
        assert ancestor_paths("file.txt") == []

    def test_path_depth(self):
        assert path_depth("source/dist/js") == 3
        assert path_depth("") == 0

    def test_is_under(self):
        assert is_under("source/dist", "source/dist")
        assert is_under("source/dist/a.txt", "source/dist")
        assert not is_under("source/distribution/a.txt", "source/dist")


class TestFlatMaps:
    """Tests for flattening the remote tree."""

    def test_files_map(self):
        files = get_remote_files_map(make_structure())
        assert set(files) == {
            "README.md",
            "source/dist/index.html",
            "source/dist/assets/app.js",
        }
        assert files["source/dist/assets/app.js"].id == "file-app"

    def test_folders_map(self):
        folders = get_remote_folders_map(make_structure())
        assert list(folders) == ["source", "source/dist", "source/dist/assets"]

    def test_filter_to_subtree(self):
        files = get_remote_files_map(make_structure())
        scoped = filter_to_subtree(files, "source/dist")
        assert "README.md" not in scoped
        assert len(scoped) == 2

    def test_find_folder_path_case_insensitive(self):
        """Test that folder lookups ignore case."""
        folders = get_remote_folders_map(make_structure())
        assert find_folder_path(folders, "Source/DIST") == "source/dist"
        assert get_folder_id(folders, "SOURCE/dist/Assets") == "f-assets"

    def test_find_folder_path_missing(self):
        folders = get_remote_folders_map(make_structure())
        assert find_folder_path(folders, "source/other") is None
        assert get_folder_id(folders, "source/other") is None

    def test_rekey_subtree(self):
        """Test moving a re-cased subtree onto its canonical prefix."""
        files = {"Source/Dist/a.js": 1, "Source/Distant/b.js": 2, "README.md": 3}
        rekeyed = rekey_subtree(files, "Source/Dist", "source/dist")
        assert rekeyed == {"source/dist/a.js": 1, "Source/Distant/b.js": 2, "README.md": 3}
        assert rekey_subtree(files, "README.md", "README.md") == files


class TestEmptyFolders:
    """Tests for empty folder detection."""

    def test_folder_with_nested_file_not_empty(self):
        structure = make_structure()
        assert not is_folder_empty(structure.folders[0])

    def test_only_empty_child_reported(self):
        """Test that p/q is reported when p still holds a file."""
        q = RemoteFolder(id="f-q", name="q")
        p = RemoteFolder(id="f-p", name="p", files=[RemoteFile(id="x", name="x.txt")], folders=[q])
        structure = ProjectStructure(
            name="app", folders=[RemoteFolder(id="f-source", name="source", folders=[p])]
        )

        empty = find_empty_folders(structure, "source")

        assert [f.path for f in empty] == ["source/p/q"]

    def test_children_listed_before_parents(self):
        """Test post-order output for nested empty folders."""
        c = RemoteFolder(id="f-c", name="c")
        b = RemoteFolder(id="f-b", name="b", folders=[c])
        a = RemoteFolder(id="f-a", name="a", folders=[b])
        dist = RemoteFolder(
            id="f-dist", name="dist", files=[RemoteFile(id="i", name="index.html")], folders=[a]
        )
        structure = ProjectStructure(
            name="app", folders=[RemoteFolder(id="f-source", name="source", folders=[dist])]
        )

        empty = find_empty_folders(structure, "source/dist")

        assert [f.path for f in empty] == [
            "source/dist/a/b/c",
            "source/dist/a/b",
            "source/dist/a",
        ]

    def test_root_matched_case_insensitively(self):
        q = RemoteFolder(id="f-q", name="q")
        structure = ProjectStructure(
            name="app",
            folders=[
                RemoteFolder(
                    id="f-source",
                    name="Source",
                    folders=[
                        RemoteFolder(
                            id="f-dist",
                            name="Dist",
                            files=[RemoteFile(id="i", name="index.html")],
                            folders=[q],
                        )
                    ],
                )
            ],
        )

        empty = find_empty_folders(structure, "source/dist")

        assert [f.path for f in empty] == ["Source/Dist/q"]

    def test_unmaterialised_folders_skipped(self):
        """Test that folders without an id are never reported."""
        ghost = RemoteFolder(id=None, name="ghost")
        structure = ProjectStructure(
            name="app",
            folders=[
                RemoteFolder(
                    id="f-source",
                    name="source",
                    files=[RemoteFile(id="i", name="index.html")],
                    folders=[ghost],
                )
            ],
        )
        assert find_empty_folders(structure, "source") == []

    def test_missing_root_returns_nothing(self):
        assert find_empty_folders(make_structure(), "source/nope") == []
