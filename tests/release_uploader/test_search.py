"""
Tests for file discovery and asset key derivation.

Test coverage:
- slugify of relative paths
- least common ancestor of search paths
- directories, globs, literal files and multi-line patterns
"""

import os

import pytest

from release_uploader.search import (
    find_files_to_upload,
    get_files_with_keys,
    get_multi_path_lca,
    get_search_path,
    is_glob_pattern,
    slugify,
)


@pytest.fixture
def tree(tmp_path):
    """
    tmp/dist/a.bin
    tmp/dist/.hidden
    tmp/dist/sub/b.txt
    tmp/other/c.log
    """
    (tmp_path / "dist" / "sub").mkdir(parents=True)
    (tmp_path / "other").mkdir()
    (tmp_path / "dist" / "a.bin").write_bytes(b"a")
    (tmp_path / "dist" / ".hidden").write_bytes(b"h")
    (tmp_path / "dist" / "sub" / "b.txt").write_bytes(b"b")
    (tmp_path / "other" / "c.log").write_bytes(b"c")
    return tmp_path


def keys(files):
    return sorted(f.asset_key for f in files)


class TestSlugify:

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("a.bin", "a-bin"),
            ("dist/MyApp v1.2.tar.gz", "dist-my-app-v1-2-tar-gz"),
            ("Crème brûlée.txt", "creme-brulee-txt"),
            ("--weird__name--", "weird-name"),
        ],
    )
    def test_slugify(self, value, expected):
        assert slugify(value) == expected


class TestLeastCommonAncestor:

    def test_disjoint_roots(self):
        assert get_multi_path_lca(["/foo/", "/bar/"]) == os.sep

    def test_shared_prefix(self):
        paths = ["/a/foo/bar", "/a/foo/voo/two", "/a/foo/mo"]
        assert get_multi_path_lca(paths) == "/a/foo"

    def test_requires_two_paths(self):
        with pytest.raises(ValueError):
            get_multi_path_lca(["/a"])


class TestPatterns:

    def test_is_glob_pattern(self):
        assert is_glob_pattern("dist/*.bin")
        assert is_glob_pattern("a.bin\nb.bin")
        assert not is_glob_pattern("dist/a.bin")

    def test_search_path_stops_at_first_wildcard(self, tmp_path):
        assert get_search_path(f"{tmp_path}/dist/**/*.bin") == f"{tmp_path}/dist"


class TestGetFilesWithKeys:

    def test_directory_includes_descendants_without_hidden(self, tree):
        files = get_files_with_keys(str(tree / "dist"), "pre")
        assert keys(files) == ["pre-a-bin", "pre-sub-b-txt"]

    def test_glob(self, tree):
        files = get_files_with_keys(f"{tree}/dist/*.bin", "pre")
        assert keys(files) == ["pre-a-bin"]
        assert files[0].file_path == str(tree / "dist" / "a.bin")

    def test_recursive_glob(self, tree):
        files = get_files_with_keys(f"{tree}/dist/**/*.txt", "pre")
        assert keys(files) == ["pre-sub-b-txt"]

    def test_single_literal_file_rooted_at_parent(self, tree):
        files, root = find_files_to_upload(str(tree / "dist" / "a.bin"))
        assert files == [str(tree / "dist" / "a.bin")]
        assert root == str(tree / "dist")

    def test_multiple_patterns_use_common_ancestor(self, tree):
        pattern = f"{tree}/dist/*.bin\n{tree}/other/*.log"
        files = get_files_with_keys(pattern, "pre")
        assert keys(files) == ["pre-dist-a-bin", "pre-other-c-log"]

    def test_no_prefix(self, tree):
        files = get_files_with_keys(f"{tree}/other/*.log", "")
        assert keys(files) == ["c-log"]

    def test_no_matches(self, tree):
        assert get_files_with_keys(f"{tree}/nothing/*.bin", "pre") == []
