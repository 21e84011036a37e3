"""
File discovery for glob patterns.

A file path input may be a literal path, a directory, a glob, or several
of these separated by newlines. Every matched file is uploaded under
``<prefix>-<slug of its path relative to the search root>``.

Root directory:
    - one search path: that path (or the file's parent for a single
      literal file)
    - several search paths: their least common ancestor
"""

import glob
import logging
import os
import re
import unicodedata
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from core.logging.setup import get_logger
from core.logging.utilities import log_with_context

logger = get_logger(__name__)

GLOB_CHARS = re.compile(r"[*?\[]")


@dataclass(frozen=True)
class FileToUpload:
    file_path: str
    asset_key: str


def is_glob_pattern(pattern: str) -> bool:
    """True if the input needs discovery (wildcards or several lines)."""
    patterns = split_patterns(pattern)
    return len(patterns) > 1 or any(GLOB_CHARS.search(p) for p in patterns)


def split_patterns(pattern: str) -> List[str]:
    """Split a multi-line input into patterns, skipping blanks and comments."""
    return [
        line.strip()
        for line in pattern.splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]


def slugify(value: str) -> str:
    """
    Convert a relative path into a key-safe slug.

    Example:
        >>> slugify("dist/MyApp v1.2.tar.gz")
        'dist-my-app-v1-2-tar-gz'
    """
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"([A-Z]+)([A-Z][a-z\d]+)", r"\1-\2", value)
    value = re.sub(r"([a-z\d])([A-Z])", r"\1-\2", value)
    value = re.sub(r"[^A-Za-z\d]+", "-", value.lower())
    return value.strip("-")


def get_search_path(pattern: str) -> str:
    """Literal directory prefix of a pattern (the pattern itself if literal)."""
    pattern = os.path.abspath(os.path.expanduser(pattern))
    parts = pattern.split(os.sep)
    literal: List[str] = []
    for part in parts:
        if GLOB_CHARS.search(part):
            break
        literal.append(part)
    return os.sep.join(literal) or os.sep


def get_multi_path_lca(search_paths: Sequence[str]) -> str:
    """
    Least common ancestor of several search paths.

    Example 1: ``/foo/`` and ``/bar/`` give ``/``
    Example 2: ``/a/foo/bar`` and ``/a/foo/voo/two`` and ``/a/foo/mo`` give ``/a/foo``

    Raises:
        ValueError: If fewer than two search paths are given
    """
    if len(search_paths) < 2:
        raise ValueError("At least two search paths must be provided")

    split_paths = [os.path.normpath(p).split(os.sep) for p in search_paths]
    for p in search_paths:
        logger.debug(f"Using search path {p}")

    common: List[str] = []
    for segments in zip(*split_paths):
        if any(s != segments[0] for s in segments[1:]):
            break
        common.append(segments[0])

    if not common:
        return ""
    return os.sep.join(common) or os.sep


def _expand(pattern: str) -> List[str]:
    """Files matched by one pattern; directories include all descendants."""
    pattern = os.path.abspath(os.path.expanduser(pattern))
    results: List[str] = []
    for match in sorted(glob.glob(pattern, recursive=True)):
        if os.path.isdir(match):
            for root, dirs, files in os.walk(match):
                dirs[:] = sorted(d for d in dirs if not d.startswith("."))
                results.extend(
                    os.path.join(root, f) for f in sorted(files) if not f.startswith(".")
                )
        elif os.path.exists(match):
            results.append(match)
    return results


def find_files_to_upload(pattern: str) -> Tuple[List[str], str]:
    """
    Resolve a file path input into files and the root they are keyed from.

    Returns:
        (files, root_directory); directories and broken links are skipped
    """
    patterns = split_patterns(pattern)
    files: List[str] = []
    seen_lower = set()
    for p in patterns:
        for path in _expand(p):
            if path in files:
                continue
            log_with_context(
                logger, logging.DEBUG,
                f"File:{path} was found using the provided searchPath",
                file_path=path,
            )
            files.append(path)
            if path.lower() in seen_lower:
                logger.info(
                    f"Uploads are case insensitive: {path} was detected that it will "
                    f"be overwritten by another file with the same path"
                )
            else:
                seen_lower.add(path.lower())

    search_paths: List[str] = []
    for p in patterns:
        search_path = get_search_path(p)
        if search_path not in search_paths:
            search_paths.append(search_path)

    if len(search_paths) > 1:
        logger.info(
            "Multiple search paths detected. Calculating the least common ancestor of all paths"
        )
        root = get_multi_path_lca(search_paths)
        logger.info(
            f"The least common ancestor is {root}. This will be the root directory of the artifact"
        )
        return files, root

    if len(files) == 1 and search_paths and search_paths[0] == files[0]:
        return files, os.path.dirname(files[0])

    return files, search_paths[0] if search_paths else os.getcwd()


def get_files_with_keys(pattern: str, prefix: str) -> List[FileToUpload]:
    """Discover files and derive one asset key per file."""
    files, root = find_files_to_upload(pattern)
    key_prefix = f"{prefix}-" if prefix else ""
    return [
        FileToUpload(
            file_path=path,
            asset_key=f"{key_prefix}{slugify(os.path.relpath(path, root))}",
        )
        for path in files
    ]
