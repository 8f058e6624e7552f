"""
Source path normalization and import path calculation for generated script tags.
"""

import os
import posixpath
from typing import Any, Optional


def _posix(path: str) -> str:
    return path.replace("\\", "/")


def normalize_source(src: str, root: str, relative_to: Optional[str] = None) -> str:
    """Return `src` relative to `root` with forward slashes.

    `relative_to` is the directory a relative `src` starts from (the calling
    page's source directory for file-relative declarations); defaults to `root`.
    Absolute and relative spellings of one file give the same result.
    """
    base = relative_to if relative_to is not None else root
    absolute = os.path.normpath(os.path.join(base, src))
    return _posix(os.path.relpath(absolute, root))


def resolve_import_path(
    assigned_name: str,
    output_dir: str,
    page_output: str,
    absolute: bool = False,
    absolute_from: Optional[str] = None,
) -> str:
    """Path a page at `page_output` uses to import the bundled `assigned_name`.

    Relative mode starts from the page's output directory. Absolute mode starts
    from `absolute_from` (the site root) and is anchored with a leading '/'.
    """
    target = os.path.join(output_dir, assigned_name)
    if absolute:
        if absolute_from is None:
            raise ValueError("absolute import paths need a root directory")
        relative = _posix(os.path.relpath(target, absolute_from))
        return posixpath.normpath(posixpath.join("/", relative))

    relative = _posix(os.path.relpath(target, os.path.dirname(page_output)))
    return posixpath.normpath(relative)


def page_output_path(page: Any) -> Optional[str]:
    """Absolute output file of `page`, or None when MkDocs will not write it."""
    file = getattr(page, "file", None)
    if file is None:
        return None
    return getattr(file, "abs_dest_path", None) or None
