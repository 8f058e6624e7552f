"""
Content-derived output names for bundled scripts.
"""

import hashlib
from pathlib import Path
from typing import Protocol

# Separates the seeded path from the file bytes inside the digest.
DIVIDER = b"---MKDOCS ROLLUP PLUGIN DIVIDER---"

# Number of hex characters of the digest kept in the output file name.
HASH_LENGTH = 6

READ_BLOCK = 64 * 1024


class NamingStrategy(Protocol):
    """Callable turning a normalized source path into an output file name.

    The path is relative to the project root (the working directory of the build)
    and uses forward slashes. The result must be stable for identical path and
    contents within a build.
    """

    def __call__(self, path: str) -> str:
        ...


def content_hash_name(path: str) -> str:
    """Return `<stem>-<hash>.js` for the script at `path`.

    The path string is hashed ahead of the file contents, so moving a file
    changes its name even when its contents do not.
    """
    digest = hashlib.sha256()
    digest.update(path.encode("utf8"))
    digest.update(DIVIDER)
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(READ_BLOCK), b""):
            digest.update(block)
    return f"{Path(path).stem}-{digest.hexdigest()[:HASH_LENGTH]}.js"
