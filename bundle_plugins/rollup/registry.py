"""
Per-instance script registry and the process-wide ownership table used to
spot scripts shared between bundles.
"""

import logging
import threading
from typing import Any, Dict, Iterator, Optional

from bundle_plugins.rollup.naming import NamingStrategy, content_hash_name

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")


class OwnershipRegistry:
    """Maps each source path to the plugin instance that claimed it last.

    Only used to warn about scripts bundled twice. Sharing a script between
    bundles is allowed, so a claim never fails.
    """

    def __init__(self):
        self._owners: Dict[str, Any] = {}

    def claim(self, src: str, owner: Any) -> bool:
        """Record `owner` for `src`; return True if another owner held it."""
        previous = self._owners.get(src)
        self._owners[src] = owner
        return previous is not None and previous is not owner

    def owner_of(self, src: str) -> Optional[Any]:
        return self._owners.get(src)

    def reset(self) -> None:
        self._owners = {}

    def __len__(self) -> int:
        return len(self._owners)


# Shared by every plugin instance in the process, cleared at each build start.
SHARED_OWNERS = OwnershipRegistry()


class ScriptRegistry:
    """Normalized source path -> assigned output name, for one plugin instance.

    Naming may hash file contents, so each path is named once per build.
    """

    def __init__(
        self,
        naming: NamingStrategy = content_hash_name,
        owners: Optional[OwnershipRegistry] = None,
        owner: Any = None,
    ):
        self.naming = naming
        self.owners = SHARED_OWNERS if owners is None else owners
        self.owner = self if owner is None else owner
        self.input_files: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, src: str) -> str:
        """Register an already normalized path and return its assigned name.

        Ownership is only claimed once the path has been named.
        """
        with self._lock:
            if src not in self.input_files:
                self.input_files[src] = self.naming(src)
            assigned = self.input_files[src]

        if self.owners.claim(src, self.owner):
            logger.warning(
                "[rollup] %s is used in multiple bundles, this might lead to unwanted side effects!",
                src,
            )
        return assigned

    def name_for(self, src: str) -> Optional[str]:
        return self.input_files.get(src)

    def keys(self):
        return self.input_files.keys()

    def reset(self) -> None:
        self.input_files = {}

    def __contains__(self, src: object) -> bool:
        return src in self.input_files

    def __len__(self) -> int:
        return len(self.input_files)

    def __iter__(self) -> Iterator[str]:
        return iter(self.input_files)
