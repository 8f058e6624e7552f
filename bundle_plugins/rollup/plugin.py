"""
An MkDocs plugin that lets pages declare scripts inline and bundles all of
them in one pass after the site has been built.
"""

import enum
import logging
import os
import re
from typing import Any, Callable, Dict, Optional

from mkdocs.config import config_options as c
from mkdocs.config.defaults import MkDocsConfig
from mkdocs.plugins import BasePlugin
from mkdocs.structure.files import Files
from mkdocs.structure.pages import Page

from bundle_plugins.rollup.bundler import BUNDLERS, Bundler, Chunk
from bundle_plugins.rollup.config import Importable, load_bundle_options, watch_includes, watch_target
from bundle_plugins.rollup.inputs import merge_inputs
from bundle_plugins.rollup.naming import content_hash_name
from bundle_plugins.rollup.paths import normalize_source, page_output_path, resolve_import_path
from bundle_plugins.rollup.registry import OwnershipRegistry, ScriptRegistry

# Use MkDocs' recommended plugin logger namespace so debug logs appear only with `--verbose`.
logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

# Set to any non-empty value to skip writing bundles (pages are only served, never written).
SERVERLESS_ENV = "MKDOCS_SERVERLESS"

# Bundle option keys that belong to `bundle.write()` or to the plugin, not to `bundler.rollup()`.
NON_INPUT_OPTIONS = ("output", "watch")

# Fenced code blocks and inline code spans; declarations inside them are left as written.
CODE_PATTERN = re.compile(
    r"^[ \t]*(?P<fence>`{3,}|~{3,}).*?^[ \t]*(?P=fence)[ \t]*$|(?P<tick>`+)[^`\n][^\n]*?(?P=tick)",
    re.MULTILINE | re.DOTALL,
)


def default_script_generator(import_path: str, page: Page) -> str:
    return f'<script src="{import_path}" type="module"></script>'


class BuildState(enum.Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    BUNDLING = "bundling"


class RollupPlugin(BasePlugin):
    """MkDocs plugin collecting `{% rollup "file.js" %}` declarations and bundling them.

    Configuration options:
    - shortcode (str): Name of the declaration tag in Markdown. Default: `rollup`.
    - resolve_name (callable|str): Naming strategy, `path -> output file name`.
      Defaults to a content hash of the file.
    - script_generator (callable|str): `(import_path, page) -> markup`. Defaults to a
      module `<script>` tag.
    - bundle_options (dict|str): Bundler options, or a path to a `.py` (exporting
      `config`), `.yml`/`.yaml` or `.json` file holding them. `output.dir` is required.
    - import_scripts_absolute_from (str): Root for absolute script paths. Default: `site_dir`.
    - use_absolute_script_paths (bool): Emit root-anchored script paths instead of
      paths relative to each page.
    - bundler (str): `builtin` (copy/minify each entry) or `rollup` (Node.js Rollup).
    """

    supports_multiple_instances = True

    config_scheme = (
        ('shortcode', c.Type(str, default='rollup')),
        ('resolve_name', Importable(default=content_hash_name)),
        ('script_generator', Importable(default=default_script_generator)),
        ('bundle_options', c.Type((dict, str), default={})),
        ('import_scripts_absolute_from', c.Type(str, default='')),
        ('use_absolute_script_paths', c.Type(bool, default=False)),
        ('bundler', c.Choice(tuple(BUNDLERS), default='builtin')),
        ('debug', c.Type(bool, default=False)),
    )

    def __init__(self, owners: Optional[OwnershipRegistry] = None, bundler: Optional[Bundler] = None):
        super().__init__()
        self.owners = owners
        self.bundler = bundler
        self.state = BuildState.IDLE
        self.root = os.getcwd()
        self.bundle_options: Dict[str, Any] = {}
        self.absolute_from = ""
        self.registry = ScriptRegistry(owners=owners, owner=self)
        self._pattern: Optional[re.Pattern] = None

    # -------------------------------
    # Helpers
    # -------------------------------

    def _dbg(self, msg: str, *args) -> None:
        """Debug log gated by plugin config."""
        if not self.config.get("debug", False):
            return
        logger.debug("[rollup] " + msg, *args)

    @property
    def input_files(self) -> Dict[str, str]:
        return self.registry.input_files

    def _shortcode_pattern(self) -> re.Pattern:
        """Matches `{% name "path" %}` and `{% name "path", true %}`."""
        if self._pattern is None:
            name = re.escape(self.config.get("shortcode", "rollup"))
            self._pattern = re.compile(
                rf'{{%-?\s*{name}\s+(["\'])(?P<src>.+?)\1\s*(?:,\s*(?P<relative>true|false)\s*)?-?%}}',
                re.IGNORECASE,
            )
        return self._pattern

    def _remap_chunk(self, chunk: Chunk) -> Optional[str]:
        """Output name for a written chunk: the name already used in rendered pages."""
        if not chunk.facade_module_id:
            return None
        src = normalize_source(chunk.facade_module_id, self.root)
        return self.registry.name_for(src)

    # -------------------------------
    # Public API
    # -------------------------------

    def declare_script(self, src: str, page: Page, file_relative: bool = False) -> Optional[str]:
        """Register `src` for bundling and return the markup importing it into `page`.

        Returns None, without registering anything, when the page is not written to disk.
        """
        page_output = page_output_path(page)
        if page_output is None:
            self._dbg("skip %s: page is not written to disk", src)
            return None

        relative_to = None
        if file_relative:
            relative_to = os.path.dirname(page.file.abs_src_path)
        key = normalize_source(src, self.root, relative_to)

        assigned = self.registry.register(key)
        import_path = resolve_import_path(
            assigned,
            self.bundle_options["output"]["dir"],
            page_output,
            absolute=self.config["use_absolute_script_paths"],
            absolute_from=self.absolute_from,
        )
        self._dbg("declared %s as %s (import %s)", key, assigned, import_path)
        return self.config["script_generator"](import_path, page)

    # -------------------------------
    # MkDocs hooks
    # -------------------------------

    def on_config(self, config: MkDocsConfig) -> Optional[MkDocsConfig]:
        """Load bundle options and pick the bundler."""
        self.root = os.getcwd()
        self.bundle_options = load_bundle_options(self.config["bundle_options"], self.root)
        self.absolute_from = self.config["import_scripts_absolute_from"] or config["site_dir"]
        self.registry.naming = self.config["resolve_name"]
        if self.bundler is None:
            self.bundler = BUNDLERS[self.config["bundler"]]()
        self._pattern = None
        self._dbg("configured output.dir=%s bundler=%s", self.bundle_options["output"]["dir"], self.config["bundler"])
        return config

    def on_serve(self, server, *, config: MkDocsConfig, builder: Callable):
        """Forward the bundler's `watch.include` patterns to the live-reload server."""
        for pattern in watch_includes(self.bundle_options):
            target = watch_target(pattern)
            self._dbg("watching %s (from %s)", target, pattern)
            server.watch(target)
        return server

    def on_pre_build(self, *, config: MkDocsConfig) -> None:
        """Start collecting: forget scripts from the previous build."""
        self.registry.reset()
        self.registry.owners.reset()
        self.state = BuildState.COLLECTING
        self._dbg("collecting")

    def on_page_markdown(self, markdown: str, *, page: Page, config: MkDocsConfig, files: Files) -> Optional[str]:
        """Replace script declarations outside code with the generated markup."""
        pattern = self._shortcode_pattern()

        def _sub(m: re.Match) -> str:
            file_relative = (m.group("relative") or "").lower() == "true"
            return self.declare_script(m.group("src"), page, file_relative) or ""

        out = []
        pos = 0
        for code in CODE_PATTERN.finditer(markdown):
            out.append(pattern.sub(_sub, markdown[pos:code.start()]))
            out.append(code.group(0))
            pos = code.end()
        out.append(pattern.sub(_sub, markdown[pos:]))
        return "".join(out)

    def on_post_build(self, *, config: MkDocsConfig) -> None:
        """Bundle every declared script and name the outputs after the registry."""
        self.state = BuildState.BUNDLING
        try:
            if os.environ.get(SERVERLESS_ENV):
                self._dbg("skip bundling: %s is set", SERVERLESS_ENV)
                return
            if not len(self.registry):
                self._dbg("skip bundling: no scripts declared")
                return

            options = {k: v for k, v in self.bundle_options.items() if k not in NON_INPUT_OPTIONS}
            options["input"] = merge_inputs(self.bundle_options.get("input"), self.registry.keys())
            logger.info("[rollup] bundling %d script(s) into %s", len(self.registry), self.bundle_options["output"]["dir"])

            bundle = self.bundler.rollup(options)
            try:
                bundle.write({**self.bundle_options["output"], "entry_file_names": self._remap_chunk})
            finally:
                bundle.close()
        finally:
            self.state = BuildState.IDLE
