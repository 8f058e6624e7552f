"""
Bundlers driven by the rollup plugin once every page has been rendered.

Both follow the shape of Rollup's JavaScript API: `rollup(options)` returns a
bundle, `bundle.write(output)` writes it and reports the written chunks, and
`bundle.close()` releases it.
"""

import json
import logging
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Union

import jsmin
from mkdocs.exceptions import PluginError

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

# Output naming used when neither the caller nor the user picks a name.
DEFAULT_ENTRY_FILE_NAMES = "[name].js"

EntryFileNames = Union[str, Callable[["Chunk"], Optional[str]]]

# `from './x.js'`, `import './x.js'` and `import('./x.js')` with a relative specifier.
RELATIVE_IMPORT_RE = re.compile(r"""(?:\bfrom|\bimport)\s*\(?\s*(["'])(?P<spec>\.\.?/[^"']*)\1""")


class BundlerError(PluginError):
    """The bundler failed; the build must not publish pages pointing at missing scripts."""


@dataclass
class Chunk:
    """One file written by a bundle."""

    file_name: str
    facade_module_id: Optional[str] = None
    name: Optional[str] = None


class Bundle(Protocol):
    def write(self, output: Dict[str, Any]) -> List[Chunk]:
        ...

    def close(self) -> None:
        ...


class Bundler(Protocol):
    def rollup(self, options: Dict[str, Any]) -> Bundle:
        ...


def _entries(input_option: Union[str, List[str], Dict[str, str]]) -> List[Tuple[str, str]]:
    """Return `(chunk name, module path)` pairs for a bundler `input` option.

    List entries are named after their file stem; repeated stems get a counter
    (`index`, `index2`, ...) so no entry is lost.
    """
    if isinstance(input_option, str):
        input_option = [input_option]
    if isinstance(input_option, dict):
        return list(input_option.items())

    used = set()
    entries: List[Tuple[str, str]] = []
    for module in input_option:
        stem = Path(module).stem
        name, count = stem, 1
        while name in used:
            count += 1
            name = f"{stem}{count}"
        used.add(name)
        entries.append((name, module))
    return entries


def relative_imports(code: str) -> List[str]:
    """Relative module specifiers (`./x.js`, `../y.js`) imported by `code`."""
    return [m.group("spec") for m in RELATIVE_IMPORT_RE.finditer(code)]


def _file_name(entry_file_names: EntryFileNames, chunk: Chunk) -> str:
    name = None
    if callable(entry_file_names):
        name = entry_file_names(chunk)
        pattern = DEFAULT_ENTRY_FILE_NAMES
    else:
        pattern = entry_file_names or DEFAULT_ENTRY_FILE_NAMES
    return name or pattern.replace("[name]", chunk.name or "")


# -------------------------------
# Builtin bundler
# -------------------------------


class BuiltinBundle:
    """Writes every entry module on its own, optionally minified with jsmin.

    Imports between modules are not resolved, so entries importing relative
    modules are refused; use the `rollup` bundler for those.
    """

    def __init__(self, options: Dict[str, Any]):
        if not options.get("input"):
            raise BundlerError("[rollup] the builtin bundler needs at least one input")
        self.entries = _entries(options["input"])
        self.closed = False

    def write(self, output: Dict[str, Any]) -> List[Chunk]:
        if self.closed:
            raise BundlerError("[rollup] bundle is already closed")
        out_dir = Path(output["dir"])
        minify = bool(output.get("minify", False))
        entry_file_names = output.get("entry_file_names", DEFAULT_ENTRY_FILE_NAMES)

        sources: List[Tuple[str, str, str]] = []
        for name, module in self.entries:
            module_id = os.path.abspath(module)
            with open(module_id, encoding="utf8") as f:
                code = f.read()
            imported = relative_imports(code)
            if imported:
                raise BundlerError(
                    f"[rollup] {module} imports {', '.join(imported)}; the builtin bundler "
                    "does not resolve imports, use `bundler: rollup`"
                )
            sources.append((name, module_id, code))

        written: List[Chunk] = []
        for name, module_id, code in sources:
            if minify:
                code = jsmin.jsmin(code, quote_chars="'\"`")

            chunk = Chunk(file_name="", facade_module_id=module_id, name=name)
            chunk.file_name = _file_name(entry_file_names, chunk)

            target = out_dir / chunk.file_name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(code, encoding="utf8")
            logger.debug("[rollup] wrote %s -> %s", module_id, target.as_posix())
            written.append(chunk)
        return written

    def close(self) -> None:
        self.closed = True


class BuiltinBundler:
    def rollup(self, options: Dict[str, Any]) -> BuiltinBundle:
        return BuiltinBundle(options)


# -------------------------------
# Rollup (Node.js) bundler
# -------------------------------

# Reads a JSON job on stdin, runs Rollup and prints the written chunks as JSON.
# Entry names come from the precomputed `names` table, keyed by the module path
# relative to the working directory.
ROLLUP_SCRIPT = """
import path from 'node:path';
import { rollup } from 'rollup';

let raw = '';
for await (const part of process.stdin) raw += part;
const job = JSON.parse(raw);

const relative = (id) => path.relative('.', id).split(path.sep).join('/');
const bundle = await rollup({ ...job.options, input: job.input });
try {
  const { output } = await bundle.write({
    ...job.output,
    entryFileNames: (chunk) =>
      (chunk.facadeModuleId && job.names[relative(chunk.facadeModuleId)]) || job.fallback,
  });
  process.stdout.write(JSON.stringify(output.map((chunk) => ({
    file_name: chunk.fileName,
    facade_module_id: chunk.facadeModuleId || null,
    name: chunk.name || null,
  }))));
} finally {
  await bundle.close();
}
"""

# Output options only understood on the Python side.
PYTHON_ONLY_OUTPUT_KEYS = ("entry_file_names", "minify")


class RollupBundle:
    def __init__(self, options: Dict[str, Any], node: str, cwd: str):
        self.options = dict(options)
        self.input = self.options.pop("input")
        self.node = node
        self.cwd = cwd

    def _names(self, entry_file_names: EntryFileNames) -> Dict[str, str]:
        """Evaluate the naming callback for every entry module ahead of the run."""
        if not callable(entry_file_names):
            return {}
        names: Dict[str, str] = {}
        for name, module in _entries(self.input):
            module_id = os.path.abspath(os.path.join(self.cwd, module))
            file_name = entry_file_names(Chunk(file_name="", facade_module_id=module_id, name=name))
            if file_name:
                rel = os.path.relpath(module_id, self.cwd).replace("\\", "/")
                names[rel] = file_name
        return names

    def write(self, output: Dict[str, Any]) -> List[Chunk]:
        entry_file_names = output.get("entry_file_names", DEFAULT_ENTRY_FILE_NAMES)
        job = {
            "options": self.options,
            "input": self.input,
            "output": {k: v for k, v in output.items() if k not in PYTHON_ONLY_OUTPUT_KEYS},
            "names": self._names(entry_file_names),
            "fallback": entry_file_names if isinstance(entry_file_names, str) else DEFAULT_ENTRY_FILE_NAMES,
        }
        try:
            result = subprocess.run(
                [self.node, "--input-type=module", "-e", ROLLUP_SCRIPT],
                input=json.dumps(job),
                cwd=self.cwd,
                capture_output=True,
                text=True,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            raise BundlerError(f"[rollup] rollup failed:\n{e.stderr.strip()}") from e

        return [Chunk(**chunk) for chunk in json.loads(result.stdout or "[]")]

    def close(self) -> None:
        pass


class RollupBundler:
    """Runs the `rollup` npm package installed in the project with Node.js."""

    def __init__(self, node: Optional[str] = None, cwd: Optional[str] = None):
        self.node = node
        self.cwd = cwd

    def rollup(self, options: Dict[str, Any]) -> RollupBundle:
        node = self.node or shutil.which("node")
        if not node:
            raise BundlerError("[rollup] Node.js was not found on PATH; install it or use `bundler: builtin`")
        return RollupBundle(options, node, self.cwd or os.getcwd())


BUNDLERS: Dict[str, Callable[[], Bundler]] = {
    "builtin": BuiltinBundler,
    "rollup": RollupBundler,
}
