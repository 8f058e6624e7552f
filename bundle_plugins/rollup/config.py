"""
Configuration helpers for the rollup plugin: importable callables in
`mkdocs.yml` and bundle options loaded from an external file.
"""

import importlib
import importlib.util
import json
import os
from typing import Any, Callable, Dict, List, Optional, Union

import yaml
from mkdocs.config import config_options as c
from mkdocs.config.base import ValidationError
from mkdocs.exceptions import PluginError


class Importable(c.OptionallyRequired):
    """A callable given directly or as a `"package.module:attribute"` string."""

    def run_validation(self, value: Any) -> Callable:
        if callable(value):
            return value
        if not isinstance(value, str) or ":" not in value:
            raise ValidationError(
                f"Expected a callable or a 'module:attribute' string, got {value!r}"
            )

        module_name, _, attr = value.partition(":")
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise ValidationError(f"Cannot import module '{module_name}': {e}")

        target = module
        for part in attr.split("."):
            try:
                target = getattr(target, part)
            except AttributeError:
                raise ValidationError(f"Module '{module_name}' has no attribute '{attr}'")
        if not callable(target):
            raise ValidationError(f"'{value}' is not callable")
        return target


def _load_python_options(path: str) -> Any:
    spec = importlib.util.spec_from_file_location("_rollup_bundle_options", path)
    if spec is None or spec.loader is None:
        raise PluginError(f"[rollup] cannot load bundle options from '{path}'")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    if not hasattr(module, "config"):
        raise PluginError(f"[rollup] '{path}' does not define `config`")
    return module.config


def load_bundle_options(options: Union[Dict[str, Any], str, None], root: str) -> Dict[str, Any]:
    """Resolve the `bundle_options` setting into a dict.

    A string is a path (relative to `root`) to a `.py` module exporting `config`,
    or to a `.yml`/`.yaml`/`.json` file. A callable `config` is called with an
    empty options dict and must return the options.
    """
    if options is None:
        options = {}

    if isinstance(options, str):
        path = os.path.join(root, options)
        ext = os.path.splitext(path)[1].lower()
        try:
            if ext == ".py":
                options = _load_python_options(path)
            elif ext in (".yml", ".yaml"):
                with open(path, encoding="utf8") as f:
                    options = yaml.safe_load(f) or {}
            elif ext == ".json":
                with open(path, encoding="utf8") as f:
                    options = json.load(f)
            else:
                raise PluginError(f"[rollup] unsupported bundle options file '{options}'")
        except OSError as e:
            raise PluginError(f"[rollup] cannot read bundle options '{options}': {e}") from e
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise PluginError(f"[rollup] malformed bundle options '{options}': {e}") from e

    if callable(options):
        options = options({})

    if not isinstance(options, dict):
        raise PluginError(f"[rollup] bundle options must be a mapping, got {type(options).__name__}")

    output = options.get("output")
    if not isinstance(output, dict) or not output.get("dir"):
        raise PluginError("[rollup] bundle options need `output.dir`")
    return options


def watch_includes(options: Dict[str, Any]) -> List[str]:
    """Return `watch.include` as a list (it may be a single pattern)."""
    watch: Optional[Dict[str, Any]] = options.get("watch") or {}
    include = watch.get("include") if isinstance(watch, dict) else None
    if not include:
        return []
    if isinstance(include, str):
        return [include]
    return list(include)


def watch_target(pattern: str) -> str:
    """Directory to watch for a glob pattern; plain paths are returned as is."""
    for i, ch in enumerate(pattern):
        if ch in "*?[":
            base = os.path.dirname(pattern[:i])
            return base or "."
    return pattern
