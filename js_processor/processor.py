"""
Asset processor entry point: process({"filename", "load_path", "data"}) -> {"data"}.

Transpiles the asset when the path classifier selects it. Outside production
(and for anything but ember-cli output) the result is wrapped in an eval with
a sourceURL so browser devtools show the original path.
"""

import json
import re
from typing import Any

from js_processor.core.config import settings
from js_processor.core.paths import is_ember_cli, should_transpile
from js_processor.engines.transpiler import Transpiler, get_transpiler

_EXTENSION_RE = re.compile(r"\.(js|es6).*$")
_PLUGIN_ASSETS_RE = re.compile(r"/plugins/([\w-]+)/assets")


def logical_path_for(filename: str, root_path: str) -> str:
    rel = filename.replace(root_path, "", 1) if root_path else filename
    rel = _EXTENSION_RE.sub("", rel)
    return rel[1:] if rel.startswith("/") else rel


def source_url_for(root_path: str, logical_path: str) -> str:
    m = _PLUGIN_ASSETS_RE.search(root_path)
    if m:
        return f"plugins/{m.group(1)}/assets/javascripts/{logical_path}"
    return logical_path


def with_source_url(data: str, source_url: str) -> str:
    # add sourceURL until we can do proper source maps
    return f'eval({json.dumps(data)} + "\\n//# sourceURL={source_url}");\n'


def process(input: dict[str, Any], *, transpiler: Transpiler | None = None) -> dict[str, str]:
    filename = input.get("filename") or ""
    root_path = input.get("load_path") or ""
    logical_path = logical_path_for(filename, root_path)
    data = input.get("data") or ""

    if should_transpile(filename):
        t = transpiler or get_transpiler()
        data = t.transpile(data, root_path, logical_path)

    if not settings.is_production and not is_ember_cli(filename):
        data = with_source_url(data, source_url_for(root_path, logical_path))

    return {"data": data}
