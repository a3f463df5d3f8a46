"""
Transpiler: transpile / compile_raw_template / terser on top of JsExecutor.

transpile(source, root_path, logical_path, theme_id=None) -> str
    Babel (ember-cli plugin parity) + AMD module wrapping.
compile_raw_template(source, theme_id=None) -> str
    Raw handlebars template to its compiled form.
terser(tree, opts) -> str
    Minification; the result is fetched with a second call (getMinifyResult).
"""

import logging
import threading
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from js_processor.core.module_name import PluginRegistry, module_name
from js_processor.core.paths import skip_module

from .js import JsExecutor, get_executor

_log = logging.getLogger(__name__)

PluginDescriptor = str | tuple[str, dict[str, Any]]

# To generate a list of babel plugins used by ember-cli, set
# babel: { debug: true } in ember-cli-build.js, then run `yarn ember build -prod`
DISCOURSE_COMMON_BABEL_PLUGINS: tuple[PluginDescriptor, ...] = (
    ("proposal-decorators", {"legacy": True}),
    "proposal-class-properties",
    "proposal-private-methods",
    "proposal-class-static-block",
    "transform-parameters",
    "proposal-export-namespace-from",
)


class TranspileRequest(BaseModel):
    """Options passed to the processor's transpile(source, options)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: str
    skip_module: bool = Field(False, alias="skipModule")
    module_id: str | None = Field(None, alias="moduleId")
    filename: str = "unknown"
    theme_id: int | None = Field(None, alias="themeId")
    common_plugins: tuple[PluginDescriptor, ...] = Field(
        DISCOURSE_COMMON_BABEL_PLUGINS, alias="commonPlugins"
    )

    def options(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"source"})


class Transpiler:
    """Facade over JsExecutor; no retries, failures surface as TranspileError."""

    def __init__(
        self,
        executor: JsExecutor | None = None,
        *,
        plugins: PluginRegistry | None = None,
        app_root: str | None = None,
    ) -> None:
        self._executor = executor
        self._plugins = plugins
        self._app_root = app_root

    @property
    def executor(self) -> JsExecutor:
        if self._executor is None:
            self._executor = get_executor()
        return self._executor

    def module_name(self, root_path: str | None, logical_path: str | None) -> str | None:
        return module_name(
            root_path, logical_path, plugins=self._plugins, app_root=self._app_root
        )

    def build_request(
        self,
        source: str,
        root_path: str | None = None,
        logical_path: str | None = None,
        *,
        theme_id: int | None = None,
    ) -> TranspileRequest:
        return TranspileRequest(
            source=source,
            skip_module=skip_module(source),
            module_id=self.module_name(root_path, logical_path),
            filename=logical_path or "unknown",
            theme_id=theme_id,
        )

    def transpile(
        self,
        source: str,
        root_path: str | None = None,
        logical_path: str | None = None,
        *,
        theme_id: int | None = None,
    ) -> str:
        req = self.build_request(source, root_path, logical_path, theme_id=theme_id)
        _log.debug("Transpiling %s as %s", req.filename, req.module_id)
        return self.executor.call("transpile", req.source, req.options())

    def compile_raw_template(self, source: str, *, theme_id: int | None = None) -> Any:
        return self.executor.call("compileRawTemplate", source, theme_id)

    def terser(self, tree: Any, opts: dict[str, Any] | None = None) -> Any:
        return self.executor.call("minify", tree, opts or {}, fetch_result_call="getMinifyResult")

    minify = terser

    def reset(self) -> None:
        self.executor.reset()


_transpiler: Transpiler | None = None
_transpiler_lock = threading.Lock()


def get_transpiler() -> Transpiler:
    global _transpiler
    if _transpiler is None:
        with _transpiler_lock:
            if _transpiler is None:
                _transpiler = Transpiler()
    return _transpiler


def transpile(
    source: str,
    root_path: str | None = None,
    logical_path: str | None = None,
    *,
    theme_id: int | None = None,
) -> str:
    return get_transpiler().transpile(source, root_path, logical_path, theme_id=theme_id)


def compile_template(source: str, *, theme_id: int | None = None) -> Any:
    return get_transpiler().compile_raw_template(source, theme_id=theme_id)


def minify(tree: Any, opts: dict[str, Any] | None = None) -> Any:
    return get_transpiler().terser(tree, opts)


def reset_engine() -> None:
    """Force a full context rebuild on the next call."""
    get_transpiler().reset()
