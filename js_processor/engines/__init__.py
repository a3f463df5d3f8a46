"""
Engines: JS processor context + executor, and the Transpiler facade.
"""

from js_processor.engines.js import EngineContextManager, JsExecutor, TranspileError
from js_processor.engines.transpiler import (
    DISCOURSE_COMMON_BABEL_PLUGINS,
    TranspileRequest,
    Transpiler,
    compile_template,
    minify,
    reset_engine,
    transpile,
)

__all__ = [
    "DISCOURSE_COMMON_BABEL_PLUGINS",
    "EngineContextManager",
    "JsExecutor",
    "TranspileError",
    "TranspileRequest",
    "Transpiler",
    "compile_template",
    "minify",
    "reset_engine",
    "transpile",
]
