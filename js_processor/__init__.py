"""
js_processor: embedded JavaScript transpilation service.

Exports the asset-facing operations: register_transpile_path, should_transpile,
transpile, compile_template, minify, reset_engine, process.
"""

from js_processor.core.paths import register_transpile_path, should_transpile
from js_processor.engines import (
    TranspileError,
    compile_template,
    minify,
    reset_engine,
    transpile,
)
from js_processor.processor import process

__all__ = [
    "TranspileError",
    "compile_template",
    "minify",
    "process",
    "register_transpile_path",
    "reset_engine",
    "should_transpile",
    "transpile",
]
