"""
JS engine (V8 via py_mini_racer) for the processor bundle.

Exports: JsExecutor, EngineContextManager, EngineContext, EngineState,
TranspileError, translate_error, get_executor, get_context_manager.
"""

from .context import EngineContext, EngineContextManager, EngineState, get_context_manager
from .errors import TranspileError, decode_message, translate_error
from .executor import JsExecutor, get_executor

__all__ = [
    "EngineContext",
    "EngineContextManager",
    "EngineState",
    "JsExecutor",
    "TranspileError",
    "decode_message",
    "get_context_manager",
    "get_executor",
    "translate_error",
]
