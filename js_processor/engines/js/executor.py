"""
JsExecutor: call(function_name, *args, fetch_result_call=None) -> value.

Every call into the V8 context goes through one process-wide lock, so calls
are totally ordered and never interleave. V8 runtime failures (throws,
timeouts, OOM) are raised as TranspileError; context initialization failures
propagate unchanged.
"""

import logging
import threading
from typing import Any

from .context import EngineContextManager, get_context_manager
from .errors import ENGINE_RUNTIME_ERRORS, TranspileError, translate_error
from .modules.log import make_log_module

_log = logging.getLogger(__name__)


class JsExecutor:
    """
    Serializes calls into the JS processor context owned by *manager*.

    The lock is the manager's, so executors sharing a manager share it too.
    """

    def __init__(
        self,
        manager: EngineContextManager | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._manager = manager if manager is not None else get_context_manager()
        self.log = make_log_module(logger_instance=logger)

    @property
    def manager(self) -> EngineContextManager:
        return self._manager

    def call(self, function_name: str, *args: Any, fetch_result_call: str | None = None) -> Any:
        """
        Call *function_name* in the context's global scope.

        fetch_result_call works around the lack of async results: the first
        call may start asynchronous work, then fetch_result_call is invoked
        (under the same lock) and its value is returned instead.
        """
        with self._manager.call_lock:
            ctx = self._manager.get_or_create()
            try:
                result = ctx.call(function_name, *args)
                if fetch_result_call:
                    result = ctx.call(fetch_result_call)
                return result
            except ENGINE_RUNTIME_ERRORS as e:
                err = translate_error(e)
                _log.warning("JS processor %s failed: %s", function_name, err.message)
                raise err from e
            finally:
                self._forward_logs(ctx)
                self._manager.notify_idle()

    def _forward_logs(self, ctx: Any) -> None:
        try:
            records = ctx.drain_logs()
        except ENGINE_RUNTIME_ERRORS as e:
            _log.debug("Could not drain JS processor log: %s", e)
            return
        self.log.forward(records)

    def reset(self) -> None:
        """Dispose the context once any in-flight call has finished."""
        with self._manager.call_lock:
            self._manager.reset()


_executor: JsExecutor | None = None
_executor_lock = threading.Lock()


def get_executor() -> JsExecutor:
    """Return the singleton JsExecutor (thread-safe double-checked locking)."""
    global _executor
    if _executor is None:
        with _executor_lock:
            if _executor is None:
                _executor = JsExecutor()
    return _executor
