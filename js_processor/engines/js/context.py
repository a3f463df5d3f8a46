"""
Engine context lifecycle for the JS processor (V8 via py_mini_racer).

One context is built per process (per rebuild cycle outside production):
the processor bundle is (re)built, evaluated once, and shared by every
caller. The context is not thread-safe; JsExecutor serializes calls into it.
"""

import enum
import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from py_mini_racer import MiniRacer

from js_processor.core.config import settings

from .builder import generate_js_processor, read_js_processor
from .modules.log import DRAIN_FUNCTION, HOST_LOG_SHIM

_log = logging.getLogger(__name__)

PROCESSOR_FILENAME = "js-processor.js"


class EngineState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DISPOSED = "disposed"


class EngineContext:
    """
    A V8 context with the processor bundle loaded.

    Only EngineContextManager creates these; callers go through JsExecutor.
    """

    def __init__(self, racer: Any, *, timeout_ms: int) -> None:
        self._racer = racer
        self.timeout_ms = timeout_ms
        self.state = EngineState.INITIALIZING

    def eval(self, source: str, filename: str | None = None) -> Any:
        if filename:
            source = f"{source}\n//# sourceURL={filename}"
        return self._racer.eval(source, timeout=self.timeout_ms)

    def call(self, function_name: str, *args: Any) -> Any:
        return self._racer.call(function_name, *args, timeout=self.timeout_ms)

    def drain_logs(self) -> list[Any]:
        return self._racer.call(DRAIN_FUNCTION, timeout=self.timeout_ms) or []

    def collect_garbage(self) -> None:
        self._racer.low_memory_notification()

    def dispose(self) -> None:
        if self.state == EngineState.DISPOSED:
            return
        self.state = EngineState.DISPOSED
        self._racer.close()


class EngineContextManager:
    """
    Owns the single EngineContext: lazy creation, reset, idle GC.

    get_or_create() uses a ready flag for the fast path and a dedicated init
    lock for construction, so callers never see a half-built context.
    ``call_lock`` serializes every call into the context, whichever executor
    makes it.
    """

    def __init__(
        self,
        *,
        racer_factory: Callable[[], Any] = MiniRacer,
        builder: Callable[[str], str] | None = None,
        loader: Callable[[str], str] | None = None,
        rebuild: bool | None = None,
        processor_path: str | None = None,
        timeout_ms: int | None = None,
        idle_gc_ms: int | None = None,
    ) -> None:
        self._racer_factory = racer_factory
        self._builder = builder or generate_js_processor
        self._loader = loader or read_js_processor
        self._rebuild = (not settings.is_production) if rebuild is None else rebuild
        self._processor_path = processor_path
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.JS_PROCESSOR_TIMEOUT_MS
        self.idle_gc_ms = idle_gc_ms if idle_gc_ms is not None else settings.JS_PROCESSOR_IDLE_GC_MS

        self._ctx: EngineContext | None = None
        self._ready = threading.Event()
        self._init_lock = threading.Lock()
        self._state = EngineState.UNINITIALIZED
        self.call_lock = threading.Lock()
        self.rebuild_count = 0

        self._gc_cond = threading.Condition()
        self._gc_thread: threading.Thread | None = None
        self._gc_stop: threading.Event | None = None
        self._gc_pending = False
        self._last_call = 0.0

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def processor_path(self) -> str:
        return self._processor_path or settings.JS_PROCESSOR_PATH

    def get_or_create(self) -> EngineContext:
        """Return the ready context, building it on first use or after reset()."""
        ctx = self._ctx
        if ctx is not None and self._ready.is_set():
            return ctx

        with self._init_lock:
            if self._ready.is_set() and self._ctx is not None:
                return self._ctx
            self._state = EngineState.INITIALIZING
            try:
                ctx = self._create_context()
            except Exception:
                self._state = EngineState.UNINITIALIZED
                _log.error("JS processor context initialization failed", exc_info=True)
                raise
            self._ctx = ctx
            self._state = EngineState.READY
            self.rebuild_count += 1
            self._ready.set()
            _log.info("JS processor context ready (build #%s)", self.rebuild_count)
            return ctx

    def _create_context(self) -> EngineContext:
        path = self.processor_path
        if self._rebuild:
            path = self._builder(path)

        racer = self._racer_factory()
        ctx = EngineContext(racer, timeout_ms=self.timeout_ms)
        try:
            # General shims
            ctx.eval(HOST_LOG_SHIM)
            ctx.eval(self._loader(path), filename=PROCESSOR_FILENAME)
        except Exception:
            ctx.dispose()
            raise
        ctx.state = EngineState.READY
        return ctx

    def reset(self) -> None:
        """Dispose the current context; the next get_or_create() rebuilds from scratch."""
        self.cancel_idle_gc()
        with self._init_lock:
            self._ready.clear()
            ctx, self._ctx = self._ctx, None
            self._state = EngineState.UNINITIALIZED
        if ctx is not None:
            ctx.dispose()
            _log.info("JS processor context disposed")

    def dispose(self) -> None:
        """Process teardown: like reset(), but the manager stays disposed until the next call."""
        self._stop_idle_gc()
        self.reset()
        self._state = EngineState.DISPOSED

    # ------------------------------------------------------------------
    # Idle GC
    # ------------------------------------------------------------------

    def notify_idle(self) -> None:
        """Record a finished call; the heap is shrunk once no call has followed for idle_gc_ms."""
        if self.idle_gc_ms <= 0:
            return
        with self._gc_cond:
            self._last_call = time.monotonic()
            self._gc_pending = True
            if self._gc_thread is None:
                self._gc_stop = threading.Event()
                self._gc_thread = threading.Thread(
                    target=self._idle_gc_loop,
                    args=(self._gc_stop,),
                    name="js-processor-idle-gc",
                    daemon=True,
                )
                self._gc_thread.start()
            self._gc_cond.notify()

    def cancel_idle_gc(self) -> None:
        with self._gc_cond:
            self._gc_pending = False
            self._gc_cond.notify()

    def _stop_idle_gc(self) -> None:
        with self._gc_cond:
            thread, self._gc_thread = self._gc_thread, None
            if self._gc_stop is not None:
                self._gc_stop.set()
            self._gc_pending = False
            self._gc_cond.notify_all()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    def _idle_gc_loop(self, stop: threading.Event) -> None:
        delay = self.idle_gc_ms / 1000.0
        while True:
            with self._gc_cond:
                while not stop.is_set():
                    if not self._gc_pending:
                        self._gc_cond.wait()
                        continue
                    remaining = self._last_call + delay - time.monotonic()
                    if remaining <= 0:
                        break
                    self._gc_cond.wait(remaining)
                if stop.is_set():
                    return
                self._gc_pending = False
            self._collect_if_idle()

    def _collect_if_idle(self) -> None:
        if not self.call_lock.acquire(blocking=False):
            return
        try:
            ctx = self._ctx
            if ctx is None or not self._ready.is_set():
                return
            try:
                ctx.collect_garbage()
                _log.debug("JS processor idle GC")
            except Exception as e:
                _log.warning("JS processor idle GC failed: %s", e)
        finally:
            self.call_lock.release()


_manager: EngineContextManager | None = None
_manager_lock = threading.Lock()


def get_context_manager() -> EngineContextManager:
    """Return the singleton EngineContextManager (thread-safe double-checked locking)."""
    global _manager
    if _manager is None:
        with _manager_lock:
            if _manager is None:
                _manager = EngineContextManager()
    return _manager
