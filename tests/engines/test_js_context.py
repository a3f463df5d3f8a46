"""Unit tests for engines.js.context: EngineContextManager lifecycle."""

import threading
import time
from unittest.mock import MagicMock, patch

import pytest
from py_mini_racer import JSEvalException

from js_processor.engines.js import context as context_mod
from js_processor.engines.js.context import (
    PROCESSOR_FILENAME,
    EngineContextManager,
    EngineState,
    get_context_manager,
)
from js_processor.engines.js.modules.log import HOST_LOG_SHIM
from tests.utils.engine import FakeRacer, RacerFactory, make_manager


class TestGetOrCreate:
    def test_lazy(self, manager: EngineContextManager, racer_factory: RacerFactory) -> None:
        assert manager.state == EngineState.UNINITIALIZED
        assert manager.rebuild_count == 0
        assert racer_factory.instances == []

    def test_builds_once(self, manager: EngineContextManager, racer_factory: RacerFactory) -> None:
        ctx = manager.get_or_create()
        assert manager.get_or_create() is ctx
        assert manager.rebuild_count == 1
        assert len(racer_factory.instances) == 1
        assert manager.state == EngineState.READY
        assert ctx.state == EngineState.READY

    def test_installs_shims_then_bundle(
        self, manager: EngineContextManager, racer_factory: RacerFactory
    ) -> None:
        manager.get_or_create()
        evals = racer_factory.current.evals
        assert len(evals) == 2
        assert evals[0][0] == HOST_LOG_SHIM
        assert evals[1][0].startswith("/* js-processor */")
        assert evals[1][0].endswith(f"//# sourceURL={PROCESSOR_FILENAME}")
        assert all(timeout == 15_000 for _, timeout in evals)

    def test_context_limits(self, manager: EngineContextManager) -> None:
        ctx = manager.get_or_create()
        assert ctx.timeout_ms == 15_000


    def test_concurrent_cold_start_builds_once(self) -> None:
        factory = RacerFactory()
        built = []

        def slow_loader(path: str) -> str:
            time.sleep(0.05)
            built.append(path)
            return "/* bundle */"

        m = EngineContextManager(
            racer_factory=factory, loader=slow_loader, rebuild=False, idle_gc_ms=0
        )
        results = []
        threads = [
            threading.Thread(target=lambda: results.append(m.get_or_create())) for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(built) == 1
        assert len(factory.instances) == 1
        assert len({id(r) for r in results}) == 1
        assert m.rebuild_count == 1


class TestRebuild:
    def test_rebuild_before_create(self) -> None:
        builder = MagicMock(return_value="tmp/js-processor/1.js")
        loader = MagicMock(return_value="/* bundle */")
        m = EngineContextManager(
            racer_factory=RacerFactory(),
            builder=builder,
            loader=loader,
            rebuild=True,
            processor_path="tmp/js-processor/1.js",
            idle_gc_ms=0,
        )
        m.get_or_create()
        builder.assert_called_once_with("tmp/js-processor/1.js")
        loader.assert_called_once_with("tmp/js-processor/1.js")

    def test_no_rebuild_in_production(self) -> None:
        builder = MagicMock()
        with patch("js_processor.engines.js.context.settings") as s:
            s.is_production = True
            s.JS_PROCESSOR_PATH = "tmp/js-processor.js"
            s.JS_PROCESSOR_TIMEOUT_MS = 15_000
            s.JS_PROCESSOR_IDLE_GC_MS = 0
            m = EngineContextManager(
                racer_factory=RacerFactory(), builder=builder, loader=lambda p: "x"
            )
            m.get_or_create()
        builder.assert_not_called()

    def test_rebuild_by_default_outside_production(self) -> None:
        builder = MagicMock(side_effect=lambda path: path)
        with patch("js_processor.engines.js.context.settings") as s:
            s.is_production = False
            s.JS_PROCESSOR_PATH = "tmp/js-processor/42.js"
            s.JS_PROCESSOR_TIMEOUT_MS = 15_000
            s.JS_PROCESSOR_IDLE_GC_MS = 0
            m = EngineContextManager(
                racer_factory=RacerFactory(), builder=builder, loader=lambda p: "x"
            )
            m.get_or_create()
        builder.assert_called_once_with("tmp/js-processor/42.js")


class TestInitFailure:
    def test_build_failure_propagates(self) -> None:
        factory = RacerFactory()
        builder = MagicMock(side_effect=RuntimeError("esbuild exploded"))
        m = make_manager(factory, builder=builder, rebuild=True)
        with pytest.raises(RuntimeError, match="esbuild exploded"):
            m.get_or_create()
        assert m.state == EngineState.UNINITIALIZED
        assert m.rebuild_count == 0
        assert factory.instances == []

    def test_eval_failure_propagates_and_disposes(self) -> None:
        class BrokenRacer(FakeRacer):
            def eval(self, code: str, timeout: object = None) -> None:
                if "broken" in code:
                    raise JSEvalException("SyntaxError: Unexpected token")

        instances: list[FakeRacer] = []

        def factory() -> FakeRacer:
            r = BrokenRacer()
            instances.append(r)
            return r

        m = EngineContextManager(
            racer_factory=factory, loader=lambda p: "broken(", rebuild=False, idle_gc_ms=0
        )
        with pytest.raises(JSEvalException):
            m.get_or_create()
        assert instances[0].closed is True
        assert m.state == EngineState.UNINITIALIZED

    def test_missing_bundle(self, tmp_path) -> None:
        m = EngineContextManager(
            racer_factory=RacerFactory(),
            rebuild=False,
            processor_path=str(tmp_path / "missing.js"),
            idle_gc_ms=0,
        )
        with pytest.raises(FileNotFoundError):
            m.get_or_create()

    def test_recovers_after_failure(self) -> None:
        loader = MagicMock(side_effect=[OSError("disk"), "/* ok */"])
        m = EngineContextManager(
            racer_factory=RacerFactory(), loader=loader, rebuild=False, idle_gc_ms=0
        )
        with pytest.raises(OSError):
            m.get_or_create()
        assert m.get_or_create() is not None
        assert m.rebuild_count == 1


class TestReset:
    def test_reset_disposes_and_rebuilds(
        self, manager: EngineContextManager, racer_factory: RacerFactory
    ) -> None:
        first = manager.get_or_create()
        manager.reset()
        assert first.state == EngineState.DISPOSED
        assert racer_factory.instances[0].closed is True
        assert manager.state == EngineState.UNINITIALIZED

        second = manager.get_or_create()
        assert second is not first
        assert manager.rebuild_count == 2
        assert len(racer_factory.instances) == 2

    def test_reset_without_context(self, manager: EngineContextManager) -> None:
        manager.reset()
        assert manager.state == EngineState.UNINITIALIZED

    def test_dispose(self, manager: EngineContextManager, racer_factory: RacerFactory) -> None:
        manager.get_or_create()
        manager.dispose()
        assert manager.state == EngineState.DISPOSED
        assert racer_factory.current.closed is True
        manager.get_or_create()
        assert manager.state == EngineState.READY

    def test_context_dispose_is_idempotent(self, manager: EngineContextManager) -> None:
        ctx = manager.get_or_create()
        ctx.dispose()
        ctx.dispose()
        assert ctx.state == EngineState.DISPOSED


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while not predicate() and time.monotonic() < deadline:
        time.sleep(0.01)
    return predicate()


class TestIdleGc:
    def test_collects_after_idle(self, racer_factory: RacerFactory) -> None:
        m = make_manager(racer_factory, idle_gc_ms=20)
        m.get_or_create()
        m.notify_idle()
        assert _wait_for(lambda: racer_factory.current.gc_count == 1)
        time.sleep(0.05)
        assert racer_factory.current.gc_count == 1
        m.dispose()

    def test_activity_postpones_collection(self, racer_factory: RacerFactory) -> None:
        m = make_manager(racer_factory, idle_gc_ms=150)
        m.get_or_create()
        for _ in range(15):
            m.notify_idle()
            time.sleep(0.01)
        assert racer_factory.current.gc_count == 0
        assert _wait_for(lambda: racer_factory.current.gc_count == 1)
        m.dispose()

    def test_single_worker_thread(self, racer_factory: RacerFactory) -> None:
        m = make_manager(racer_factory, idle_gc_ms=60_000)
        m.notify_idle()
        worker = m._gc_thread
        for _ in range(50):
            m.notify_idle()
        assert worker is not None and m._gc_thread is worker
        m.dispose()
        assert m._gc_thread is None
        assert not worker.is_alive()

    def test_restarts_after_dispose(self, racer_factory: RacerFactory) -> None:
        m = make_manager(racer_factory, idle_gc_ms=20)
        m.notify_idle()
        m.dispose()
        m.get_or_create()
        m.notify_idle()
        assert _wait_for(lambda: racer_factory.current.gc_count == 1)
        m.dispose()

    def test_cancel(self, racer_factory: RacerFactory) -> None:
        m = make_manager(racer_factory, idle_gc_ms=30)
        m.get_or_create()
        m.notify_idle()
        m.cancel_idle_gc()
        time.sleep(0.1)
        assert racer_factory.current.gc_count == 0
        m.dispose()

    def test_skipped_while_call_lock_held(self, racer_factory: RacerFactory) -> None:
        m = make_manager(racer_factory, idle_gc_ms=10)
        m.get_or_create()
        with m.call_lock:
            m._collect_if_idle()
        assert racer_factory.current.gc_count == 0
        m.reset()

    def test_disabled_when_zero(self, manager: EngineContextManager) -> None:
        manager.notify_idle()
        assert manager._gc_thread is None

    def test_no_context_no_gc(self, racer_factory: RacerFactory) -> None:
        m = make_manager(racer_factory, idle_gc_ms=10)
        m._collect_if_idle()
        assert racer_factory.instances == []


def test_singleton() -> None:
    with patch.object(context_mod, "_manager", None):
        a = get_context_manager()
        b = get_context_manager()
        assert a is b
