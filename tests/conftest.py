import os
from collections.abc import Generator

import pytest

from js_processor.core.module_name import PluginRegistry
from js_processor.core.paths import PathClassifier, TranspilePathRegistry
from js_processor.engines.js import EngineContextManager, JsExecutor
from tests.utils.engine import RacerFactory, make_manager

APP_ROOT = "/var/www/discourse"

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


@pytest.fixture
def classifier() -> PathClassifier:
    """Classifier with its own registry, so tests never touch the process-wide one."""
    return PathClassifier(TranspilePathRegistry(), app_root=APP_ROOT)


@pytest.fixture
def plugins() -> PluginRegistry:
    return PluginRegistry()


@pytest.fixture
def racer_factory() -> RacerFactory:
    return RacerFactory(
        {
            "transpile": lambda source, opts: f"define('{opts['moduleId']}', {source})",
            "compileRawTemplate": lambda source, theme_id: f"compiled({source})",
        }
    )


@pytest.fixture
def manager(racer_factory: RacerFactory) -> Generator[EngineContextManager, None, None]:
    m = make_manager(racer_factory)
    yield m
    m.reset()


@pytest.fixture
def executor(manager: EngineContextManager) -> JsExecutor:
    return JsExecutor(manager)


@pytest.fixture
def processor_bundle() -> str:
    return os.path.join(FIXTURES_DIR, "js-processor.js")
