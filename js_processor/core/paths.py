"""
Path classifier: decides whether an asset must go through the transpiler.

Plugins contribute extra prefixes with ``register_transpile_path()``. The
registry only grows; a prefix registered once is honoured for the life of
the process.
"""

import logging
import re
import threading
from collections.abc import Iterable

from js_processor.core.config import settings

_log = logging.getLogger(__name__)

JS_ROOT = "app/assets/javascripts"
TEST_ROOT = "test/javascripts"

# Pre-built ember-cli output, already compiled upstream
EMBER_CLI_DIST = "/app/assets/javascripts/discourse/dist/"

SKIP_MODULE_RE = re.compile(r"^// discourse-skip-module$", re.MULTILINE)

# Bootstrap scripts under JS_ROOT that are transpiled even though they sit at the top level
BOOTSTRAP_SCRIPTS = (
    "start-discourse",
    "onpopstate-handler",
    "google-tag-manager",
    "google-universal-analytics-v3",
    "google-universal-analytics-v4",
    "activate-account",
    "auto-redirect",
    "embed-application",
    "app-boot",
)

_NESTED_ASSET_RE = re.compile(
    rf"^{re.escape(JS_ROOT)}/[^/]+/|^{re.escape(TEST_ROOT)}/[^/]+/"
)


class TranspilePathRegistry:
    """Append-only set of relative path prefixes that are always transpiled."""

    def __init__(self, prefixes: Iterable[str] = ()) -> None:
        self._prefixes: set[str] = set(prefixes)
        self._lock = threading.Lock()

    def register(self, prefix: str) -> None:
        with self._lock:
            if prefix in self._prefixes:
                return
            self._prefixes.add(prefix)
        _log.debug("Registered transpile path prefix %s", prefix)

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._prefixes)

    def __contains__(self, prefix: object) -> bool:
        with self._lock:
            return prefix in self._prefixes

    def __len__(self) -> int:
        with self._lock:
            return len(self._prefixes)


class PathClassifier:
    """
    should_transpile(filename) -> bool, first matching rule wins:

    1. ember-cli dist output: never
    2. .es6 / .es6.erb: always
    3. anything but .js / .js.erb: never
    4. locales/ and plugins/ under JS_ROOT: never
    5. bootstrap scripts: always
    6. registered plugin prefixes: always
    7. files at least one directory deep under JS_ROOT or TEST_ROOT
    """

    def __init__(
        self,
        registry: TranspilePathRegistry | None = None,
        *,
        app_root: str | None = None,
    ) -> None:
        self.registry = registry if registry is not None else TranspilePathRegistry()
        self._app_root = app_root

    @property
    def app_root(self) -> str:
        return self._app_root if self._app_root is not None else settings.APP_ROOT

    def relative_path(self, filename: str) -> str:
        root = self.app_root
        rel = filename.replace(root, "", 1) if root else filename
        return rel.lstrip("/")

    def should_transpile(self, filename: str | None) -> bool:
        filename = filename or ""

        if is_ember_cli(filename):
            return False

        if filename.endswith(".es6") or filename.endswith(".es6.erb"):
            return True

        if not (filename.endswith(".js") or filename.endswith(".js.erb")):
            return False

        rel = self.relative_path(filename)

        if rel.startswith(f"{JS_ROOT}/locales/") or rel.startswith(f"{JS_ROOT}/plugins/"):
            return False

        if any(rel == f"{JS_ROOT}/{name}.js" for name in BOOTSTRAP_SCRIPTS):
            return True

        if any(rel.startswith(prefix) for prefix in self.registry.snapshot()):
            return True

        return _NESTED_ASSET_RE.match(rel) is not None


def is_ember_cli(filename: str | None) -> bool:
    return EMBER_CLI_DIST in (filename or "")


def skip_module(source: str | None) -> bool:
    """True when the source opts out of module wrapping with ``// discourse-skip-module``."""
    if not source:
        return False
    return SKIP_MODULE_RE.search(source) is not None


_registry = TranspilePathRegistry()
_classifier = PathClassifier(_registry)


def get_transpile_path_registry() -> TranspilePathRegistry:
    return _registry


def register_transpile_path(prefix: str) -> None:
    """Add *prefix* (relative to APP_ROOT) to the process-wide registry. Idempotent."""
    _registry.register(prefix)


def should_transpile(filename: str | None) -> bool:
    return _classifier.should_transpile(filename)
