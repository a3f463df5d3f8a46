"""
Log module for the JS processor: rails.logger.info / warn / error.

V8 cannot call back into Python synchronously, so the shim installed in the
context buffers ``[level, message]`` pairs and the executor drains them into
Python logging after every call.
"""

import logging
from types import SimpleNamespace
from typing import Any

logger = logging.getLogger("js_processor.engines.js.console")

DRAIN_FUNCTION = "__drainHostLog"

HOST_LOG_SHIM = f"""
var __hostLog = [];
var rails = {{
  logger: {{
    info: function (msg) {{ __hostLog.push(["info", String(msg)]); }},
    warn: function (msg) {{ __hostLog.push(["warn", String(msg)]); }},
    error: function (msg) {{ __hostLog.push(["error", String(msg)]); }}
  }}
}};
function {DRAIN_FUNCTION}() {{
  var out = __hostLog;
  __hostLog = [];
  return out;
}}
"""


def make_log_module(*, logger_instance: logging.Logger | None = None) -> Any:
    """Build the `log` object: info, warn, error, plus forward(records) for drained shim output."""
    log = logger_instance or logger

    def _log(level: int, msg: str) -> None:
        log.log(level, "%s", msg)

    def info(msg: str) -> None:
        _log(logging.INFO, msg)

    def warn(msg: str) -> None:
        _log(logging.WARNING, msg)

    def error(msg: str) -> None:
        _log(logging.ERROR, msg)

    levels = {"info": info, "warn": warn, "error": error}

    def forward(records: Any) -> int:
        """Emit drained ``[level, message]`` pairs; unknown levels are logged as info."""
        n = 0
        for record in records or []:
            try:
                level, msg = record
            except (TypeError, ValueError):
                level, msg = "info", record
            levels.get(str(level), info)(str(msg))
            n += 1
        return n

    return SimpleNamespace(info=info, warn=warn, error=error, forward=forward)
