"""
Host modules exposed to the JS processor bundle: log.
"""

from js_processor.engines.js.modules.log import HOST_LOG_SHIM, make_log_module

__all__ = [
    "HOST_LOG_SHIM",
    "make_log_module",
]
