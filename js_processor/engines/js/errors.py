"""
TranspileError and the translation of V8 runtime failures into it.
"""

import json
import re
import traceback

from py_mini_racer._exc import MiniRacerBaseException

# Runtime failures raised by a call into a ready context (throws, timeouts, OOM, parse, bad return type)
ENGINE_RUNTIME_ERRORS: tuple[type[BaseException], ...] = (MiniRacerBaseException,)

_ERROR_PREFIX = "Error: "

# "js-processor.js:7: " in front of the first line of a V8 error report
_LOCATION_RE = re.compile(r"^[^\s:]+:\d+: ")
_FRAME_RE = re.compile(r"^\s+at ")


class TranspileError(Exception):
    """Raised when the JS processor fails to transpile, compile or minify."""

    def __init__(self, message: str, stack: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stack = stack


def thrown_value(report: str) -> str:
    """
    Pull the thrown value out of a V8 error report.

    The engine reports a throw as::

        js-processor.js:7: Error: "bad thing"
            throw new Error(JSON.stringify("bad thing"));
            ^

        Error: "bad thing"
            at transpile (js-processor.js:7:11)

    The text between the blank line and the first stack frame is the full
    (possibly multi-line) value; without it, the first line minus its
    location is used. Reports without a location are returned unchanged.
    """
    first, _, rest = report.partition("\n")
    location = _LOCATION_RE.match(first)
    if not location:
        return report

    _, sep, tail = rest.partition("\n\n")
    if sep:
        lines = []
        for line in tail.split("\n"):
            if _FRAME_RE.match(line):
                break
            lines.append(line)
        value = "\n".join(lines).rstrip()
        if value:
            return value
    return first[location.end():]


def _reject_constant(name: str) -> None:
    raise ValueError(f"not JSON: {name}")


def decode_message(message: str) -> str:
    """
    Undo JSON string encoding applied to thrown values.

    ``Error: "bad thing"`` becomes ``Error: bad thing``. Anything that is not
    a JSON string once the prefix is stripped is returned unchanged.
    """
    possible_encoded = message[len(_ERROR_PREFIX):] if message.startswith(_ERROR_PREFIX) else message
    try:
        decoded = json.loads(possible_encoded, parse_constant=_reject_constant)
    except ValueError:
        return message
    if not isinstance(decoded, str):
        return message
    return f"{_ERROR_PREFIX}{decoded}"


def translate_error(exc: BaseException) -> TranspileError:
    """Build a TranspileError from an engine failure; the full report and traceback go to ``stack``."""
    message = decode_message(thrown_value(str(exc)))
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    err = TranspileError(message, stack=stack)
    return err.with_traceback(exc.__traceback__)
