"""
Builds the JS processor bundle (Babel + plugins) with esbuild.

Outside production the bundle sources change under us, so every new V8
context is preceded by a rebuild. Concurrent cold starts are serialized so
they never race the build tool on the same output file.
"""

import logging
import os
import shlex
import subprocess
import threading

from js_processor.core.config import settings

_log = logging.getLogger(__name__)

_build_lock = threading.Lock()


def build_command(output_path: str, *, source: str | None = None) -> list[str]:
    """esbuild invocation: bundle *source* into *output_path* with fs left external."""
    cmd = shlex.split(settings.JS_PROCESSOR_BUILD_COMMAND)
    cmd += [
        "--log-level=warning",
        "--bundle",
        "--external:fs",
        '--define:process={"env":{}}',
        source or settings.JS_PROCESSOR_SOURCE,
        f"--outfile={output_path}",
    ]
    return cmd


def generate_js_processor(
    output_path: str | None = None,
    *,
    cwd: str | None = None,
) -> str:
    """
    Run esbuild and return the bundle path (relative to *cwd*).

    Raises subprocess.CalledProcessError when the build fails, FileNotFoundError
    when the build tool is missing.
    """
    out = output_path or settings.JS_PROCESSOR_PATH
    workdir = cwd or settings.APP_ROOT
    cmd = build_command(out)
    with _build_lock:
        _log.info("Building JS processor: %s", out)
        try:
            proc = subprocess.run(
                cmd,
                cwd=workdir,
                check=True,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            _log.error(
                "JS processor build failed (exit %s): %s",
                e.returncode,
                (e.stderr or "").strip(),
            )
            raise
        if proc.stderr:
            _log.warning("esbuild: %s", proc.stderr.strip())
    return out


def read_js_processor(path: str, *, cwd: str | None = None) -> str:
    """Read the bundle text. Raises FileNotFoundError if it has not been built."""
    full = path if os.path.isabs(path) else os.path.join(cwd or settings.APP_ROOT, path)
    with open(full, encoding="utf-8") as f:
        return f.read()
