#!/usr/bin/env python3
"""
Stress the JS processor: run N transpiles in parallel against one V8 context.

Every call goes through the executor lock, so each output must carry its
own input and module id no matter how the threads interleave.

Usage:
  python scripts/stress_transpile.py [--bundle PATH] [--concurrent N] [--calls N]
  Or set env: JS_PROCESSOR_BUNDLE, CONCURRENT, CALLS
"""

import argparse
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed

from js_processor.engines.js import EngineContextManager, JsExecutor, TranspileError
from js_processor.engines.transpiler import Transpiler


def do_transpile(t: Transpiler, index: int) -> tuple[int, bool, str]:
    """Transpile one unit; return (index, ok, detail)."""
    src = f"var v{index} = {index};"
    try:
        out = t.transpile(src, None, f"stress/m{index}")
        ok = src in out and f"stress/m{index}" in out
        detail = "" if ok else "output mismatch"
    except TranspileError as e:
        ok, detail = False, e.message
    return (index, ok, detail)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run N concurrent transpiles against one JS processor context.")
    parser.add_argument(
        "--bundle",
        default=os.environ.get("JS_PROCESSOR_BUNDLE", "tests/fixtures/js-processor.js"),
        help="Processor bundle to load (default: the test fixture bundle)",
    )
    parser.add_argument(
        "--concurrent",
        type=int,
        default=int(os.environ.get("CONCURRENT", "20")),
        help="Worker threads (default 20)",
    )
    parser.add_argument(
        "--calls",
        type=int,
        default=int(os.environ.get("CALLS", "200")),
        help="Total transpile calls (default 200)",
    )
    args = parser.parse_args()

    if not os.path.exists(args.bundle):
        print(f"Error: bundle not found: {args.bundle}", file=sys.stderr)
        sys.exit(1)

    manager = EngineContextManager(rebuild=False, processor_path=os.path.abspath(args.bundle))
    t = Transpiler(JsExecutor(manager))

    print(f"Running {args.calls} transpiles on {args.concurrent} threads against {args.bundle}")
    print("---")

    results: list[tuple[int, bool, str]] = []
    began = time.monotonic()
    with ThreadPoolExecutor(max_workers=args.concurrent) as executor:
        futures = [executor.submit(do_transpile, t, i) for i in range(args.calls)]
        for fut in as_completed(futures):
            results.append(fut.result())
    elapsed = time.monotonic() - began
    manager.dispose()

    failed = [r for r in results if not r[1]]
    for idx, _, detail in sorted(failed):
        print(f"{idx} FAILED {detail}")

    print("---")
    print(f"Done in {elapsed:.2f}s. ok={len(results) - len(failed)} failed={len(failed)} builds={manager.rebuild_count}")
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
