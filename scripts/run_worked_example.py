"""
Run the device-vector worked examples on a chosen backend.

- `example`: ((a + b) / c) with a=[-4,-2,0,2,4], b=4, c=2 -> [0,1,2,3,4],
  mean 2, variance 2.
- `memory`: v + v repeated on a large vector, releasing each previous result;
  checks the average and that no buffers are left behind.

Usage:
  python scripts/run_worked_example.py --backend host
  python scripts/run_worked_example.py --backend cuda --scenario memory --n 1000000
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import backends  # noqa: E402
from device_vector import DeviceVector, RuntimeConfig  # noqa: E402


log = logging.getLogger("run_worked_example")


def run_example(backend: backends.ComputeBackend, *, chunk_size: int | None) -> Dict[str, Any]:
    with DeviceVector.from_host(backend, [-4.0, -2.0, 0.0, 2.0, 4.0]) as a, \
            DeviceVector.from_host(backend, [4.0] * 5) as b, \
            DeviceVector.from_host(backend, [2.0] * 5) as c, \
            a.add(b, chunk_size=chunk_size) as s, \
            s.divide(c, chunk_size=chunk_size) as r:
        values = r.to_host()
        average = r.get_average()
        variance = r.get_variance()
    ok = bool(np.array_equal(values, np.arange(5, dtype=np.float32))) and abs(average - 2.0) < 1e-6 and abs(variance - 2.0) < 1e-6
    return {"values": values.tolist(), "average": average, "variance": variance, "ok": ok}


def run_memory(backend: backends.ComputeBackend, *, n: int, repetitions: int, chunk_size: int | None) -> Dict[str, Any]:
    values = np.arange(n, dtype=np.float32)
    v = DeviceVector.from_host(backend, values)
    result = None
    try:
        for _ in range(repetitions):
            nxt = v.add(v, chunk_size=chunk_size)
            if result is not None:
                result.release()
            result = nxt
        average = result.get_average() if result is not None else float("nan")
    finally:
        if result is not None:
            result.release()
        v.release()
    leaked = len(backend.live_buffers())
    ok = abs(average - (n - 1.0)) < 1e-6 and leaked == 0
    return {"n": n, "repetitions": repetitions, "average": average, "expected": n - 1.0, "leaked_buffers": leaked, "ok": ok}


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--backend", choices=backends.available(), default=None, help="defaults to DEVVEC_BACKEND (host)")
    ap.add_argument("--scenario", choices=["example", "memory", "all"], default="all")
    ap.add_argument("--chunk-size", type=int, default=None)
    ap.add_argument("--n", type=int, default=1_000_000, help="vector length for the memory scenario")
    ap.add_argument("--repetitions", type=int, default=10)
    ap.add_argument("--log-level", default="INFO")
    ap.add_argument("--json", action="store_true", help="print a JSON report instead of text")
    args = ap.parse_args()

    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.INFO), format="%(levelname)s %(name)s: %(message)s")

    config = RuntimeConfig.from_env().with_overrides(backend=args.backend, chunk_size=args.chunk_size)
    report: Dict[str, Any] = {"backend": config.backend, "chunk_size": config.chunk_size}
    with backends.get_backend(config=config) as backend:
        if args.scenario in {"example", "all"}:
            report["example"] = run_example(backend, chunk_size=args.chunk_size)
        if args.scenario in {"memory", "all"}:
            report["memory"] = run_memory(backend, n=int(args.n), repetitions=int(args.repetitions), chunk_size=args.chunk_size)

    ok = all(v.get("ok", True) for v in report.values() if isinstance(v, dict))
    if args.json:
        print(json.dumps(report, indent=2, sort_keys=True))
    else:
        for name in ("example", "memory"):
            if name in report:
                log.info("%s: %s", name, report[name])
        print(f"{config.backend}: {'OK' if ok else 'FAILED'}")
    raise SystemExit(0 if ok else 1)


if __name__ == "__main__":
    main()
