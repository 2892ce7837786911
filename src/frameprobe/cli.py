"""Command line entry point.

    frameprobe simulate --fps 30 --jitter-ms 2 --drop-every 20
    frameprobe serve --port 8000
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config import load_config
from .probe import run_probe_sync
from .simulate import SimulationConfig, simulated_source


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=handlers,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="frameprobe", description="Frame timing probe")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--log-file", type=Path, default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="probe a simulated video source")
    sim.add_argument("--config", type=Path, default=None, help="ProbeConfig JSON file")
    sim.add_argument("--duration-ms", type=float, default=None)
    sim.add_argument("--target-fps", type=float, default=None)
    sim.add_argument("--fps", type=float, default=30.0, help="simulated frame rate")
    sim.add_argument("--refresh-hz", type=float, default=60.0)
    sim.add_argument("--polling", action="store_true", help="no frame-accurate callbacks")
    sim.add_argument("--jitter-ms", type=float, default=0.0)
    sim.add_argument("--drop-every", type=int, default=0)
    sim.add_argument("--drop-probability", type=float, default=0.0)
    sim.add_argument("--media-rate", type=float, default=1.0)
    sim.add_argument("--pattern-ms", type=float, nargs="+", default=None)
    sim.add_argument("--seed", type=int, default=0)

    serve = sub.add_parser("serve", help="run the HTTP service")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def _simulate(args: argparse.Namespace) -> int:
    cfg = load_config(args.config, duration_ms=args.duration_ms, target_fps=args.target_fps)
    sim = SimulationConfig(
        fps=args.fps,
        refresh_hz=args.refresh_hz,
        frame_callbacks=not args.polling,
        jitter_ms=args.jitter_ms,
        drop_every=args.drop_every,
        drop_probability=args.drop_probability,
        media_rate=args.media_rate,
        pattern_ms=args.pattern_ms,
        seed=args.seed,
    )
    source = simulated_source(sim)
    report = run_probe_sync(source, cfg, clock=source.clock)
    print(report.to_json(indent=2))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.log_file)
    if args.command == "simulate":
        return _simulate(args)
    from .service import main as serve_main

    serve_main(host=args.host, port=args.port)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
