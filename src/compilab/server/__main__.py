"""CLI entry point: ``python -m compilab.server``."""

from __future__ import annotations

import argparse
import logging

import uvicorn

from compilab.config import AnalysisConfig
from compilab.server.api import create_app


def main() -> None:
    parser = argparse.ArgumentParser(description="compiler-lab analysis service")
    parser.add_argument("--host", default="0.0.0.0", help="bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="bind port (default: 8000)")
    parser.add_argument("--max-iterations", type=int, default=1000)
    parser.add_argument("--max-factoring-rounds", type=int, default=100)
    parser.add_argument("--max-parse-steps", type=int, default=10_000)
    parser.add_argument("--enumeration-max-length", type=int, default=5)
    parser.add_argument("--enumeration-max-count", type=int, default=100)
    parser.add_argument(
        "--minimization",
        default="partition",
        choices=["none", "partition", "significant"],
        help="default DFA minimization (default: partition)",
    )
    parser.add_argument(
        "--lr-method",
        default="slr",
        choices=["lr0", "slr", "lr1", "lalr"],
        help="default LR table construction (default: slr)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level), format="%(levelname)s: %(message)s"
    )

    config = AnalysisConfig(
        max_iterations=args.max_iterations,
        max_factoring_rounds=args.max_factoring_rounds,
        max_parse_steps=args.max_parse_steps,
        enumeration_max_length=args.enumeration_max_length,
        enumeration_max_count=args.enumeration_max_count,
        default_minimization=args.minimization,
        default_lr_method=args.lr_method,
    )

    app = create_app(config)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
