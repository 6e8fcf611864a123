"""Command line entry point.

Usage:
    python -m app serve                         # API server + hourly loop
    python -m app analyze                       # one pass over engine.yaml assets
    python -m app analyze --assets 0 1 --warmup 10
"""

import argparse
import asyncio
import sys

from app.config import get_settings
from app.engine_config import load_engine_config


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="app", description="Multi-timeframe signal engine")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the API server with the hourly analysis loop")

    analyze = sub.add_parser("analyze", help="Run one analysis pass and exit")
    analyze.add_argument(
        "--assets",
        type=int,
        nargs="+",
        help="Instrument ids to analyse (default: from engine config)",
    )
    analyze.add_argument(
        "--warmup",
        type=float,
        default=5.0,
        help="Seconds to collect live prices before analysing (default: 5)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if args.command == "serve":
        from app.main import main as serve
        serve()
        return 0

    from app.main import analyze_once

    settings = get_settings()
    config = load_engine_config(settings.engine_config_path)
    if args.assets:
        config = config.model_copy(update={"assets": args.assets})

    analyses = asyncio.run(analyze_once(settings, config, warmup=args.warmup))
    for analysis in analyses:
        print(
            f"{analysis.pair_name or analysis.instrument_id:>12}  "
            f"{analysis.global_verdict.value:<10}  "
            f"score={analysis.weighted_score:+.4f}  "
            f"spot={analysis.spot_price_at_analysis}"
        )
    return 0 if analyses else 1


if __name__ == "__main__":
    sys.exit(main())
