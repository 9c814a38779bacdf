"""
Run the engine from a JSON configuration file.

    python -m mcforecast --config config.json --once
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from typing import Optional, Sequence

from .config import load_config
from .engine import ForecastEngine
from .errors import ForecastError
from .price_source import FeedPriceSource, StaticPriceSource

logger = logging.getLogger("mcforecast")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="mcforecast", description="Monte Carlo price forecasting engine")
    parser.add_argument("--config", default="config.json", help="path to the JSON configuration")
    parser.add_argument("--once", action="store_true", help="run a single simulation and exit")
    parser.add_argument("--price", type=float, default=None, help="fixed reference price instead of live feeds")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as exc:
        logger.error("Cannot load configuration %s: %s", args.config, exc)
        return 2

    try:
        source = StaticPriceSource(args.price) if args.price is not None else FeedPriceSource()
    except ValueError as exc:
        logger.error("Invalid reference price: %s", exc)
        return 2
    engine = ForecastEngine(config, source)

    try:
        report = engine.get_overview()
    except ForecastError as exc:
        logger.error("First run failed: %s", exc)
        if args.once:
            return 1
    else:
        print(json.dumps(report.to_dict(), indent=2))
    if args.once:
        return 0

    engine.start_auto_runs()
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        engine.stop_auto_runs(timeout=5.0)
    return 0


if __name__ == "__main__":
    sys.exit(main())
