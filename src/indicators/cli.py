import argparse
import asyncio
import json
import logging
from typing import Optional

from .aggregator import Aggregator, to_response
from .catalog import build_aggregator
from .config import Settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="indicators")
    subparsers = parser.add_subparsers(dest="command", required=True)

    _ = subparsers.add_parser("list-metrics")

    resolve = subparsers.add_parser("resolve")
    _ = resolve.add_argument("--metric", required=True)

    resolve_all = subparsers.add_parser("resolve-all")
    _ = resolve_all.add_argument("--metrics", default="")

    return parser


def _parse_metric_list(raw: str, aggregator: Aggregator) -> list[str]:
    keys = [part.strip() for part in raw.split(",") if part.strip()]
    return keys or aggregator.metric_keys


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def resolve_command(metric: str, aggregator: Optional[Aggregator] = None) -> dict[str, object]:
    aggregator = aggregator or build_aggregator()
    resolution = asyncio.run(aggregator.resolver.resolve(metric))
    return resolution.to_dict()


def resolve_all_command(
    metrics: str = "", aggregator: Optional[Aggregator] = None
) -> dict[str, object]:
    aggregator = aggregator or build_aggregator()
    keys = _parse_metric_list(metrics, aggregator)
    results = asyncio.run(aggregator.resolve_all(keys))
    return to_response(results)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    if args.command == "list-metrics":
        print(json.dumps(build_aggregator(settings).metric_keys))
        return 0

    if args.command == "resolve":
        payload = resolve_command(args.metric, build_aggregator(settings))
        print(json.dumps(payload, default=str))
        return 0

    if args.command == "resolve-all":
        payload = resolve_all_command(args.metrics, build_aggregator(settings))
        print(json.dumps(payload, default=str))
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
