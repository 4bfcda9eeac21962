"""Step simulator: drive a tracker with synthetic counter readings.

Feeds a replayed cumulative step counter through the full tracker pipeline
(accumulator, sync policy, fitness service client, dashboard merge) against
a running fitness service.

Usage:
    FITTRACK_JWT_SECRET=dev fittrack-simulate --user user-demo-001 --updates 5 --steps 500
    python -m fittrack.tracker.simulate --token <bearer> --interval 1
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import httpx

from fittrack.config import Settings, get_settings
from fittrack.middleware.bearer_auth import issue_token
from fittrack.tracker.auth import AuthSession
from fittrack.tracker.base import SensorKind
from fittrack.tracker.runtime import Tracker, build_tracker, configure_logging, log_view
from fittrack.tracker.sensors import ReplaySensor
from fittrack.tracker.store import InMemoryStateStore

logger = logging.getLogger("fittrack.tracker.simulate")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fittrack-simulate",
        description="Replay a step counter through the tracker and sync it to the fitness service.",
    )
    parser.add_argument("--user", default="user-demo-001", help="User id to track (default: user-demo-001)")
    parser.add_argument(
        "--token",
        default=None,
        help="Bearer token; signed locally from FITTRACK_JWT_SECRET when omitted",
    )
    parser.add_argument("--start", type=int, default=10_000, help="Counter value at the first reading")
    parser.add_argument("--updates", type=int, default=5, help="Readings after the first one")
    parser.add_argument("--steps", type=int, default=500, help="Steps added per reading")
    parser.add_argument("--interval", type=float, default=0.0, help="Seconds between readings")
    parser.add_argument(
        "--in-memory",
        action="store_true",
        help="Keep step state in memory instead of FITTRACK_STATE_DIR",
    )
    return parser


def counter_readings(start: int, updates: int, steps: int) -> list[int]:
    """Cumulative counter values: ``start`` then ``updates`` increments of ``steps``."""
    if updates < 0 or steps < 0:
        raise ValueError("updates and steps must be >= 0")
    return [start + i * steps for i in range(updates + 1)]


def _session(args: argparse.Namespace, settings: Settings) -> AuthSession:
    token = args.token
    if token is None and settings.jwt_secret:
        token = issue_token(args.user, settings)
    if token is None:
        logger.warning("No token and no FITTRACK_JWT_SECRET; pushes will be skipped")
    return AuthSession.with_token(args.user, token)


async def simulate(
    args: argparse.Namespace,
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> Tracker:
    """Replay the readings, push the final count, and log the merged dashboard.

    Returns:
        The tracker, stopped, with the final push in ``service.last_result``.
    """
    readings = counter_readings(args.start, args.updates, args.steps)
    tracker = build_tracker(
        _session(args, settings),
        counter_sensor=ReplaySensor(SensorKind.COUNTER, readings, interval=args.interval),
        store=InMemoryStateStore() if args.in_memory else None,
        settings=settings,
        http_client=http_client,
    )
    service = tracker.service

    await service.start()
    consumer = asyncio.create_task(service.run(), name="step-service")
    try:
        if tracker.reader is not None:
            await tracker.reader.run()
        await service.drain()
        result = await service.sync_now()
    finally:
        consumer.cancel()
        await asyncio.gather(consumer, return_exceptions=True)

    if result is not None and result.ok:
        logger.info("Final push of %d steps succeeded", result.stats.steps)
    elif result is not None:
        logger.error("Final push failed (%s): %s", result.status, result.error)

    log_view(await tracker.reconciler.refresh())
    return tracker


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    tracker = asyncio.run(simulate(args, settings))
    status = tracker.status()
    logger.info(
        "%s: %d steps on %s, last sync %s",
        status.user_id,
        status.steps_today,
        status.day,
        status.last_backend_sync_timestamp or "never",
    )
    result = tracker.service.last_result
    return 0 if result is not None and result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
