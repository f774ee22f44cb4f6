#!/usr/bin/env python3
"""Run the broadcast scheduler against seeded demo data.

Seeds an in-memory store with the demo facilities, connects one console
channel subscribed to every facility, runs N broadcast cycles and prints
each ``parking-update`` event plus a forecast per facility at the end.

Examples::

    python scripts/simulate.py --cycles 3 --period 0.5
    python scripts/simulate.py --seed 7 --scoped --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
import sys
from pathlib import Path
from typing import Any

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from parkwatch import (  # noqa: E402
    ALL_TOPIC,
    InMemoryRecordStore,
    LocalBroadcaster,
    ParkingService,
    ParkwatchConfig,
    SubscriptionRegistry,
    seed_demo_facilities,
)
from parkwatch.models._base import utcnow  # noqa: E402

CONSOLE_CHANNEL = "console"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--cycles", type=int, default=3, help="Broadcast cycles to run (default: 3)")
    parser.add_argument("--period", type=float, default=1.0, help="Seconds between cycles (default: 1.0)")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible drift")
    parser.add_argument("--scoped", action="store_true", help="Emit facility-scoped events")
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG logging")
    return parser.parse_args(argv)


async def _deliver(channel: str, event: str, payload: dict[str, Any]) -> None:
    print(f"[{channel}] {event} {json.dumps(payload)}")


async def _main(args: argparse.Namespace) -> int:
    config = ParkwatchConfig.from_env(
        broadcast_period=args.period,
        scoped_broadcast=args.scoped,
        mqtt_enabled=False,
    )
    store = InMemoryRecordStore()
    registry = SubscriptionRegistry()
    registry.subscribe(CONSOLE_CHANNEL, ALL_TOPIC)
    registry.connect(CONSOLE_CHANNEL)
    broadcaster = LocalBroadcaster(registry, _deliver)

    async with ParkingService(config, store, broadcaster=broadcaster) as service:
        await seed_demo_facilities(store, now=utcnow(), tz=service.tz)
        scheduler = service.start_broadcasting(rng=random.Random(args.seed))
        while scheduler.cycles_completed < args.cycles:
            await asyncio.sleep(args.period / 4)
        await service.stop_broadcasting()

        stats = await service.stats()
        print(json.dumps(stats.to_wire(), indent=2))
        for facility in await service.list_tracked():
            print(f"{facility.name}: {facility.available_spots}/{facility.total_spots} "
                  f"-> {facility.predicted_availability} ({facility.confidence}%)")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_main(args))


if __name__ == "__main__":
    raise SystemExit(main())
