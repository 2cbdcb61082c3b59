#!/usr/bin/env python3
"""Run the tracker against the demo feed (or an MQTT broker) and print state.

Configuration comes from ``EV04_*`` environment variables; the flags below
override them.

Examples::

    python scripts/run_demo.py --duration 20
    EV04_FEED_MODE=mqtt EV04_MQTT_HOST=localhost python scripts/run_demo.py --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyev04 import RegistryChange, TrackerClient, TrackerConfig, TrackerError  # noqa: E402
from pyev04.state.registry import DeviceRegistry  # noqa: E402


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the pyev04 tracker demo")
    parser.add_argument("--duration", type=float, default=10.0, help="Seconds to run (default: 10)")
    parser.add_argument("--seed", type=int, default=None, help="Demo feed seed")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between demo emissions")
    parser.add_argument("--json", action="store_true", help="Print full snapshots as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable DEBUG logging")
    return parser.parse_args(argv)


def _print_state(registry: DeviceRegistry, change: RegistryChange, as_json: bool) -> None:
    if as_json:
        print(json.dumps(registry.snapshot().model_dump(mode="json", by_alias=True)))
        return
    device = registry.get(change.device_id)
    if device is None:
        print(f"[{change.kind}] {change.device_id}")
        return
    sos = " SOS" if device.sos_active else ""
    print(
        f"[{change.kind}] {device.name:<10} "
        f"{device.position.latitude:.5f}, {device.position.longitude:.5f} "
        f"trail={len(device.trail)}{sos}"
    )
    if registry.any_sos_active():
        names = ", ".join(d.name for d in registry.sos_devices())
        print(f"  !! SOS from: {names}")


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.interval is not None:
        overrides["feed_interval"] = args.interval
    config = TrackerConfig.from_env(**overrides)

    client = TrackerClient(config)
    client.registry.changed.connect(lambda change: _print_state(client.registry, change, args.json))
    try:
        async with client:
            await asyncio.sleep(args.duration)
    except TrackerError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(f"dropped updates: {client.registry.dropped_updates}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
