#!/usr/bin/env python3
"""Run an air-monitor indicator against an MQTT broker and print what it shows.

Every presentation change is printed as the panel label followed by the
menu rows, which makes it easy to watch polls, signals and presence
transitions without a desktop shell.

Broker and variant come from ``AIRMON_*`` environment variables; the flags
below override them.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyairmon import (  # noqa: E402
    AirMonConfigError,
    IndicatorConfig,
    IndicatorVariant,
    MetricLine,
    PresentationState,
    create_indicator,
    mqtt_client_factory,
)

_LOG = logging.getLogger("watch_indicator")


class ConsoleRenderer:
    def __init__(self, *, show_rows: bool = True) -> None:
        self._show_rows = show_rows
        self._last: PresentationState | None = None

    def render(self, state: PresentationState) -> None:
        if state == self._last:
            return
        self._last = state
        hidden = "" if state.visible else " (hidden)"
        print(f"[{state.severity.value}] {state.summary_text}{hidden}")
        if not self._show_rows:
            return
        for row in state.menu_rows:
            indent = "    " if isinstance(row, MetricLine) else "  "
            print(f"{indent}{row.text}")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Watch an air-monitor indicator on the console.",
    )
    parser.add_argument(
        "--variant",
        choices=[variant.value for variant in IndicatorVariant],
        default=None,
        help="Remote interface to mirror (default: AIRMON_VARIANT or multi).",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="MQTT broker host (default: AIRMON_MQTT_HOST or localhost).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="MQTT broker port.",
    )
    parser.add_argument(
        "--topic-root",
        default=None,
        help="Topic namespace of the service.",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Poll interval in seconds (default depends on the variant).",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--summary-only",
        action="store_true",
        help="Print only the panel label, not the menu rows.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _build_config(args: argparse.Namespace) -> IndicatorConfig:
    overrides: dict[str, object] = {}
    if args.variant is not None:
        overrides["variant"] = IndicatorVariant(args.variant)
    if args.topic_root is not None:
        overrides["topic_root"] = args.topic_root
    if args.interval is not None:
        overrides["poll_interval"] = args.interval
    mqtt: dict[str, object] = {}
    if args.host is not None:
        mqtt["host"] = args.host
    if args.port is not None:
        mqtt["port"] = args.port
    if mqtt:
        overrides["mqtt"] = mqtt
    return IndicatorConfig.from_env(**overrides)


async def _run(config: IndicatorConfig, *, duration: int, show_rows: bool) -> None:
    indicator = create_indicator(
        config,
        mqtt_client_factory(config),
        renderer=ConsoleRenderer(show_rows=show_rows),
    )
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    await indicator.start()
    _LOG.info("Watching %s indicator on %s", config.variant.value, config.topic_root)
    try:
        if duration > 0:
            try:
                await asyncio.wait_for(stop.wait(), timeout=duration)
            except TimeoutError:
                pass
        else:
            await stop.wait()
    finally:
        await indicator.stop()


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _build_config(args)
    except AirMonConfigError as exc:
        print(f"[watch] Invalid configuration: {exc}", file=sys.stderr)
        return 2

    asyncio.run(_run(config, duration=args.duration, show_rows=not args.summary_only))
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
