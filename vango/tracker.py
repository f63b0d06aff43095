"""
Daemon run on the transporter's device: reports its position for one booking
until interrupted.
"""

from __future__ import annotations

import argparse
import logging
import time
from typing import Optional, Sequence

from vango.config import get_settings
from vango.dependencies import get_change_feed, get_db_client
from vango.location import LocationService
from vango.positioning import FixedPositionSource, HttpPositionSource, PositionSource

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="VANGO transporter location tracker")
    parser.add_argument("booking_id", help="Booking being served")
    parser.add_argument("transporter_id", help="Transporter reporting the position")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--position-url",
        type=str,
        help="HTTP endpoint returning the device position as JSON",
    )
    source.add_argument(
        "--fixed",
        nargs=2,
        type=float,
        metavar=("LAT", "LNG"),
        help="Report a fixed position (testing)",
    )
    parser.add_argument(
        "--interval-seconds",
        type=float,
        default=None,
        help="Seconds between reports (default from settings)",
    )
    parser.add_argument(
        "--duration-seconds",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Report a single position and exit",
    )
    return parser


def _position_source(args: argparse.Namespace) -> PositionSource:
    if args.position_url:
        return HttpPositionSource(url=args.position_url)
    lat, lng = args.fixed
    return FixedPositionSource(latitude=lat, longitude=lng)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    settings = get_settings()
    interval = args.interval_seconds
    if interval is None:
        interval = settings.location_poll_interval_seconds
    service = LocationService(
        get_db_client(),
        get_change_feed(),
        _position_source(args),
        poll_interval_seconds=interval,
        geolocation_timeout_seconds=settings.geolocation_timeout_seconds,
    )
    service.start_tracking(args.booking_id, args.transporter_id)

    if args.once:
        try:
            position = service.get_current_position()
            if not position:
                logger.error("No position available")
                return 1
            result = service.update_location(
                args.booking_id,
                args.transporter_id,
                position.latitude,
                position.longitude,
            )
            return 0 if result.is_ok else 1
        finally:
            service.close()

    handle = service.start_continuous_tracking(
        args.booking_id,
        args.transporter_id,
        on_update=lambda p: logger.info("Reported %.6f, %.6f", p.latitude, p.longitude),
    )
    started = time.monotonic()
    try:
        while handle.running:
            if (
                args.duration_seconds is not None
                and time.monotonic() - started >= args.duration_seconds
            ):
                break
            time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        service.stop_continuous_tracking(handle, wait=settings.geolocation_timeout_seconds)
        service.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
