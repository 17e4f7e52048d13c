"""
Scheduled conflict scan.

Runs conflict detection for the given properties (all properties when none
are given), optionally followed by auto-resolution. Meant for cron or a
job runner; exits non-zero when any property scan failed.

    python scan_conflicts.py                    # every property
    python scan_conflicts.py 3 7 --auto-resolve
    python scan_conflicts.py --timeout 120 --workers 2
"""

import argparse
import logging
import sys

from sqlmodel import select

from hotel_pms.database import init_db, new_session
from hotel_pms.models.property import Property
from hotel_pms.services.auto_resolver import AutoResolver
from hotel_pms.services.conflict_detection import scan_properties

logger = logging.getLogger("scan_conflicts")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Detect booking conflicts for one or more properties")
    parser.add_argument("property_ids", nargs="*", type=int, help="Property IDs (default: all)")
    parser.add_argument("--auto-resolve", action="store_true", help="Run auto-resolution after detection")
    parser.add_argument("--timeout", type=float, default=None, help="Per-property deadline in seconds")
    parser.add_argument("--workers", type=int, default=None, help="Properties scanned in parallel")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    init_db()

    property_ids = args.property_ids
    if not property_ids:
        with new_session() as session:
            property_ids = list(session.exec(select(Property.id).order_by(Property.id)).all())

    results = scan_properties(property_ids, new_session, max_workers=args.workers, timeout_seconds=args.timeout)

    exit_code = 0
    for property_id, result in results.items():
        logger.info(
            "property=%s status=%s conflicts=%d failed=%s skipped=%s",
            property_id,
            result.status,
            len(result.conflicts),
            result.failed_detectors,
            result.skipped,
        )
        if result.status == "failed":
            exit_code = 1
            continue
        if args.auto_resolve:
            with new_session() as session:
                resolved = AutoResolver(session).auto_resolve_conflicts(property_id)
            logger.info("property=%s auto_resolved=%d", property_id, resolved.resolved_count)

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
