#!/usr/bin/env python3
"""
Check IP addresses against MXToolbox blacklists from the terminal.

Usage:
    python scripts/check_ips.py 8.8.8.8 1.1.1.1

    # JSON output, with key usage afterwards:
    python scripts/check_ips.py 8.8.8.8 --json --stats

Requirements:
    - Set MXTOOLBOX_API_KEY_1..N (or MXTOOLBOX_API_KEY) in .env
"""
import sys
import json
import logging
import argparse
from dataclasses import asdict
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from blacklist_checker.config import settings
from blacklist_checker.services.blacklist_service import check_ips
from blacklist_checker.services.mxtoolbox_client import get_mxtoolbox_manager

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Check IPs against MXToolbox blacklists")
    parser.add_argument("ips", nargs="+", help="IP addresses to check")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument("--stats", action="store_true", help="Print per-key usage afterwards")
    parser.add_argument(
        "--delay",
        type=float,
        default=settings.check_delay_seconds,
        help="Seconds to wait between lookups",
    )
    args = parser.parse_args(argv)

    manager = get_mxtoolbox_manager(settings)
    if manager.get_total_keys() == 0:
        logger.error("No MXToolbox API keys configured; set MXTOOLBOX_API_KEY_1..N in .env")
        return 1

    try:
        results = check_ips(manager, args.ips, delay=args.delay)
        stats = manager.get_statistics() if args.stats else []
    finally:
        manager.close()

    if args.json:
        out = {"results": [asdict(r) for r in results]}
        if args.stats:
            out["keys"] = [asdict(s) for s in stats]
        print(json.dumps(out, indent=2))
    else:
        for r in results:
            if r.error:
                print(f"{r.ip:<40} ERROR   {r.error}")
            elif r.is_blacklisted:
                print(f"{r.ip:<40} LISTED  {', '.join(r.blacklists)}")
            else:
                print(f"{r.ip:<40} clean")
        for s in stats:
            state = f"blocked until {s.block_until}" if s.is_blocked else "active"
            print(f"  key {s.key_preview}: {s.request_count} requests, {state}")

    return 1 if any(r.error for r in results) else 0


if __name__ == "__main__":
    sys.exit(main())
