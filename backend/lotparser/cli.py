#!/usr/bin/env python3
"""
Command-line entry point for the listing parser.

Usage:
    cd backend
    python -m lotparser.cli <listing-url>

Examples:
    python -m lotparser.cli https://www.copart.com/lot/41234567/...   # Parse a Copart lot
    python -m lotparser.cli --debug https://www.iaai.com/VehicleDetail/...
    python -m lotparser.cli --list                                  # List supported sites
"""

import argparse
import json
import sys

from api.config import settings
from api.logging_setup import configure_logging
from lotparser.config import get_site_summary
from lotparser.manager import build_orchestrator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Parse a Copart or IAAI listing URL')
    parser.add_argument('url', nargs='?', help='Listing URL')
    parser.add_argument('--list', action='store_true', help='List supported sites')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list:
        for site in get_site_summary():
            print(f"{site['key']:8} {site['name']:8} {site['host']:12} minter: {site['minter_script']}")
        return 0

    if not args.url:
        parser.error('a listing URL is required')

    configure_logging(settings, level='DEBUG' if args.debug else None)
    outcome = build_orchestrator(settings).run(args.url)
    print(json.dumps(outcome.to_dict(), ensure_ascii=False))
    return 0 if outcome.success else 1


if __name__ == '__main__':
    sys.exit(main())
