#!/usr/bin/env python3
"""
Delete the whole sales history (lines, then headers) ahead of a full reimport.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from backoffice.store import StoreError, open_store
from backoffice.utils.config import load_config

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Delete every sale and sale line.")
    parser.add_argument("--config", type=Path, help="Path to CONFIG.yaml")
    parser.add_argument("--yes", action="store_true", help="Confirm the deletion. WARNING: destructive.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    if not args.yes:
        print("Refusing to delete the sales history without --yes.", file=sys.stderr)
        return 2

    config = load_config(args.config) if args.config else load_config()
    try:
        with open_store(config) as store:
            store.delete_all_sales()
    except (StoreError, ValueError) as exc:
        logger.error("Could not clear sales: %s", exc)
        return 1

    print("Sales history cleared; ready for a fresh import.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
