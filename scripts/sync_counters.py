#!/usr/bin/env python3
"""
Counter Sync Script

Moves the `lead_id` / `sale_id` counters past the highest id already stored,
so that rows imported with explicit ids are never handed out again.
Run with the API stopped.

Usage:
    python scripts/sync_counters.py
    python scripts/sync_counters.py --dry-run
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.counter_repository import (
    LEAD_SEQUENCE,
    SALE_SEQUENCE,
    get_sequence_value,
    raise_sequence_floor,
)
from repositories.lead_repository import list_leads
from repositories.sale_repository import list_sales


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="Sync id counters with stored leads and sales")
    parser.add_argument("--dry-run", action="store_true", help="Show what would change without writing")
    args = parser.parse_args()

    try:
        highest = {
            LEAD_SEQUENCE: max((lead.lead_id for lead in list_leads()), default=0),
            SALE_SEQUENCE: max((sale.sale_id for sale in list_sales()), default=0),
        }

        for name, max_id in highest.items():
            current = get_sequence_value(name)
            print(f"{name}: counter={current}, highest stored id={max_id}")
            if current >= max_id:
                print("  up to date")
            elif args.dry_run:
                print(f"  would move counter to {max_id}")
            else:
                raise_sequence_floor(name, max_id)
                print(f"  ✓ counter moved to {max_id}")

        return 0

    except RuntimeError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
