#!/usr/bin/env python3
"""
Balance Recompute Script

Recomputes every sale's remaining balance and status from the payment ledger
and writes the result back to Supabase. Use it to repair stale balances after
a failed sync or a manual data fix.

Usage:
    python recompute_balances.py
    python recompute_balances.py --status active
    python recompute_balances.py --sale-id 123e4567-e89b-12d3-a456-426614174000
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional
from uuid import UUID

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.sale import SaleStatus
from repositories.client import create_supabase_client
from repositories.payment_repository import SupabasePaymentsStore
from repositories.sale_repository import SupabaseSalesStore
from repositories.stores import SaleFilter
from services.balance_service import BalanceReconciliationEngine, ReconciliationReport


def print_report(report: ReconciliationReport) -> None:
    print("=" * 60)
    print("BALANCE RECOMPUTE SUMMARY")
    print("=" * 60)
    print(f"Sales synced:     {len(report.synced)}")
    print(f"Sales corrected:  {len(report.corrected)}")
    print(f"Sales failed:     {len(report.failures)}")

    for result in report.corrected:
        print(
            f"  {result.sale_id}: {result.previous_balance} ({result.previous_status.value})"
            f" -> {result.remaining_balance} ({result.status.value})"
        )
    for sale_id, message in report.failures.items():
        print(f"  FAILED {sale_id}: {message}")
    print("=" * 60)


async def run(status: Optional[SaleStatus], sale_id: Optional[UUID]) -> ReconciliationReport:
    client = await create_supabase_client()
    engine = BalanceReconciliationEngine(SupabaseSalesStore(client), SupabasePaymentsStore(client))

    if sale_id is not None:
        result = await engine.recompute_and_persist(sale_id)
        return ReconciliationReport(synced=[result])
    return await engine.recompute_all(SaleFilter(status=status))


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Recompute sale balances from the payment ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Recompute every sale
  python recompute_balances.py

  # Only sales currently marked active
  python recompute_balances.py --status active

  # A single sale
  python recompute_balances.py --sale-id 123e4567-e89b-12d3-a456-426614174000
        """
    )

    parser.add_argument(
        "--status",
        choices=[status.value for status in SaleStatus],
        help="Only recompute sales with this status"
    )

    parser.add_argument(
        "--sale-id",
        type=UUID,
        help="Recompute a single sale"
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every sync"
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        report = asyncio.run(
            run(SaleStatus(args.status) if args.status else None, args.sale_id)
        )
        print_report(report)
        return 0 if report.ok else 1

    except KeyboardInterrupt:
        print("\n\nRecompute interrupted by user")
        return 130

    except Exception as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
