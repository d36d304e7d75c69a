"""
Run knowledge gap analysis from the command line (e.g. a weekly cron job).

Run with: uv run python scripts/run_gap_analysis.py --period-days 7
"""

import argparse
import asyncio
import sys

from app.core.config import get_settings
from app.db.supabase_store import SupabaseStore
from app.graphs.gap_analysis_graph import run_gap_analysis


async def main(period_days: int) -> int:
    store = SupabaseStore.open()
    try:
        result = await run_gap_analysis(store, period_days=period_days)
    except Exception as e:
        print(f"✗ Gap analysis failed: {e}")
        return 1
    finally:
        store.close()

    print(f"✓ Run {result.run_id}: {len(result.gaps)} gaps from {result.total_signals} signals")
    for gap in result.gaps:
        print(f"  [{gap.severity.value}] {gap.title} ({gap.signal_count} signals)")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Mine recurring knowledge gaps")
    parser.add_argument(
        "--period-days",
        type=int,
        default=get_settings().GAP_DEFAULT_PERIOD_DAYS,
        help="Analysis window ending now",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.period_days)))
