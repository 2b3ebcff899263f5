#!/usr/bin/env python3
"""
Check registration scores and participant totals against the stored results.

Reports every drifted value; with --fix the stored values are rewritten in
one transaction, and --refresh-leaderboard appends a fresh snapshot
afterwards.

Usage:
    python reconcile_scores.py
    python reconcile_scores.py --fix --refresh-leaderboard
"""

import argparse
import asyncio
import sys

from festival.config import Config
from festival.database.database import Database
from festival.services.leaderboard import LeaderboardService
from festival.services.reconciliation import ScoreReconciliationService
from festival.utils.exceptions import FestivalError
from festival.utils.logger import setup_logger


async def main(fix: bool, refresh_leaderboard: bool) -> int:
    Config.validate()
    zone = Config.get_zone()
    logger = setup_logger("reconcile_scores", zone)
    db = Database(zone=zone)
    await db.initialize()

    try:
        service = ScoreReconciliationService(db.session_factory)
        report = await service.reconcile(fix=fix)

        print(f"Checked {report.registrations_checked} registrations and {report.users_checked} users")
        for drift in report.drifts:
            print(f"  {drift}")
        for result_id, registration_id, position in report.unscorable:
            print(f"  result {result_id}: registration {registration_id} has unscored position '{position}'")

        if report.is_consistent:
            print("All scores consistent")
        elif report.fixed:
            print(f"Fixed {len(report.drifts)} drifted values")
        else:
            print(f"{len(report.drifts)} drifted values (run with --fix to repair)")

        if refresh_leaderboard:
            snapshot = await LeaderboardService(db.session_factory).recompute_leaderboard()
            print(f"Leaderboard snapshot {snapshot.id} created")

        return 0 if report.is_consistent or report.fixed else 1
    except FestivalError as e:
        logger.error(f"Reconciliation failed: {e}")
        return 2
    finally:
        await db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Reconcile stored scores with recorded results')
    parser.add_argument('--fix', action='store_true', help='rewrite drifted scores')
    parser.add_argument('--refresh-leaderboard', action='store_true',
                        help='append a new leaderboard snapshot when done')
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.fix, args.refresh_leaderboard)))
