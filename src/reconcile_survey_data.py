"""
Survey Reconciliation Script
============================
Links survey responses to their employees by badge number and resyncs
the copied fields, then marks each employee's submission status.

Steps:
1. Fetch employees and survey_responses from the configured store.
2. Report orphans, shared badges, skipped rows and case-only matches.
3. Apply link repairs, then level (and optionally department) resyncs,
   then employee status repairs.
4. Re-fetch and verify nothing is left to repair.

Safe to re-run: a second run only retries what is still wrong.

Usage:
    python reconcile_survey_data.py --dry-run
    python reconcile_survey_data.py --store supabase --batch-size 50
    python reconcile_survey_data.py --json > result.json

Exit codes: 0 clean (or dry run), 1 repairs failed or still pending,
2 the store could not be read.
"""

import os
import sys
import json
import logging
import argparse
from pathlib import Path

# Setup Logging
logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PENDING = 1
EXIT_STORE_ERROR = 2


def setup_django():
    sys.path.insert(0, str(Path(__file__).resolve().parent))
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'core.settings')
    import django
    django.setup()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Reconcile survey responses with the employee roster.")
    parser.add_argument('--dry-run', action='store_true', default=None,
                        help="Compute and log the repair plan without applying it")
    parser.add_argument('--batch-size', type=int, default=None,
                        help="Repairs per batch for stores without transactions")
    parser.add_argument('--store', choices=['django', 'supabase'], default=None,
                        help="Record store (default: settings.RECONCILIATION['STORE'])")
    parser.add_argument('--sync-departments', action='store_true', default=None,
                        help="Also copy department from employee to response")
    parser.add_argument('--no-status-sync', dest='sync_status', action='store_false', default=None,
                        help="Leave employee submission status untouched")
    parser.add_argument('--json', action='store_true',
                        help="Print the run result as JSON on stdout")
    return parser.parse_args(argv)


def main(argv=None, store=None):
    from reconciliation.runner import ReconciliationConfig, run_reconciliation
    from reconciliation.stores import StoreError, build_store

    args = parse_args(argv)

    try:
        config = ReconciliationConfig.from_settings(
            dry_run=args.dry_run,
            batch_size=args.batch_size,
            sync_departments=args.sync_departments,
            sync_status=args.sync_status,
        )
    except ValueError as e:
        logger.error(f"✗ Invalid options: {e}")
        return EXIT_PENDING

    try:
        store = store or build_store(args.store)
        result = run_reconciliation(store, config)
    except StoreError as e:
        logger.error(f"✗ Store error: {e}")
        return EXIT_STORE_ERROR

    report = result.report
    for orphan in report.orphans:
        logger.warning(f"  ⚠ Orphaned response {orphan.id}: no employee with badge {orphan.badge_number}")
    for badge, employee_ids in report.duplicate_badges.items():
        logger.warning(f"  ⚠ Badge {badge} is shared by employees {', '.join(employee_ids)}")

    if args.json:
        print(json.dumps(result.as_dict(), indent=2, default=str))

    if result.succeeded:
        logger.info("✓ Reconciliation complete.")
        return EXIT_OK
    logger.error(f"✗ {len(result.failed)} repairs failed, {len(result.remaining)} still pending. Re-run to retry.")
    return EXIT_PENDING


if __name__ == '__main__':
    setup_django()
    sys.exit(main())
