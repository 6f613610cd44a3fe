"""
Survey Data Export Script
=========================
Dumps the employees and survey_responses tables from the configured
store into JSON files, one per table. Take one before a live
reconciliation run so repairs can be compared or reverted by hand.

Usage:
    python export_survey_data.py backups/2024-03-01
    python export_survey_data.py backups/ --store supabase
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


def setup_django():
    sys.path.insert(0, str(Path(__file__).resolve().parent))
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'core.settings')
    import django
    django.setup()


def export_tables(store, target_dir):
    """Write <table>.json for every store table; returns {table: row_count}."""
    from reconciliation.stores import TABLES

    target = Path(target_dir)
    target.mkdir(parents=True, exist_ok=True)

    counts = {}
    for table in TABLES:
        rows = store.fetch_all(table)
        path = target / f"{table}.json"
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(rows, f, indent=2, ensure_ascii=False, default=str)
        counts[table] = len(rows)
        logger.info(f"  ✓ {table}: {len(rows)} rows -> {path}")
    return counts


def main(argv=None, store=None):
    from reconciliation.stores import StoreError, build_store

    parser = argparse.ArgumentParser(description="Export survey tables to JSON.")
    parser.add_argument('target_dir', help="Directory to write the JSON files into")
    parser.add_argument('--store', choices=['django', 'supabase'], default=None)
    args = parser.parse_args(argv)

    try:
        store = store or build_store(args.store)
        counts = export_tables(store, args.target_dir)
    except StoreError as e:
        logger.error(f"✗ Export failed: {e}")
        return 2

    logger.info(f"Summary: {', '.join(f'{t}: {n}' for t, n in counts.items())}")
    return 0


if __name__ == '__main__':
    setup_django()
    sys.exit(main())
