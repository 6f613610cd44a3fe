"""
Fetch -> reconcile -> repair -> verify cycle.

Safe to run repeatedly: the plan only ever sets fields to values taken
from the employee rows, so a second run after a successful one finds
nothing to do, and a run after a partial failure only retries what is
still wrong.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from django.conf import settings

from .engine import (
    EmployeeRecord,
    ReconciliationReport,
    RepairOp,
    ResponseRecord,
    build_report,
)
from .stores import StoreError

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationConfig:
    dry_run: bool = False
    batch_size: int = 100
    sync_departments: bool = False
    sync_status: bool = True

    def __post_init__(self):
        if int(self.batch_size) < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = int(self.batch_size)

    @classmethod
    def from_settings(cls, **overrides):
        """Defaults from settings.RECONCILIATION; None overrides are ignored."""
        config = getattr(settings, 'RECONCILIATION', {})
        values = {
            'dry_run': config.get('DRY_RUN', False),
            'batch_size': config.get('BATCH_SIZE', 100),
            'sync_departments': config.get('SYNC_DEPARTMENTS', False),
            'sync_status': config.get('SYNC_STATUS', True),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass
class RepairOutcome:
    op: RepairOp
    success: bool
    error: Optional[str] = None

    def as_dict(self):
        data = self.op.as_dict()
        data['success'] = self.success
        if self.error:
            data['error'] = self.error
        return data


@dataclass
class RunResult:
    config: ReconciliationConfig
    report: ReconciliationReport
    outcomes: List[RepairOutcome] = field(default_factory=list)
    verification: Optional[ReconciliationReport] = None

    @property
    def applied(self):
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self):
        return [o for o in self.outcomes if not o.success]

    @property
    def remaining(self):
        """Repairs still needed after this run."""
        if self.verification is not None:
            return self.verification.plan
        return self.report.plan

    @property
    def succeeded(self):
        if self.config.dry_run:
            return True
        return not self.failed and not self.remaining

    def as_dict(self):
        return {
            'dry_run': self.config.dry_run,
            'batch_size': self.config.batch_size,
            'succeeded': self.succeeded,
            'report': self.report.as_dict(),
            'applied': [o.as_dict() for o in self.applied],
            'failed': [o.as_dict() for o in self.failed],
            'remaining': [op.as_dict() for op in self.remaining],
            'verification': self.verification.summary() if self.verification else None,
        }


def fetch_records(store):
    """Load both tables from the store as engine records."""
    employees = [EmployeeRecord.from_row(row) for row in store.fetch_all('employees')]
    responses = [ResponseRecord.from_row(row) for row in store.fetch_all('survey_responses')]
    logger.info(f"Fetched {len(employees)} employees and {len(responses)} survey responses from {store.name}")
    return employees, responses


def reconcile(store, config=None):
    """Build a report for the store's current data without writing anything."""
    config = config or ReconciliationConfig.from_settings()
    employees, responses = fetch_records(store)
    return build_report(
        employees, responses,
        sync_departments=config.sync_departments,
        sync_status=config.sync_status,
    )


def _chunks(items, size):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _group_positions(batch):
    """Positions of ops in a batch that set the same value on the same field."""
    groups = {}
    for position, op in enumerate(batch):
        groups.setdefault((op.table, op.field, op.new_value), []).append(position)
    return list(groups.values())


def _apply_one(store, op):
    try:
        store.update(op.table, op.target_id, {op.field: op.new_value})
    except StoreError as e:
        logger.error(f"  ✗ {op.table} {op.target_id}: {op.field} -> {op.new_value!r} failed: {e}")
        return RepairOutcome(op, False, str(e))
    logger.info(f"  ✓ {op.table} {op.target_id}: {op.field} {op.old_value!r} -> {op.new_value!r}")
    return RepairOutcome(op, True)


def _apply_group(store, ops):
    """Write ops sharing (table, field, new_value) with a single store call."""
    if len(ops) == 1:
        return [_apply_one(store, ops[0])]

    first = ops[0]
    try:
        failures = store.update_many(
            first.table, [op.target_id for op in ops], {first.field: first.new_value},
        )
    except StoreError as e:
        logger.error(f"  ✗ {first.table} x{len(ops)}: {first.field} -> {first.new_value!r} failed: {e}")
        return [RepairOutcome(op, False, str(e)) for op in ops]

    outcomes = []
    for op in ops:
        error = failures.get(op.target_id)
        if error:
            logger.error(f"  ✗ {op.table} {op.target_id}: {op.field} -> {op.new_value!r} failed: {error}")
            outcomes.append(RepairOutcome(op, False, error))
        else:
            logger.info(f"  ✓ {op.table} {op.target_id}: {op.field} {op.old_value!r} -> {op.new_value!r}")
            outcomes.append(RepairOutcome(op, True))
    return outcomes


def apply_plan(store, plan, batch_size=100):
    """
    Apply repair ops in plan order and report every op's outcome.

    Stores that support transactions get the whole plan atomically:
    either every op is applied or none is. Other stores get the plan in
    batches of `batch_size`. Within a batch, ops that set the same value
    on the same field are written with one `update_many` call, and a
    failing write does not stop the rest. Outcomes are returned in plan
    order.
    """
    if not plan:
        return []

    if store.supports_atomic:
        outcomes = []
        try:
            with store.atomic():
                for op in plan:
                    store.update(op.table, op.target_id, {op.field: op.new_value})
                    outcomes.append(RepairOutcome(op, True))
        except StoreError as e:
            logger.error(f"  ✗ Atomic repair rolled back after {len(outcomes)} of {len(plan)} ops: {e}")
            return [RepairOutcome(op, False, str(e)) for op in plan]
        logger.info(f"  ✓ Applied {len(plan)} repairs in one transaction")
        return outcomes

    outcomes = []
    batches = list(_chunks(plan, batch_size))
    for number, batch in enumerate(batches, start=1):
        groups = _group_positions(batch)
        logger.info(f"Batch {number}/{len(batches)}: {len(batch)} repairs in {len(groups)} writes")
        batch_outcomes = [None] * len(batch)
        for positions in groups:
            ops = [batch[position] for position in positions]
            for position, outcome in zip(positions, _apply_group(store, ops)):
                batch_outcomes[position] = outcome
        outcomes.extend(batch_outcomes)
    return outcomes


def run_reconciliation(store, config=None):
    """
    Run the full cycle against a store.

    StoreError while fetching propagates to the caller. Errors while
    applying are collected per op in the result.
    """
    config = config or ReconciliationConfig.from_settings()

    logger.info("=" * 60)
    logger.info(f"SURVEY RECONCILIATION ({'DRY RUN' if config.dry_run else 'LIVE'})")
    logger.info("=" * 60)

    report = reconcile(store, config)
    summary = report.summary()
    logger.info(
        f"Matched {summary['matched']}/{summary['responses']} responses | "
        f"orphans: {summary['orphans']} | unlinked: {summary['unlinked']} | "
        f"level drift: {summary['level_drift']} | status drift: {summary['status_drift']} | "
        f"ambiguous: {summary['ambiguous']} | skipped: {summary['skipped']}"
    )
    result = RunResult(config=config, report=report)

    if not report.plan:
        logger.info("✓ Nothing to repair.")
        return result

    if config.dry_run:
        logger.info(f"Dry run: {len(report.plan)} repairs planned, none applied.")
        for op in report.plan:
            logger.info(f"  → {op.table} {op.target_id}: {op.field} {op.old_value!r} -> {op.new_value!r}")
        return result

    result.outcomes = apply_plan(store, report.plan, config.batch_size)

    # Re-read from the store so verification sees what readers will see
    result.verification = reconcile(store, config)
    if result.verification.plan:
        logger.warning(f"⚠ {len(result.verification.plan)} repairs still pending after this run")
    logger.info(
        f"Summary: Planned: {len(report.plan)}, Applied: {len(result.applied)}, "
        f"Failed: {len(result.failed)}, Remaining: {len(result.remaining)}"
    )
    return result
