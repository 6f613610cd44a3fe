"""
Reconciliation engine for employees and survey responses.

The two tables are related only by badge number. Survey responses carry
a denormalized copy of the employee's level/department and an optional
employee_id reference that drifts over time (null, stale, or pointing at
the wrong row). This module detects that drift and turns it into an
ordered repair plan.

Everything here is a pure function over already-fetched records: no
store access, no shared state. Records that cannot be matched (missing
badge number or id) are excluded and reported, never raised.
"""
import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

EMPLOYEES_TABLE = 'employees'
RESPONSES_TABLE = 'survey_responses'

STATUS_SUBMITTED = 'Submitted'
STATUS_NOT_SUBMITTED = 'Not Submitted'

LEVEL_MANAGERIAL = 'Managerial'
LEVEL_NON_MANAGERIAL = 'Non Managerial'
_LEVEL_KEYS = {
    'managerial': LEVEL_MANAGERIAL,
    'nonmanagerial': LEVEL_NON_MANAGERIAL,
}

# Store column -> ResponseRecord attribute
RESPONSE_FIELD_ATTRS = {
    'employee_id': 'employee_ref',
    'level': 'level',
    'department': 'department',
}


def normalize_badge(value):
    """Matching key for a badge number: stripped and uppercased, or None."""
    if value is None:
        return None
    key = str(value).strip().upper()
    return key or None


def normalize_level(value):
    """
    Canonical level label, or None when unrecognized.

    The data holds 'Non Managerial', 'Non-Managerial' and 'NonManagerial'
    for the same level.
    """
    if not value:
        return None
    return _LEVEL_KEYS.get(re.sub(r'[^a-z]', '', str(value).lower()))


def _as_id(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class EmployeeRecord:
    id: Optional[str]
    badge_number: Optional[str]
    name: Optional[str] = None
    department: Optional[str] = None
    level: Optional[str] = None
    status: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        return cls(
            id=_as_id(row.get('id')),
            badge_number=row.get('id_badge_number'),
            name=row.get('name'),
            department=row.get('department'),
            level=row.get('level'),
            status=row.get('status'),
            email=row.get('email'),
        )


@dataclass(frozen=True)
class ResponseRecord:
    id: Optional[str]
    badge_number: Optional[str]
    employee_ref: Optional[str] = None
    name: Optional[str] = None
    department: Optional[str] = None
    level: Optional[str] = None
    created_at: Optional[str] = None
    row: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_row(cls, row):
        return cls(
            id=_as_id(row.get('id')),
            badge_number=row.get('id_badge_number'),
            employee_ref=_as_id(row.get('employee_id')),
            name=row.get('name'),
            department=row.get('department'),
            level=row.get('level'),
            created_at=row.get('created_at'),
            row=dict(row),
        )


@dataclass(frozen=True)
class RepairOp:
    """A single idempotent `update <table> set <field>=<new_value> where id=<target_id>`."""
    table: str
    target_id: str
    field: str
    new_value: object
    old_value: object = field(default=None, compare=False)

    def as_dict(self):
        return {
            'table': self.table,
            'target_id': self.target_id,
            'field': self.field,
            'new_value': self.new_value,
            'old_value': self.old_value,
        }


@dataclass(frozen=True)
class SkippedRecord:
    table: str
    record_id: Optional[str]
    reason: str

    def as_dict(self):
        return {'table': self.table, 'record_id': self.record_id, 'reason': self.reason}


@dataclass(frozen=True)
class AmbiguousMatch:
    response: ResponseRecord
    badge_number: str
    employee_ids: Tuple[str, ...]

    def as_dict(self):
        return {
            'response_id': self.response.id,
            'badge_number': self.badge_number,
            'employee_ids': list(self.employee_ids),
        }


@dataclass(frozen=True)
class CaseMismatch:
    response: ResponseRecord
    employee: EmployeeRecord

    def as_dict(self):
        return {
            'response_id': self.response.id,
            'response_badge_number': self.response.badge_number,
            'employee_id': self.employee.id,
            'employee_badge_number': self.employee.badge_number,
        }


@dataclass(frozen=True)
class UnlinkedResponse:
    response: ResponseRecord
    matched_employee: EmployeeRecord

    def as_dict(self):
        return {
            'response_id': self.response.id,
            'badge_number': self.response.badge_number,
            'current_employee_id': self.response.employee_ref,
            'correct_employee_id': self.matched_employee.id,
        }


@dataclass(frozen=True)
class FieldDrift:
    """A response whose denormalized copy disagrees with its employee."""
    response: ResponseRecord
    employee: EmployeeRecord
    field: str
    current_value: object
    correct_value: object

    @property
    def current_level(self):
        return self.current_value

    @property
    def correct_level(self):
        return self.correct_value

    def as_dict(self):
        return {
            'response_id': self.response.id,
            'badge_number': self.response.badge_number,
            'field': self.field,
            'current_value': self.current_value,
            'correct_value': self.correct_value,
        }


@dataclass(frozen=True)
class StatusDrift:
    employee: EmployeeRecord
    current_status: Optional[str]
    correct_status: str

    def as_dict(self):
        return {
            'employee_id': self.employee.id,
            'badge_number': self.employee.badge_number,
            'current_status': self.current_status,
            'correct_status': self.correct_status,
        }


@dataclass
class MatchResult:
    """Every well-formed response ends up in exactly one of matched/orphans/ambiguous."""
    matched: List[Tuple[ResponseRecord, EmployeeRecord]] = field(default_factory=list)
    orphans: List[ResponseRecord] = field(default_factory=list)
    ambiguous: List[AmbiguousMatch] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)
    case_mismatches: List[CaseMismatch] = field(default_factory=list)
    duplicate_badges: dict = field(default_factory=dict)


def index_employees(employees):
    """
    Group employees by normalized badge number.

    Returns (index, skipped) where index is an ordered mapping of
    badge key -> [EmployeeRecord, ...].
    """
    index = OrderedDict()
    skipped = []
    for employee in employees:
        if not employee.id:
            skipped.append(SkippedRecord(EMPLOYEES_TABLE, None, 'missing id'))
            continue
        key = normalize_badge(employee.badge_number)
        if key is None:
            skipped.append(SkippedRecord(EMPLOYEES_TABLE, employee.id, 'missing id_badge_number'))
            continue
        index.setdefault(key, []).append(employee)
    return index, skipped


def match_responses(employees, responses):
    """Match each response to its employee by normalized badge number."""
    index, skipped = index_employees(employees)
    result = MatchResult(skipped=skipped)
    result.duplicate_badges = OrderedDict(
        (key, tuple(e.id for e in group)) for key, group in index.items() if len(group) > 1
    )

    for response in responses:
        if not response.id:
            result.skipped.append(SkippedRecord(RESPONSES_TABLE, None, 'missing id'))
            continue
        key = normalize_badge(response.badge_number)
        if key is None:
            result.skipped.append(SkippedRecord(RESPONSES_TABLE, response.id, 'missing id_badge_number'))
            continue

        candidates = index.get(key)
        if not candidates:
            result.orphans.append(response)
        elif len(candidates) > 1:
            result.ambiguous.append(
                AmbiguousMatch(response, key, tuple(e.id for e in candidates))
            )
        else:
            employee = candidates[0]
            result.matched.append((response, employee))
            if str(response.badge_number).strip() != str(employee.badge_number).strip():
                result.case_mismatches.append(CaseMismatch(response, employee))
    return result


def find_orphaned_responses(employees, responses):
    """Responses whose badge number matches no employee, in input order."""
    return list(match_responses(employees, responses).orphans)


def _find_unlinked(match):
    return [
        UnlinkedResponse(response, employee)
        for response, employee in match.matched
        if response.employee_ref != employee.id
    ]


def find_unlinked_responses(employees, responses):
    """Matched responses whose employee_id is null or points at the wrong employee."""
    return _find_unlinked(match_responses(employees, responses))


def _find_drift(match, attr):
    drift = []
    for response, employee in match.matched:
        correct = getattr(employee, attr)
        if not correct:
            # Employee is the source of truth; nothing to copy from
            continue
        current = getattr(response, attr)
        if current != correct:
            drift.append(FieldDrift(response, employee, attr, current, correct))
    return drift


def find_level_drift(employees, responses):
    """Matched responses whose level differs from their employee's level."""
    return _find_drift(match_responses(employees, responses), 'level')


def find_department_drift(employees, responses):
    """Matched responses whose department differs from their employee's department."""
    return _find_drift(match_responses(employees, responses), 'department')


def _find_status_drift(employees, match):
    submitted_ids = {employee.id for _, employee in match.matched}
    shared = {badge for badge in match.duplicate_badges}
    drift = []
    for employee in employees:
        key = normalize_badge(employee.badge_number)
        if not employee.id or key is None or key in shared:
            continue
        correct = STATUS_SUBMITTED if employee.id in submitted_ids else STATUS_NOT_SUBMITTED
        if employee.status != correct:
            drift.append(StatusDrift(employee, employee.status, correct))
    return drift


def find_status_drift(employees, responses):
    """Employees whose submission status disagrees with the responses on record."""
    return _find_status_drift(employees, match_responses(employees, responses))


def _plan_from_match(match, sync_departments=False):
    plan = []
    for item in _find_unlinked(match):
        plan.append(RepairOp(
            RESPONSES_TABLE, item.response.id, 'employee_id',
            item.matched_employee.id, old_value=item.response.employee_ref,
        ))
    for drift in _find_drift(match, 'level'):
        plan.append(RepairOp(
            RESPONSES_TABLE, drift.response.id, 'level',
            drift.correct_value, old_value=drift.current_value,
        ))
    if sync_departments:
        for drift in _find_drift(match, 'department'):
            plan.append(RepairOp(
                RESPONSES_TABLE, drift.response.id, 'department',
                drift.correct_value, old_value=drift.current_value,
            ))
    return plan


def build_repair_plan(employees, responses, sync_departments=False):
    """
    Ordered survey_responses repairs: employee links first, then level
    resyncs (then department resyncs when requested).

    Every op sets a field to a value derived from the employee row, so
    applying the plan and planning again yields an empty plan.
    """
    return _plan_from_match(match_responses(employees, responses), sync_departments)


def build_status_plan(employees, responses):
    """Employee status repairs, applied after all response repairs."""
    return [
        RepairOp(EMPLOYEES_TABLE, drift.employee.id, 'status',
                 drift.correct_status, old_value=drift.current_status)
        for drift in find_status_drift(employees, responses)
    ]


def apply_repairs(records, plan):
    """
    Apply a plan to in-memory records and return the updated list.

    Ops for the other table are ignored, so the same plan can be applied
    to the employee list and the response list separately.
    """
    if records and isinstance(records[0], EmployeeRecord):
        table, attrs = EMPLOYEES_TABLE, {'status': 'status'}
    else:
        table, attrs = RESPONSES_TABLE, RESPONSE_FIELD_ATTRS

    changes = {}
    for op in plan:
        if op.table != table or op.field not in attrs:
            continue
        changes.setdefault(op.target_id, {})[attrs[op.field]] = op.new_value

    return [
        replace(record, **changes[record.id]) if record.id in changes else record
        for record in records
    ]


def _rate(submitted, total):
    if not total:
        return None
    return submitted / total


@dataclass(frozen=True)
class LevelAnalytics:
    """Completion counts per level, taken from the employee side of the match."""
    managerial_submitted: int = 0
    managerial_total: int = 0
    non_managerial_submitted: int = 0
    non_managerial_total: int = 0
    unclassified_total: int = 0

    @property
    def managerial_rate(self):
        return _rate(self.managerial_submitted, self.managerial_total)

    @property
    def non_managerial_rate(self):
        return _rate(self.non_managerial_submitted, self.non_managerial_total)

    @property
    def submitted_total(self):
        return self.managerial_submitted + self.non_managerial_submitted

    @property
    def employees_total(self):
        return self.managerial_total + self.non_managerial_total + self.unclassified_total

    @property
    def overall_rate(self):
        return _rate(self.submitted_total, self.managerial_total + self.non_managerial_total)

    def as_dict(self):
        return {
            'managerial_submitted': self.managerial_submitted,
            'managerial_total': self.managerial_total,
            'managerial_rate': self.managerial_rate,
            'non_managerial_submitted': self.non_managerial_submitted,
            'non_managerial_total': self.non_managerial_total,
            'non_managerial_rate': self.non_managerial_rate,
            'unclassified_total': self.unclassified_total,
            'overall_rate': self.overall_rate,
        }


def compute_level_analytics(employees, responses):
    """
    Count submitting employees and total employees per level.

    Responses are bucketed by their matched employee's level, not by the
    response's own copy, so the numbers already reflect a repaired link.
    An employee with several responses counts once, which keeps every
    rate within [0, 1]. A level without employees has rate None.
    """
    match = match_responses(employees, responses)
    submitted_ids = {employee.id for _, employee in match.matched}

    counts = {
        LEVEL_MANAGERIAL: [0, 0],
        LEVEL_NON_MANAGERIAL: [0, 0],
    }
    unclassified = 0
    for employee in employees:
        if not employee.id or normalize_badge(employee.badge_number) is None:
            continue
        level = normalize_level(employee.level)
        if level is None:
            unclassified += 1
            continue
        counts[level][1] += 1
        if employee.id in submitted_ids:
            counts[level][0] += 1

    return LevelAnalytics(
        managerial_submitted=counts[LEVEL_MANAGERIAL][0],
        managerial_total=counts[LEVEL_MANAGERIAL][1],
        non_managerial_submitted=counts[LEVEL_NON_MANAGERIAL][0],
        non_managerial_total=counts[LEVEL_NON_MANAGERIAL][1],
        unclassified_total=unclassified,
    )


@dataclass
class ReconciliationReport:
    employees_total: int
    responses_total: int
    matched_total: int
    orphans: List[ResponseRecord]
    unlinked: List[UnlinkedResponse]
    level_drift: List[FieldDrift]
    department_drift: List[FieldDrift]
    status_drift: List[StatusDrift]
    ambiguous: List[AmbiguousMatch]
    skipped: List[SkippedRecord]
    case_mismatches: List[CaseMismatch]
    duplicate_badges: dict
    analytics: LevelAnalytics
    plan: List[RepairOp]

    @property
    def is_clean(self):
        """True when nothing is left that the plan could fix."""
        return not self.plan

    @property
    def needs_review(self):
        """Defects that need a human: orphans, shared badges, bad rows, case-only matches."""
        return bool(self.orphans or self.ambiguous or self.skipped or self.case_mismatches)

    def summary(self):
        return {
            'employees': self.employees_total,
            'responses': self.responses_total,
            'matched': self.matched_total,
            'orphans': len(self.orphans),
            'unlinked': len(self.unlinked),
            'level_drift': len(self.level_drift),
            'department_drift': len(self.department_drift),
            'status_drift': len(self.status_drift),
            'ambiguous': len(self.ambiguous),
            'skipped': len(self.skipped),
            'case_mismatches': len(self.case_mismatches),
            'planned_repairs': len(self.plan),
        }

    def as_dict(self):
        return {
            'summary': self.summary(),
            'orphans': [
                {'response_id': r.id, 'badge_number': r.badge_number, 'name': r.name}
                for r in self.orphans
            ],
            'unlinked': [u.as_dict() for u in self.unlinked],
            'level_drift': [d.as_dict() for d in self.level_drift],
            'department_drift': [d.as_dict() for d in self.department_drift],
            'status_drift': [d.as_dict() for d in self.status_drift],
            'ambiguous': [a.as_dict() for a in self.ambiguous],
            'skipped': [s.as_dict() for s in self.skipped],
            'case_mismatches': [c.as_dict() for c in self.case_mismatches],
            'duplicate_badges': {k: list(v) for k, v in self.duplicate_badges.items()},
            'analytics': self.analytics.as_dict(),
            'plan': [op.as_dict() for op in self.plan],
        }


def build_report(employees, responses, sync_departments=False, sync_status=True):
    """
    Full reconciliation report.

    The plan holds response repairs (links, levels, optionally
    departments) followed by employee status repairs when sync_status
    is set. Status is computed against the responses as they will be
    after the response repairs, which never change matching.
    """
    match = match_responses(employees, responses)
    plan = _plan_from_match(match, sync_departments)
    status_drift = _find_status_drift(employees, match)
    if sync_status:
        plan.extend(
            RepairOp(EMPLOYEES_TABLE, d.employee.id, 'status', d.correct_status,
                     old_value=d.current_status)
            for d in status_drift
        )

    for mismatch in match.case_mismatches:
        logger.warning(
            f"Badge matched only after case normalization: response {mismatch.response.id} "
            f"has '{mismatch.response.badge_number}', employee {mismatch.employee.id} "
            f"has '{mismatch.employee.badge_number}'"
        )
    for item in match.ambiguous:
        logger.warning(
            f"Response {item.response.id}: badge {item.badge_number} is shared by "
            f"{len(item.employee_ids)} employees, needs manual resolution"
        )
    for skipped in match.skipped:
        logger.warning(f"Skipped {skipped.table} record {skipped.record_id}: {skipped.reason}")

    return ReconciliationReport(
        employees_total=len(employees),
        responses_total=len(responses),
        matched_total=len(match.matched),
        orphans=match.orphans,
        unlinked=_find_unlinked(match),
        level_drift=_find_drift(match, 'level'),
        department_drift=_find_drift(match, 'department'),
        status_drift=status_drift,
        ambiguous=match.ambiguous,
        skipped=match.skipped,
        case_mismatches=match.case_mismatches,
        duplicate_badges=match.duplicate_badges,
        analytics=compute_level_analytics(employees, responses),
        plan=plan,
    )
