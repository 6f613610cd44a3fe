"""
Tests for the reconciliation engine and analytics.
Pure functions over records, so no database is needed here.
"""
import math
import logging

from reconciliation.engine import (
    EmployeeRecord,
    RepairOp,
    ResponseRecord,
    apply_repairs,
    build_repair_plan,
    build_report,
    build_status_plan,
    compute_level_analytics,
    find_department_drift,
    find_level_drift,
    find_orphaned_responses,
    find_status_drift,
    find_unlinked_responses,
    match_responses,
    normalize_badge,
    normalize_level,
)
from reconciliation.analytics import build_analytics, compute_category_scores


def emp(id, badge, level='Managerial', department='Finance', status='Not Submitted'):
    return EmployeeRecord(id=id, badge_number=badge, name=f'Employee {badge}',
                          department=department, level=level, status=status)


def resp(id, badge, employee_ref=None, level='Managerial', department='Finance', **scores):
    row = {'id': id, 'id_badge_number': badge, 'employee_id': employee_ref,
           'level': level, 'department': department}
    row.update(scores)
    return ResponseRecord(id=id, badge_number=badge, employee_ref=employee_ref,
                          level=level, department=department, row=row)


class TestScenarios:
    """Worked examples for linking and level resync"""

    def test_unlinked_response_gets_link_then_level(self):
        employees = [emp('E1', 'MTI001', level='Managerial')]
        responses = [resp('R1', 'MTI001', employee_ref=None, level='NonManagerial')]

        plan = build_repair_plan(employees, responses)

        assert plan == [
            RepairOp('survey_responses', 'R1', 'employee_id', 'E1'),
            RepairOp('survey_responses', 'R1', 'level', 'Managerial'),
        ]
        assert plan[0].old_value is None
        assert plan[1].old_value == 'NonManagerial'

    def test_unknown_badge_is_orphan_without_repair(self):
        responses = [resp('R2', 'UNKNOWN')]

        assert find_orphaned_responses([], responses) == responses
        assert build_repair_plan([], responses) == []

    def test_shared_badge_is_ambiguous_and_not_repaired(self):
        employees = [emp('E1', 'MTI002'), emp('E2', 'MTI002', level='Non Managerial')]
        responses = [resp('R3', 'MTI002', level='Something else')]

        match = match_responses(employees, responses)

        assert len(match.ambiguous) == 1
        assert match.ambiguous[0].response.id == 'R3'
        assert match.ambiguous[0].employee_ids == ('E1', 'E2')
        assert match.matched == []
        assert match.orphans == []
        assert build_repair_plan(employees, responses) == []
        assert find_level_drift(employees, responses) == []

    def test_applying_plan_clears_drift(self):
        employees = [emp('E1', 'MTI001', level='Managerial')]
        responses = [resp('R1', 'MTI001', employee_ref=None, level='NonManagerial')]

        repaired = apply_repairs(responses, build_repair_plan(employees, responses))

        assert find_level_drift(employees, repaired) == []
        assert find_unlinked_responses(employees, repaired) == []
        assert repaired[0].employee_ref == 'E1'
        assert repaired[0].level == 'Managerial'


class TestMatching:
    """Badge matching, malformed records and case handling"""

    def test_partition_of_well_formed_responses(self):
        employees = [emp('E1', 'A1'), emp('E2', 'B2'), emp('E3', 'B2'), emp('E4', 'C3')]
        responses = [
            resp('R1', 'A1'), resp('R2', 'B2'), resp('R3', 'ZZ9'),
            resp('R4', 'C3'), resp('R5', None), resp(None, 'A1'),
        ]

        match = match_responses(employees, responses)

        well_formed = [r for r in responses if r.id and r.badge_number]
        assert len(match.matched) + len(match.orphans) + len(match.ambiguous) == len(well_formed)
        assert [r.id for r in match.orphans] == ['R3']
        assert len(match.skipped) == 2

    def test_orphans_keep_input_order(self):
        responses = [resp('R9', 'X9'), resp('R1', 'X1'), resp('R5', 'X5')]
        assert [r.id for r in find_orphaned_responses([emp('E1', 'A1')], responses)] == ['R9', 'R1', 'R5']

    def test_missing_badge_is_skipped_not_raised(self, caplog):
        employees = [emp('E1', 'A1'), emp('E2', '  ')]
        responses = [resp('R1', None), resp('R2', 'A1')]

        with caplog.at_level(logging.WARNING, logger='reconciliation.engine'):
            report = build_report(employees, responses)

        reasons = {(s.table, s.record_id): s.reason for s in report.skipped}
        assert reasons[('survey_responses', 'R1')] == 'missing id_badge_number'
        assert reasons[('employees', 'E2')] == 'missing id_badge_number'
        assert 'Skipped survey_responses record R1: missing id_badge_number' in caplog.text
        assert report.matched_total == 1
        assert report.orphans == []

    def test_case_only_mismatch_matches_and_is_logged(self, caplog):
        employees = [emp('E1', 'MTI240266')]
        responses = [resp('R1', ' mti240266 ', employee_ref='E1')]

        with caplog.at_level(logging.WARNING, logger='reconciliation.engine'):
            report = build_report(employees, responses)

        assert report.matched_total == 1
        assert len(report.case_mismatches) == 1
        assert report.case_mismatches[0].employee.id == 'E1'
        assert 'case normalization' in caplog.text
        assert "response R1 has ' mti240266 '" in caplog.text
        assert "employee E1 has 'MTI240266'" in caplog.text
        assert report.needs_review

    def test_employees_differing_only_by_case_are_ambiguous(self):
        employees = [emp('E1', 'MTI1'), emp('E2', 'mti1')]
        report = build_report(employees, [resp('R1', 'MTI1')])

        assert report.duplicate_badges == {'MTI1': ('E1', 'E2')}
        assert len(report.ambiguous) == 1
        assert report.status_drift == []

    def test_stale_reference_is_unlinked(self):
        employees = [emp('E1', 'A1')]
        responses = [resp('R1', 'A1', employee_ref='E-OLD'), resp('R2', 'A1', employee_ref='E1')]

        unlinked = find_unlinked_responses(employees, responses)

        assert [(u.response.id, u.matched_employee.id) for u in unlinked] == [('R1', 'E1')]

    def test_normalizers(self):
        assert normalize_badge('  mti001 ') == 'MTI001'
        assert normalize_badge('   ') is None
        assert normalize_badge(None) is None
        assert normalize_level('Non-Managerial') == 'Non Managerial'
        assert normalize_level('NonManagerial') == 'Non Managerial'
        assert normalize_level('managerial') == 'Managerial'
        assert normalize_level('Director') is None
        assert normalize_level(None) is None


class TestRepairPlan:
    """Plan ordering and idempotence"""

    def _data(self):
        employees = [
            emp('E1', 'A1', level='Managerial', department='HR'),
            emp('E2', 'B2', level='Non Managerial', department='SCM'),
            emp('E3', 'C3', level='Managerial', department='Finance'),
        ]
        responses = [
            resp('R1', 'A1', employee_ref=None, level='Non Managerial', department='Finance'),
            resp('R2', 'B2', employee_ref='E9', level='Non Managerial', department='SCM'),
            resp('R3', 'C3', employee_ref='E3', level='Non Managerial', department='HR'),
            resp('R4', 'NOPE'),
        ]
        return employees, responses

    def test_links_come_before_level_resyncs(self):
        employees, responses = self._data()
        plan = build_repair_plan(employees, responses)

        fields = [op.field for op in plan]
        assert fields == ['employee_id', 'employee_id', 'level', 'level']
        assert [op.target_id for op in plan] == ['R1', 'R2', 'R1', 'R3']
        assert all(op.table == 'survey_responses' for op in plan)

    def test_department_sync_is_opt_in(self):
        employees, responses = self._data()

        assert len(find_department_drift(employees, responses)) == 2
        assert 'department' not in [op.field for op in build_repair_plan(employees, responses)]

        plan = build_repair_plan(employees, responses, sync_departments=True)
        assert [op.field for op in plan][-2:] == ['department', 'department']

    def test_plan_is_idempotent(self):
        employees, responses = self._data()
        plan = build_repair_plan(employees, responses, sync_departments=True)

        repaired = apply_repairs(responses, plan)

        assert build_repair_plan(employees, repaired, sync_departments=True) == []
        assert apply_repairs(repaired, plan) == repaired

    def test_employee_without_level_is_not_drift(self):
        employees = [emp('E1', 'A1', level=None)]
        responses = [resp('R1', 'A1', employee_ref='E1', level='Managerial')]
        assert find_level_drift(employees, responses) == []

    def test_level_drift_values(self):
        employees, responses = self._data()
        drift = find_level_drift(employees, responses)

        assert [(d.response.id, d.current_level, d.correct_level) for d in drift] == [
            ('R1', 'Non Managerial', 'Managerial'),
            ('R3', 'Non Managerial', 'Managerial'),
        ]


class TestStatusDrift:
    """Employee submission status follows the matched responses"""

    def test_status_follows_responses(self):
        employees = [
            emp('E1', 'A1', status='Not Submitted'),
            emp('E2', 'B2', status='Submitted'),
            emp('E3', 'C3', status='Submitted'),
        ]
        responses = [resp('R1', 'A1'), resp('R3', 'C3')]

        drift = find_status_drift(employees, responses)

        assert [(d.employee.id, d.correct_status) for d in drift] == [
            ('E1', 'Submitted'),
            ('E2', 'Not Submitted'),
        ]
        plan = build_status_plan(employees, responses)
        assert all(op.table == 'employees' and op.field == 'status' for op in plan)
        assert find_status_drift(apply_repairs(employees, plan), responses) == []

    def test_report_plan_puts_status_last(self):
        employees = [emp('E1', 'A1', level='Managerial')]
        responses = [resp('R1', 'A1', level='Non Managerial')]

        report = build_report(employees, responses)

        assert [(op.table, op.field) for op in report.plan] == [
            ('survey_responses', 'employee_id'),
            ('survey_responses', 'level'),
            ('employees', 'status'),
        ]
        assert build_report(employees, responses, sync_status=False).plan[-1].table != 'employees'


class TestLevelAnalytics:
    """Completion counts by the employee's level"""

    def test_counts_use_employee_level(self):
        employees = [
            emp('E1', 'A1', level='Managerial'),
            emp('E2', 'B2', level='Non Managerial'),
            emp('E3', 'C3', level='Non-Managerial'),
            emp('E4', 'D4', level='Managerial'),
        ]
        # Response copies disagree with the employee on purpose
        responses = [
            resp('R1', 'A1', level='Non Managerial'),
            resp('R2', 'B2', level='Managerial'),
            resp('R3', 'B2', level='Managerial'),
            resp('R4', 'ZZ'),
        ]

        analytics = compute_level_analytics(employees, responses)

        assert analytics.managerial_submitted == 1
        assert analytics.managerial_total == 2
        assert analytics.non_managerial_submitted == 1
        assert analytics.non_managerial_total == 2
        assert analytics.managerial_rate == 0.5
        assert analytics.non_managerial_rate == 0.5
        assert analytics.overall_rate == 0.5

    def test_empty_level_has_no_rate(self):
        analytics = compute_level_analytics([emp('E1', 'A1', level='Managerial')], [])

        assert analytics.non_managerial_total == 0
        assert analytics.non_managerial_rate is None
        assert analytics.managerial_rate == 0.0

    def test_no_data_never_produces_nan(self):
        analytics = compute_level_analytics([], [])
        data = analytics.as_dict()

        for key in ('managerial_rate', 'non_managerial_rate', 'overall_rate'):
            assert data[key] is None
        assert not any(isinstance(v, float) and math.isnan(v) for v in data.values())

    def test_rates_stay_within_bounds(self):
        employees = [emp(f'E{i}', f'B{i}', level='Managerial' if i % 2 else 'Non Managerial') for i in range(10)]
        responses = [resp(f'R{i}-{n}', f'B{i}') for i in range(0, 10, 3) for n in range(3)]

        analytics = compute_level_analytics(employees, responses)

        for rate in (analytics.managerial_rate, analytics.non_managerial_rate, analytics.overall_rate):
            assert 0 <= rate <= 1

    def test_unknown_level_is_unclassified(self):
        analytics = compute_level_analytics([emp('E1', 'A1', level='Director')], [resp('R1', 'A1')])
        assert analytics.unclassified_total == 1
        assert analytics.employees_total == 1
        assert analytics.submitted_total == 0


class TestCategoryScores:
    """Mean category scores by employee level"""

    def test_scores_split_by_level(self):
        employees = [emp('E1', 'A1', level='Managerial'), emp('E2', 'B2', level='Non Managerial')]
        responses = [
            resp('R1', 'A1', hr_documentcontrol_question1=4, hr_documentcontrol_question2=5),
            resp('R2', 'B2', hr_documentcontrol_question1=2, hr_documentcontrol_question2=3,
                 finance_costcontrol_question1=7),
            resp('R3', 'ZZ', hr_documentcontrol_question1=0),
        ]

        scores = compute_category_scores(employees, responses)

        entry = scores['hr_documentcontrol']
        assert entry['responses'] == 2
        assert entry['overall'] == 3.5
        assert entry['Managerial'] == 4.5
        assert entry['Non Managerial'] == 2.5
        # Out-of-range scores are ignored, so the category has no data at all
        assert 'finance_costcontrol' not in scores

    def test_nested_answers_are_read(self):
        employees = [emp('E1', 'A1', level='Managerial')]
        response = ResponseRecord(
            id='R1', badge_number='A1',
            row={'id': 'R1', 'answers': {'scm_procurement_question1': 3}},
        )

        scores = compute_category_scores(employees, [response])

        assert scores['scm_procurement']['Managerial'] == 3.0
        assert scores['scm_procurement']['Non Managerial'] is None

    def test_build_analytics_shape(self):
        data = build_analytics([], [])
        assert data['categories'] == {}
        assert data['levels']['managerial_total'] == 0


class TestReport:
    def test_clean_data_has_empty_plan(self):
        employees = [emp('E1', 'A1', status='Submitted')]
        responses = [resp('R1', 'A1', employee_ref='E1')]

        report = build_report(employees, responses)

        assert report.is_clean
        assert not report.needs_review
        assert report.summary()['planned_repairs'] == 0

    def test_as_dict_is_plain_data(self):
        report = build_report([emp('E1', 'A1')], [resp('R1', 'A1'), resp('R2', 'ZZ')])
        data = report.as_dict()

        assert data['summary']['orphans'] == 1
        assert data['orphans'][0]['response_id'] == 'R2'
        assert data['unlinked'][0]['correct_employee_id'] == 'E1'
        assert data['plan'][0] == {
            'table': 'survey_responses', 'target_id': 'R1', 'field': 'employee_id',
            'new_value': 'E1', 'old_value': None,
        }
