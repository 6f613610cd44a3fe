"""
Tests for the reconciliation runner, stores, API and scripts.
"""
import json
import logging
from unittest import mock

import pytest
import requests

from conftest import MemoryStore, employee_row, response_row
from audit.models import AuditLog
from employees.models import Employee
from surveys.models import SurveyResponse
from reconciliation.engine import RepairOp
from reconciliation.runner import (
    ReconciliationConfig,
    apply_plan,
    reconcile,
    run_reconciliation,
)
from reconciliation.stores import DjangoStore, StoreError, SupabaseStore, build_store
import export_survey_data
import reconcile_survey_data


def drifted_store(**kwargs):
    return MemoryStore(
        employees=[
            employee_row('E1', 'MTI001', level='Managerial'),
            employee_row('E2', 'MTI002', level='Non Managerial', status='Submitted'),
        ],
        responses=[
            response_row('R1', 'MTI001', employee_id=None, level='NonManagerial'),
            response_row('R2', 'UNKNOWN'),
        ],
        **kwargs
    )


def submitted_store(**kwargs):
    """Four linked employees whose status still says they have not submitted."""
    ids = ['E1', 'E2', 'E3', 'E4']
    return MemoryStore(
        employees=[employee_row(e, f'MTI00{n}') for n, e in enumerate(ids, start=1)],
        responses=[
            response_row(f'R{n}', f'MTI00{n}', employee_id=e) for n, e in enumerate(ids, start=1)
        ],
        **kwargs
    )


class BrokenStore(MemoryStore):
    def fetch_all(self, table):
        raise StoreError("connection refused")


class TestRunner:
    """Fetch -> plan -> apply -> verify against in-memory stores"""

    def test_live_run_repairs_and_verifies(self):
        store = drifted_store()

        result = run_reconciliation(store, ReconciliationConfig())

        assert [(o.op.table, o.op.target_id, o.op.field) for o in result.applied] == [
            ('survey_responses', 'R1', 'employee_id'),
            ('survey_responses', 'R1', 'level'),
            ('employees', 'E1', 'status'),
            ('employees', 'E2', 'status'),
        ]
        assert result.failed == []
        assert result.remaining == []
        assert result.succeeded
        assert store.row('survey_responses', 'R1')['employee_id'] == 'E1'
        assert store.row('survey_responses', 'R1')['level'] == 'Managerial'
        assert store.row('employees', 'E1')['status'] == 'Submitted'
        assert store.row('employees', 'E2')['status'] == 'Not Submitted'
        # Orphan is reported, never linked
        assert store.row('survey_responses', 'R2')['employee_id'] is None
        assert len(result.verification.orphans) == 1

    def test_dry_run_writes_nothing(self):
        store = drifted_store()

        result = run_reconciliation(store, ReconciliationConfig(dry_run=True))

        assert store.updates == []
        assert len(result.report.plan) == 4
        assert result.outcomes == []
        assert result.verification is None
        assert result.succeeded
        assert result.as_dict()['dry_run'] is True

    def test_failed_op_is_reported_and_retried_on_rerun(self):
        store = drifted_store(fail_on={('survey_responses', 'R1')})

        first = run_reconciliation(store, ReconciliationConfig())

        assert [(o.op.field, o.success) for o in first.outcomes] == [
            ('employee_id', False), ('level', False), ('status', True), ('status', True),
        ]
        assert 'Simulated failure' in first.failed[0].error
        assert not first.succeeded
        assert [op.field for op in first.remaining] == ['employee_id', 'level']

        store.fail_on.clear()
        second = run_reconciliation(store, ReconciliationConfig())

        assert [o.op.field for o in second.applied] == ['employee_id', 'level']
        assert second.succeeded

    def test_rerun_after_success_is_a_no_op(self):
        store = drifted_store()
        run_reconciliation(store, ReconciliationConfig())
        store.updates.clear()

        result = run_reconciliation(store, ReconciliationConfig())

        assert result.report.plan == []
        assert store.updates == []

    def test_atomic_store_marks_every_op_failed(self):
        store = drifted_store(fail_on={('employees', 'E2')}, atomic=True)
        plan = reconcile(store, ReconciliationConfig()).plan

        outcomes = apply_plan(store, plan, batch_size=10)

        assert len(outcomes) == len(plan)
        assert not any(o.success for o in outcomes)

    def test_batch_writes_same_value_ops_together(self):
        store = submitted_store()

        result = run_reconciliation(store, ReconciliationConfig(batch_size=3))

        assert store.writes == [
            ('employees', ['E1', 'E2', 'E3'], {'status': 'Submitted'}),
            ('employees', ['E4'], {'status': 'Submitted'}),
        ]
        assert [o.op.target_id for o in result.applied] == ['E1', 'E2', 'E3', 'E4']
        assert result.succeeded

    def test_batch_size_one_writes_every_op_alone(self):
        store = submitted_store()

        run_reconciliation(store, ReconciliationConfig(batch_size=1))

        assert [ids for _, ids, _ in store.writes] == [['E1'], ['E2'], ['E3'], ['E4']]

    def test_partial_batch_failure_keeps_plan_order(self):
        store = submitted_store(fail_on={('employees', 'E2')})

        result = run_reconciliation(store, ReconciliationConfig(batch_size=10))

        assert len(store.writes) == 1
        assert [(o.op.target_id, o.success) for o in result.outcomes] == [
            ('E1', True), ('E2', False), ('E3', True), ('E4', True),
        ]
        assert 'Simulated failure' in result.failed[0].error
        assert [op.target_id for op in result.remaining] == ['E2']

    def test_batch_store_error_fails_the_whole_write(self):
        store = submitted_store()
        plan = reconcile(store, ReconciliationConfig()).plan

        with mock.patch.object(store, 'update_many', side_effect=StoreError("gateway timeout")):
            outcomes = apply_plan(store, plan, batch_size=10)

        assert [o.success for o in outcomes] == [False] * 4
        assert {o.error for o in outcomes} == {'gateway timeout'}

    def test_fetch_error_propagates(self):
        with pytest.raises(StoreError):
            run_reconciliation(BrokenStore(), ReconciliationConfig())

    def test_department_and_status_flags(self):
        store = MemoryStore(
            employees=[employee_row('E1', 'A1', department='HR', status='Not Submitted')],
            responses=[response_row('R1', 'A1', employee_id='E1', department='Finance')],
        )

        plan = reconcile(store, ReconciliationConfig(sync_departments=True, sync_status=False)).plan

        assert [(op.table, op.field, op.new_value) for op in plan] == [
            ('survey_responses', 'department', 'HR'),
        ]


class TestConfig:
    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValueError):
            ReconciliationConfig(batch_size=0)

    def test_overrides_win_over_settings(self, settings):
        settings.RECONCILIATION = {**settings.RECONCILIATION, 'BATCH_SIZE': 25, 'DRY_RUN': True}

        config = ReconciliationConfig.from_settings(dry_run=False, batch_size=None)

        assert config.batch_size == 25
        assert config.dry_run is False

    def test_unknown_store_name(self):
        with pytest.raises(StoreError):
            build_store('mongo')


@pytest.mark.django_db
class TestDjangoStore:
    """ORM-backed store and the audit trail it leaves"""

    def test_fetch_all_returns_rows(self, sample_response):
        store = DjangoStore()

        employees = store.fetch_all('employees')
        responses = store.fetch_all('survey_responses')

        assert employees[0]['id_badge_number'] == 'MTI240266'
        assert responses[0]['employee_id'] is None
        assert responses[0]['answers']['hr_documentcontrol_question1'] == 4

    def test_soft_deleted_employee_is_not_fetched(self, sample_employee):
        sample_employee.soft_delete(deleted_by='admin', reason='left company')
        assert DjangoStore().fetch_all('employees') == []

    def test_update_missing_row_raises(self, db):
        store = DjangoStore()
        with pytest.raises(StoreError):
            store.update('survey_responses', '00000000-0000-0000-0000-000000000000', {'level': 'Managerial'})
        with pytest.raises(StoreError):
            store.update('survey_responses', 'not-a-uuid', {'level': 'Managerial'})
        with pytest.raises(StoreError):
            store.update('departments', 'x', {})

    def test_update_many_reports_rows_it_could_not_write(self, sample_employee):
        missing = '00000000-0000-0000-0000-000000000000'

        failures = DjangoStore().update_many(
            'employees', [str(sample_employee.id), missing], {'status': Employee.STATUS_SUBMITTED},
        )

        assert list(failures) == [missing]
        sample_employee.refresh_from_db()
        assert sample_employee.status == Employee.STATUS_SUBMITTED

    def test_full_run_links_response_and_audits(self, sample_response, sample_employee):
        result = run_reconciliation(DjangoStore(), ReconciliationConfig())

        assert result.succeeded
        sample_response.refresh_from_db()
        sample_employee.refresh_from_db()
        assert sample_response.employee_id == sample_employee.id
        assert sample_response.level == Employee.LEVEL_MANAGERIAL
        assert sample_employee.status == Employee.STATUS_SUBMITTED

        logs = AuditLog.objects.filter(actor='reconciliation', action='update')
        assert set(logs.values_list('field_name', flat=True)) == {'employee_id', 'level', 'status'}
        level_log = logs.get(field_name='level')
        assert level_log.old_value == Employee.LEVEL_NON_MANAGERIAL
        assert level_log.new_value == Employee.LEVEL_MANAGERIAL

    def test_atomic_apply_rolls_back(self, sample_response):
        plan = [
            RepairOp('survey_responses', str(sample_response.id), 'level', 'Managerial'),
            RepairOp('survey_responses', '00000000-0000-0000-0000-000000000000', 'level', 'Managerial'),
        ]

        outcomes = apply_plan(DjangoStore(), plan)

        assert [o.success for o in outcomes] == [False, False]
        sample_response.refresh_from_db()
        assert sample_response.level == Employee.LEVEL_NON_MANAGERIAL


def fake_response(status_code=200, payload=None, method='GET'):
    response = mock.Mock()
    response.status_code = status_code
    response.content = b'' if payload is None else json.dumps(payload).encode()
    response.json.return_value = payload
    response.text = '' if payload is None else json.dumps(payload)
    response.url = 'https://example.supabase.co/rest/v1/employees'
    response.request.method = method
    return response


class TestSupabaseStore:
    """PostgREST store with a mocked requests.Session"""

    def _store(self, session, **kwargs):
        return SupabaseStore('https://example.supabase.co/', 'service-key', session=session, **kwargs)

    def test_requires_credentials(self):
        with pytest.raises(StoreError):
            SupabaseStore('', 'key')

    def test_fetch_all_pages_through_table(self):
        session = mock.MagicMock()
        session.get.side_effect = [
            fake_response(payload=[{'id': 1}, {'id': 2}]),
            fake_response(payload=[{'id': 3}]),
            fake_response(payload=[]),
        ]
        store = self._store(session, page_size=2, timeout=5)

        rows = store.fetch_all('employees')

        assert [r['id'] for r in rows] == [1, 2, 3]
        first_call, second_call, third_call = session.get.call_args_list
        assert first_call.args[0] == 'https://example.supabase.co/rest/v1/employees'
        assert first_call.kwargs['params']['offset'] == 0
        assert second_call.kwargs['params']['offset'] == 2
        assert third_call.kwargs['params']['offset'] == 3
        assert first_call.kwargs['timeout'] == 5

    def test_fetch_all_survives_server_row_cap(self, caplog):
        table = [{'id': n} for n in range(1, 5)]

        def capped_get(url, params, timeout):
            # Server returns at most two rows whatever limit is asked for
            start = params['offset']
            return fake_response(payload=table[start:start + min(params['limit'], 2)])

        session = mock.MagicMock()
        session.get.side_effect = capped_get

        with caplog.at_level(logging.DEBUG, logger='reconciliation.stores'):
            rows = self._store(session, page_size=5).fetch_all('employees')

        assert rows == table
        assert [c.kwargs['params']['offset'] for c in session.get.call_args_list] == [0, 2, 4]
        assert 'Fetched 4 rows from employees' in caplog.text

    def test_http_error_becomes_store_error(self):
        session = mock.MagicMock()
        session.get.return_value = fake_response(status_code=503, payload={'message': 'down'})

        with pytest.raises(StoreError, match='503'):
            self._store(session).fetch_all('survey_responses')

    def test_network_error_becomes_store_error(self):
        session = mock.MagicMock()
        session.get.side_effect = requests.ConnectionError("boom")

        with pytest.raises(StoreError):
            self._store(session).fetch_all('employees')

    def test_update_patches_by_id(self):
        session = mock.MagicMock()
        session.patch.return_value = fake_response(payload=[{'id': 'R1', 'level': 'Managerial'}], method='PATCH')

        self._store(session).update('survey_responses', 'R1', {'level': 'Managerial'})

        kwargs = session.patch.call_args.kwargs
        assert kwargs['params'] == {'id': 'eq.R1'}
        assert kwargs['json'] == {'level': 'Managerial'}
        assert kwargs['headers']['Prefer'] == 'return=representation'

    def test_update_matching_no_rows_fails(self):
        session = mock.MagicMock()
        session.patch.return_value = fake_response(payload=[], method='PATCH')

        with pytest.raises(StoreError, match='matched no rows'):
            self._store(session).update('survey_responses', 'R1', {'level': 'Managerial'})

    def test_update_many_is_one_patch(self):
        session = mock.MagicMock()
        session.patch.return_value = fake_response(
            payload=[{'id': 'E1', 'status': 'Submitted'}, {'id': 'E3', 'status': 'Submitted'}],
            method='PATCH',
        )

        failures = self._store(session).update_many('employees', ['E1', 'E2', 'E3'], {'status': 'Submitted'})

        assert session.patch.call_count == 1
        kwargs = session.patch.call_args.kwargs
        assert kwargs['params'] == {'id': 'in.(E1,E2,E3)'}
        assert kwargs['json'] == {'status': 'Submitted'}
        assert list(failures) == ['E2']
        assert 'matched no rows' in failures['E2']

    def test_update_many_network_error_becomes_store_error(self):
        session = mock.MagicMock()
        session.patch.side_effect = requests.Timeout("read timed out")

        with pytest.raises(StoreError):
            self._store(session).update_many('employees', ['E1', 'E2'], {'status': 'Submitted'})

    def test_runner_batches_become_bulk_patches(self):
        session = mock.MagicMock()
        session.patch.side_effect = lambda url, params, **kwargs: fake_response(
            payload=[{'id': i} for i in params['id'].split('.', 1)[1].strip('()').split(',')], method='PATCH',
        )
        plan = [RepairOp('employees', f'E{n}', 'status', 'Submitted') for n in range(1, 6)]

        outcomes = apply_plan(self._store(session), plan, batch_size=2)

        assert all(o.success for o in outcomes)
        assert [c.kwargs['params']['id'] for c in session.patch.call_args_list] == [
            'in.(E1,E2)', 'in.(E3,E4)', 'eq.E5',
        ]

    def test_session_retries_transient_failures(self):
        store = SupabaseStore('https://example.supabase.co', 'service-key', attempts=3, backoff=0.5)

        retry = store.session.get_adapter('https://example.supabase.co').max_retries

        # three attempts in all: the first request and two retries
        assert retry.total == 2
        assert retry.connect == 2
        assert 503 in retry.status_forcelist
        assert store.session.headers['apikey'] == 'service-key'


@pytest.mark.django_db
class TestReconciliationAPI:
    """Tests for /api/reconciliation endpoints"""

    def test_report(self, api_client, sample_response):
        response = api_client.get('/api/reconciliation/report')

        assert response.status_code == 200
        data = response.json()
        assert data['summary']['unlinked'] == 1
        assert data['summary']['level_drift'] == 1
        assert data['summary']['planned_repairs'] == 3

    def test_run_defaults_to_dry_run(self, api_client, sample_response):
        response = api_client.post('/api/reconciliation/run', data=json.dumps({}),
                                   content_type='application/json')

        assert response.status_code == 200
        assert response.json()['dry_run'] is True
        sample_response.refresh_from_db()
        assert sample_response.employee_id is None

    def test_live_run(self, api_client, sample_response, sample_employee):
        response = api_client.post('/api/reconciliation/run',
                                   data=json.dumps({'dry_run': False, 'batch_size': 10}),
                                   content_type='application/json')

        assert response.status_code == 200
        data = response.json()
        assert data['succeeded'] is True
        assert len(data['applied']) == 3
        sample_response.refresh_from_db()
        assert sample_response.employee_id == sample_employee.id

    def test_invalid_batch_size(self, api_client, db):
        response = api_client.post('/api/reconciliation/run', data=json.dumps({'batch_size': 0}),
                                   content_type='application/json')
        assert response.status_code == 400
        assert 'batch_size' in response.json()['error']

    def test_store_error_is_502(self, api_client, settings, db):
        settings.RECONCILIATION = {**settings.RECONCILIATION, 'STORE': 'supabase'}
        settings.SUPABASE_URL = ''

        response = api_client.get('/api/reconciliation/report')

        assert response.status_code == 502
        assert 'SUPABASE_URL' in response.json()['error']

    def test_analytics(self, api_client, sample_response):
        response = api_client.get('/api/reconciliation/analytics')

        assert response.status_code == 200
        data = response.json()
        assert data['levels']['managerial_total'] == 1
        assert data['levels']['managerial_submitted'] == 1
        assert data['levels']['non_managerial_rate'] is None
        assert data['categories']['hr_documentcontrol']['Managerial'] == 4.5


class TestScripts:
    """Command line wrappers"""

    def test_dry_run_exits_zero(self):
        store = drifted_store()
        assert reconcile_survey_data.main(['--dry-run'], store=store) == 0
        assert store.updates == []

    def test_pending_repairs_exit_one(self):
        store = drifted_store(fail_on={('survey_responses', 'R1')})
        assert reconcile_survey_data.main([], store=store) == 1

    def test_store_error_exits_two(self):
        assert reconcile_survey_data.main([], store=BrokenStore()) == 2

    def test_invalid_batch_size_exits_one(self):
        assert reconcile_survey_data.main(['--batch-size', '0'], store=drifted_store()) == 1

    def test_json_output(self, capsys):
        store = drifted_store()

        code = reconcile_survey_data.main(['--json', '--no-status-sync'], store=store)

        data = json.loads(capsys.readouterr().out)
        assert code == 0
        assert [op['field'] for op in data['applied']] == ['employee_id', 'level']
        assert store.row('employees', 'E1')['status'] == 'Not Submitted'

    def test_export_writes_one_file_per_table(self, tmp_path):
        assert export_survey_data.main([str(tmp_path / 'dump')], store=drifted_store()) == 0

        employees = json.loads((tmp_path / 'dump' / 'employees.json').read_text())
        responses = json.loads((tmp_path / 'dump' / 'survey_responses.json').read_text())
        assert [e['id'] for e in employees] == ['E1', 'E2']
        assert len(responses) == 2
