"""
Pytest fixtures for survey-service tests.
"""
import copy

import pytest
from django.test import Client
from employees.models import Employee
from surveys.models import SurveyResponse
from reconciliation.stores import StoreError, SurveyStore


class MemoryStore(SurveyStore):
    """
    In-memory store holding rows exactly as a store returns them.

    `fail_on` is a set of (table, record_id) pairs whose update raises
    StoreError, for exercising partial failures. `writes` lists every
    update or update_many call as (table, [record_ids], fields).
    """

    name = 'memory'

    def __init__(self, employees=None, responses=None, fail_on=None, atomic=False):
        self.tables = {
            'employees': [dict(row) for row in employees or []],
            'survey_responses': [dict(row) for row in responses or []],
        }
        self.fail_on = set(fail_on or ())
        self.supports_atomic = atomic
        self.updates = []
        self.writes = []

    def fetch_all(self, table):
        self._check_table(table)
        return copy.deepcopy(self.tables[table])

    def update(self, table, record_id, fields):
        self._check_table(table)
        self.writes.append((table, [record_id], dict(fields)))
        if (table, record_id) in self.fail_on:
            raise StoreError(f"Simulated failure updating {table} row {record_id}")
        for row in self.tables[table]:
            if row.get('id') == record_id:
                row.update(fields)
                self.updates.append((table, record_id, dict(fields)))
                return
        raise StoreError(f"{table} row {record_id} not found")

    def update_many(self, table, record_ids, fields):
        self._check_table(table)
        record_ids = list(record_ids)
        self.writes.append((table, record_ids, dict(fields)))
        failures = {}
        for record_id in record_ids:
            row = next((r for r in self.tables[table] if r.get('id') == record_id), None)
            if (table, record_id) in self.fail_on or row is None:
                failures[record_id] = f"Simulated failure updating {table} row {record_id}"
                continue
            row.update(fields)
            self.updates.append((table, record_id, dict(fields)))
        return failures

    def row(self, table, record_id):
        return next(r for r in self.tables[table] if r.get('id') == record_id)


def employee_row(id, badge, level='Managerial', department='Finance', status='Not Submitted', name=None):
    return {
        'id': id,
        'id_badge_number': badge,
        'name': name or f'Employee {badge}',
        'department': department,
        'level': level,
        'status': status,
        'email': None,
    }


def response_row(id, badge, employee_id=None, level='Managerial', department='Finance', name=None, **answers):
    row = {
        'id': id,
        'id_badge_number': badge,
        'employee_id': employee_id,
        'name': name or f'Employee {badge}',
        'department': department,
        'level': level,
        'created_at': '2024-03-01T09:00:00+00:00',
    }
    row.update(answers)
    return row


@pytest.fixture
def api_client():
    """Django test client for API calls"""
    return Client()


@pytest.fixture
def sample_employee(db):
    """Create a sample employee for testing"""
    return Employee.objects.create(
        id_badge_number="MTI240266",
        name="Test Employee",
        department="Finance",
        level=Employee.LEVEL_MANAGERIAL,
        email="test@example.com",
    )


@pytest.fixture
def sample_response(db, sample_employee):
    """Create an unlinked survey response for the sample employee"""
    return SurveyResponse.objects.create(
        id_badge_number=sample_employee.id_badge_number,
        name=sample_employee.name,
        department=sample_employee.department,
        level=Employee.LEVEL_NON_MANAGERIAL,
        answers={
            'hr_documentcontrol_question1': 4,
            'hr_documentcontrol_question2': 5,
        },
    )
