"""
Tests for the audit trail signals and actor tracking.
"""
from unittest import mock

import pytest
from django.db import DatabaseError, transaction
from audit.middleware import audit_actor, get_current_actor
from audit.models import AuditLog
from employees.models import Employee


@pytest.mark.django_db
class TestAuditSignals:
    def test_creation_is_logged(self, sample_employee):
        log = AuditLog.objects.get(object_id=str(sample_employee.pk), action='create')
        assert log.actor == 'system'
        assert 'MTI240266' in log.notes

    def test_field_changes_are_logged_with_actor(self, sample_employee):
        sample_employee.department = 'Supply Chain'
        sample_employee.level = Employee.LEVEL_NON_MANAGERIAL
        with audit_actor('hr-import'):
            sample_employee.save()

        logs = AuditLog.objects.filter(object_id=str(sample_employee.pk), action='update')
        assert {log.field_name: (log.old_value, log.new_value) for log in logs} == {
            'department': ('Finance', 'Supply Chain'),
            'level': ('Managerial', 'Non Managerial'),
        }
        assert set(logs.values_list('actor', flat=True)) == {'hr-import'}

    def test_unchanged_save_logs_nothing(self, sample_employee):
        sample_employee.save()
        assert not AuditLog.objects.filter(object_id=str(sample_employee.pk), action='update').exists()

    def test_soft_delete_is_logged_as_delete(self, sample_employee):
        sample_employee.soft_delete(deleted_by='admin')
        assert AuditLog.objects.filter(object_id=str(sample_employee.pk), action='delete').count() == 1

    def test_failed_save_keeps_no_pending_original(self, sample_employee):
        sample_employee.department = 'Supply Chain'
        with pytest.raises(DatabaseError):
            with transaction.atomic():
                with mock.patch.object(Employee, '_do_update', side_effect=DatabaseError('disk full')):
                    sample_employee.save()

        assert not AuditLog.objects.filter(object_id=str(sample_employee.pk), action='update').exists()
        assert sample_employee._audit_original.department == 'Finance'

        # Each save compares against the row as it is in the database now
        other = Employee.objects.get(pk=sample_employee.pk)
        other.level = Employee.LEVEL_NON_MANAGERIAL
        other.save()
        assert not hasattr(other, '_audit_original')

        sample_employee.save()
        assert not hasattr(sample_employee, '_audit_original')
        logs = AuditLog.objects.filter(object_id=str(sample_employee.pk), action='update')
        assert sorted(logs.values_list('field_name', 'old_value', 'new_value')) == [
            ('department', 'Finance', 'Supply Chain'),
            ('level', 'Managerial', 'Non Managerial'),
            ('level', 'Non Managerial', 'Managerial'),
        ]


class TestAuditActor:
    def test_actor_is_scoped_to_block(self):
        assert get_current_actor() == 'system'
        with audit_actor('reconciliation'):
            assert get_current_actor() == 'reconciliation'
            with audit_actor('nested'):
                assert get_current_actor() == 'nested'
            assert get_current_actor() == 'reconciliation'
        assert get_current_actor() == 'system'
