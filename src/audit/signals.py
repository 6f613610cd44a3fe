"""
Django signals for automatic audit logging with field-level tracking.
Includes actor and IP tracking via middleware.
"""
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver
from django.contrib.contenttypes.models import ContentType
from employees.models import Employee
from surveys.models import SurveyResponse
from .models import AuditLog
from .middleware import get_current_actor, get_current_ip


EMPLOYEE_TRACKED_FIELDS = {
    'id_badge_number': 'Badge Number',
    'name': 'Name',
    'department': 'Department',
    'level': 'Level',
    'status': 'Submission Status',
    'is_deleted': 'Deleted',
}

RESPONSE_TRACKED_FIELDS = {
    'employee_id': 'Employee Link',
    'level': 'Level',
    'department': 'Department',
}


def _value(value):
    return '' if value is None else str(value)


def _store_original(model, instance):
    # Held on the instance until post_save; a failed save drops it with the instance
    instance.__dict__.pop('_audit_original', None)
    if instance.pk and not instance._state.adding:
        manager = getattr(model, 'all_objects', model.objects)
        original = manager.filter(pk=instance.pk).first()
        if original is not None:
            instance._audit_original = original


def _log_changes(model, instance, created, tracked, describe):
    content_type = ContentType.objects.get_for_model(model)
    actor = get_current_actor()
    ip_address = get_current_ip()

    if created:
        AuditLog.objects.create(
            content_type=content_type,
            object_id=str(instance.pk),
            action='create',
            actor=actor,
            ip_address=ip_address,
            notes=f"{describe(instance)} was created"
        )
        return

    original = instance.__dict__.pop('_audit_original', None)
    if original is None:
        return

    for field, display_name in tracked.items():
        old_val = _value(getattr(original, field, None))
        new_val = _value(getattr(instance, field, None))
        if old_val == new_val:
            continue

        action = 'update'
        if field == 'is_deleted':
            action = 'delete' if instance.is_deleted else 'restore'

        AuditLog.objects.create(
            content_type=content_type,
            object_id=str(instance.pk),
            action=action,
            field_name=field,
            old_value=old_val,
            new_value=new_val,
            actor=actor,
            ip_address=ip_address,
            notes=f"{describe(instance)}: {display_name} changed"
        )


@receiver(pre_save, sender=Employee)
def store_employee_pre_save(sender, instance, **kwargs):
    """Store original employee data before save"""
    _store_original(Employee, instance)


@receiver(post_save, sender=Employee)
def log_employee_change(sender, instance, created, **kwargs):
    """Log employee creation/updates with field-level tracking"""
    _log_changes(
        Employee, instance, created, EMPLOYEE_TRACKED_FIELDS,
        lambda e: f"Employee {e.name} ({e.id_badge_number})",
    )


@receiver(pre_save, sender=SurveyResponse)
def store_response_pre_save(sender, instance, **kwargs):
    """Store original survey response data before save"""
    _store_original(SurveyResponse, instance)


@receiver(post_save, sender=SurveyResponse)
def log_response_change(sender, instance, created, **kwargs):
    """Log survey response creation and reconciliation updates"""
    _log_changes(
        SurveyResponse, instance, created, RESPONSE_TRACKED_FIELDS,
        lambda r: f"Survey response of {r.name} ({r.id_badge_number})",
    )
