"""
Audit logging models for tracking changes to survey data.

Tracks:
- Who made the change (admin user, API caller or the reconciliation tool)
- What was changed (model + field)
- When it happened
- Old value vs New value
"""
import uuid
from django.db import models
from django.contrib.contenttypes.models import ContentType
from django.contrib.contenttypes.fields import GenericForeignKey


class AuditLog(models.Model):
    """
    Audit trail for employee and survey response changes.

    Reconciliation repairs show up here one row per changed field, so
    a repair run can be reviewed (and reverted by hand) afterwards.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    actor = models.CharField(
        max_length=150,
        default='system',
        help_text="Admin username or tool that made the change"
    )

    # What was changed (Generic relation to any model)
    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE,
        help_text="Type of object that was changed"
    )
    object_id = models.CharField(
        max_length=255,
        help_text="ID of the object that was changed"
    )
    changed_object = GenericForeignKey('content_type', 'object_id')

    ACTION_CHOICES = [
        ('create', 'Created'),
        ('update', 'Updated'),
        ('delete', 'Deleted'),
        ('restore', 'Restored'),
    ]
    action = models.CharField(
        max_length=10,
        choices=ACTION_CHOICES,
        help_text="Type of action performed"
    )

    field_name = models.CharField(
        max_length=100,
        blank=True,
        null=True,
        help_text="Field that was changed (for updates)"
    )
    old_value = models.TextField(
        blank=True,
        null=True,
        help_text="Previous value (for updates)"
    )
    new_value = models.TextField(
        blank=True,
        null=True,
        help_text="New value (for updates)"
    )

    timestamp = models.DateTimeField(
        auto_now_add=True,
        help_text="When the change occurred"
    )
    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True,
        help_text="IP address of the caller"
    )
    notes = models.TextField(
        blank=True,
        null=True,
        help_text="Additional context or reason for change"
    )

    class Meta:
        verbose_name = "Audit Log"
        verbose_name_plural = "Audit Logs"
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['content_type', 'object_id'], name='audit_audit_content_e0a6a1_idx'),
            models.Index(fields=['actor', '-timestamp'], name='audit_audit_actor_5b1f0e_idx'),
            models.Index(fields=['action', '-timestamp'], name='audit_audit_action_9c2d47_idx'),
        ]

    def __str__(self):
        return f"{self.get_action_display()} - {self.content_type} (ID: {self.object_id}) at {self.timestamp}"
