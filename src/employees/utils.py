"""
Utility classes and functions for the employees app.
Provides soft delete functionality for the employee roster.
"""
import re

from django.db import models
from django.utils import timezone


BADGE_PATTERN = re.compile(r'^[A-Za-z0-9-]{3,30}$')


class SoftDeleteManager(models.Manager):
    """
    Manager that excludes soft-deleted objects by default.

    Usage:
        Employee.objects.all()  # Returns only active employees
        Employee.all_objects.all()  # Returns all including deleted
        Employee.objects.deleted_only()  # Returns only deleted
    """

    def get_queryset(self):
        """Exclude soft-deleted objects by default"""
        return super().get_queryset().filter(is_deleted=False)

    def with_deleted(self):
        """Include soft-deleted objects in query"""
        return super().get_queryset()

    def deleted_only(self):
        """Return only soft-deleted objects"""
        return super().get_queryset().filter(is_deleted=True)


class SoftDeleteModel(models.Model):
    """
    Abstract base model providing soft delete functionality.

    Employees are administered out of band and are never removed
    by the survey tooling. Removing someone from the roster marks
    the row as deleted, which hides it from the default manager
    (and therefore from reconciliation) while keeping the history.

    Fields:
    - is_deleted, deleted_at, deleted_by, deletion_reason
    - created_at, updated_at: Automatic timestamps
    """

    is_deleted = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Indicates if this record is soft-deleted"
    )
    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp when record was deleted"
    )
    deleted_by = models.CharField(
        max_length=150,
        null=True,
        blank=True,
        help_text="Admin user or tool that deleted this record"
    )
    deletion_reason = models.TextField(
        blank=True,
        null=True,
        help_text="Optional reason for deletion"
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="Timestamp when record was created"
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when record was last updated"
    )

    objects = SoftDeleteManager()  # Default manager (excludes deleted)
    all_objects = models.Manager()  # Includes all objects

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def soft_delete(self, deleted_by=None, reason=None):
        """
        Soft delete this instance.

        Args:
            deleted_by (str, optional): Who performed the deletion
            reason (str, optional): Reason for deletion
        """
        self.is_deleted = True
        self.deleted_at = timezone.now()
        self.deleted_by = deleted_by
        self.deletion_reason = reason
        self.save(update_fields=[
            'is_deleted',
            'deleted_at',
            'deleted_by',
            'deletion_reason',
            'updated_at',
        ])

    def restore(self):
        """Restore a soft-deleted instance."""
        self.is_deleted = False
        self.deleted_at = None
        self.deleted_by = None
        self.deletion_reason = None
        self.save(update_fields=[
            'is_deleted',
            'deleted_at',
            'deleted_by',
            'deletion_reason',
            'updated_at',
        ])


def clean_badge_number(value):
    """Strip surrounding whitespace from a badge number typed into a form."""
    if value is None:
        return ''
    return str(value).strip()


def is_valid_badge_number(value):
    """Badge numbers are 3-30 letters, digits or dashes (e.g. MTI240266)."""
    return bool(BADGE_PATTERN.match(value or ''))
