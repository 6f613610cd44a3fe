"""
Employee models for the survey service.

An Employee is identified across systems by its badge number
(id_badge_number, e.g. MTI240266). The UUID primary key is generated
independently from the survey_responses ids and must never be assumed
to match them.

Employees are seeded and administered out of band; the survey tooling
only ever updates their submission status.
"""
import uuid
from django.db import models
from .utils import SoftDeleteModel


class Employee(SoftDeleteModel):
    """
    Employee roster entry and source of truth for level and department.

    Notes:
    - id_badge_number is indexed but not unique at database level. The
      hosted schema never enforced it, and duplicates are reported by
      reconciliation instead of being merged.
    - status mirrors whether a survey response exists for this badge.
    """

    LEVEL_MANAGERIAL = 'Managerial'
    LEVEL_NON_MANAGERIAL = 'Non Managerial'
    LEVEL_CHOICES = [
        (LEVEL_MANAGERIAL, 'Managerial'),
        (LEVEL_NON_MANAGERIAL, 'Non Managerial'),
    ]

    STATUS_SUBMITTED = 'Submitted'
    STATUS_NOT_SUBMITTED = 'Not Submitted'
    STATUS_CHOICES = [
        (STATUS_SUBMITTED, 'Submitted'),
        (STATUS_NOT_SUBMITTED, 'Not Submitted'),
    ]

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Internal UUID for database relations"
    )

    id_badge_number = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Badge number shared with survey responses (e.g., MTI240266)"
    )
    name = models.CharField(
        max_length=200,
        help_text="Employee's full name"
    )
    department = models.CharField(
        max_length=200,
        help_text="Department as recorded by HR"
    )
    level = models.CharField(
        max_length=20,
        choices=LEVEL_CHOICES,
        default=LEVEL_NON_MANAGERIAL,
        db_index=True,
        help_text="Managerial or Non Managerial"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_NOT_SUBMITTED,
        db_index=True,
        help_text="Survey submission status"
    )
    email = models.EmailField(
        blank=True,
        null=True,
        help_text="Email address (optional)"
    )

    class Meta:
        db_table = 'employees'
        verbose_name = "Employee"
        verbose_name_plural = "Employees"
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.id_badge_number})"

    def to_row(self):
        """Return the employee as a store row (the shape PostgREST returns)."""
        return {
            'id': str(self.id),
            'id_badge_number': self.id_badge_number,
            'name': self.name,
            'department': self.department,
            'level': self.level,
            'status': self.status,
            'email': self.email,
        }
