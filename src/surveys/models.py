"""
Survey response model.

One row per employee submission. Responses are appended by the survey
form and afterwards only touched by reconciliation (employee link,
level and department resync). They are never deleted.
"""
import uuid
from django.core.exceptions import ValidationError
from django.db import models
from employees.models import Employee
from .sections import validate_answers


class SurveyResponse(models.Model):
    """
    A submitted survey.

    `employee` may be null or point at an employee id that no longer
    exists (db_constraint=False): that linkage drift is exactly what the
    reconciliation tooling detects and repairs using the badge number.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    id_badge_number = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Badge number typed by the employee"
    )
    employee = models.ForeignKey(
        Employee,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name='survey_responses',
        help_text="Linked employee (repaired from badge number)"
    )

    # Denormalized copies, resynced from Employee
    name = models.CharField(max_length=200)
    department = models.CharField(max_length=200)
    level = models.CharField(
        max_length=20,
        choices=Employee.LEVEL_CHOICES,
        blank=True,
        null=True,
    )

    answers = models.JSONField(
        default=dict,
        blank=True,
        help_text="Flat scores/feedback: {hr_documentcontrol_question1: 4, ...}"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'survey_responses'
        verbose_name = "Survey Response"
        verbose_name_plural = "Survey Responses"
        ordering = ['-created_at']

    def clean(self):
        errors = validate_answers(self.answers)
        if errors:
            raise ValidationError({'answers': [f"{k}: {v}" for k, v in sorted(errors.items())]})

    def __str__(self):
        return f"{self.name} ({self.id_badge_number})"

    @property
    def is_linked(self):
        return self.employee_id is not None

    def to_row(self):
        """Return the response as a store row (the shape PostgREST returns)."""
        return {
            'id': str(self.id),
            'id_badge_number': self.id_badge_number,
            'employee_id': str(self.employee_id) if self.employee_id else None,
            'name': self.name,
            'department': self.department,
            'level': self.level,
            'answers': self.answers or {},
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
