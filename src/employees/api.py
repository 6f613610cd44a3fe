"""
Employees API endpoints for the survey service.

Provides listing, lookup by badge number and manual entry of roster
employees. Bulk roster changes are done out of band.
"""
from ninja import Router
from typing import Optional
from pydantic import BaseModel
from django.db.models import Q
from employees.models import Employee
from employees.utils import clean_badge_number, is_valid_badge_number
import re
import logging

router = Router(tags=["employees"])
logger = logging.getLogger(__name__)


# Pydantic Schemas
class EmployeeCreateSchema(BaseModel):
    """Schema for manual employee entry"""
    id_badge_number: str
    name: str
    department: str
    level: str = Employee.LEVEL_NON_MANAGERIAL
    email: Optional[str] = None


class EmployeeResponseSchema(BaseModel):
    """Response schema after employee creation"""
    message: str
    employee_id: str
    id_badge_number: str


class ErrorResponseSchema(BaseModel):
    """Error response schema"""
    error: str
    field_errors: Optional[dict] = None


def serialize_employee(employee):
    return {
        'employee_id': str(employee.id),
        'id_badge_number': employee.id_badge_number,
        'name': employee.name,
        'department': employee.department,
        'level': employee.level,
        'status': employee.status,
        'email': employee.email,
        'created_at': employee.created_at.isoformat() if employee.created_at else None,
        'updated_at': employee.updated_at.isoformat() if employee.updated_at else None,
    }


@router.post(
    "/employees",
    response={201: EmployeeResponseSchema, 400: ErrorResponseSchema},
    summary="Create New Employee",
    description="Manual roster entry with badge number validation"
)
def create_employee(request, payload: EmployeeCreateSchema):
    """
    Create a roster employee.

    Returns:
        201: Success with employee_id and id_badge_number
        400: Validation error with field-level details
    """
    field_errors = {}

    # === VALIDATION PHASE ===

    badge = clean_badge_number(payload.id_badge_number)
    if not badge:
        field_errors['id_badge_number'] = ['Badge number is required']
    elif not is_valid_badge_number(badge):
        field_errors['id_badge_number'] = ['Badge number must be 3-30 letters, digits or dashes']
    elif Employee.objects.filter(id_badge_number__iexact=badge).exists():
        # Survey matching ignores case, so MTI1 and mti1 would collide
        field_errors['id_badge_number'] = ['An employee with this badge number already exists']

    if not payload.name.strip():
        field_errors['name'] = ['Name is required']
    if not payload.department.strip():
        field_errors['department'] = ['Department is required']

    valid_levels = [value for value, _ in Employee.LEVEL_CHOICES]
    if payload.level not in valid_levels:
        field_errors['level'] = [f"Level must be one of: {', '.join(valid_levels)}"]

    if payload.email and not re.match(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$', payload.email):
        field_errors['email'] = ['Invalid email format']

    if field_errors:
        logger.warning(f"Validation failed for employee creation: {field_errors}")
        return 400, {
            "error": "Validation failed. Please check the highlighted fields.",
            "field_errors": field_errors
        }

    # === CREATE EMPLOYEE ===

    employee = Employee.objects.create(
        id_badge_number=badge,
        name=payload.name.strip(),
        department=payload.department.strip(),
        level=payload.level,
        email=payload.email or None,
    )

    logger.info(f"Employee created successfully: {employee.id_badge_number} - {employee.name}")

    return 201, {
        "message": "Employee created successfully",
        "employee_id": str(employee.id),
        "id_badge_number": employee.id_badge_number,
    }


@router.get("/employees", response=dict)
def list_employees(
    request,
    page: int = 1,
    per_page: int = 20,
    search: Optional[str] = None,
    level: Optional[str] = None,
    status: Optional[str] = None,
):
    """
    List roster employees with pagination and filters.

    Args:
        page: Page number (1-indexed)
        per_page: Items per page (max 100)
        search: Matches badge number, name or department
        level: Exact level filter ("Managerial" / "Non Managerial")
        status: Exact status filter ("Submitted" / "Not Submitted")
    """
    query = Employee.objects.all()

    if search:
        query = query.filter(
            Q(id_badge_number__icontains=search) |
            Q(name__icontains=search) |
            Q(department__icontains=search)
        )
    if level:
        query = query.filter(level=level)
    if status:
        query = query.filter(status=status)

    total = query.count()

    # Pagination
    page = max(page, 1)
    per_page = max(min(per_page, 100), 1)  # Max 100 items per page
    start = (page - 1) * per_page
    end = start + per_page

    employees = query.order_by('-created_at', 'id')[start:end]

    return {
        'employees': [serialize_employee(emp) for emp in employees],
        'total': total,
        'page': page,
        'per_page': per_page,
        'total_pages': (total + per_page - 1) // per_page,
    }


@router.get(
    "/employees/{badge_number}",
    response={200: dict, 404: ErrorResponseSchema, 409: ErrorResponseSchema}
)
def get_employee(request, badge_number: str):
    """
    Get a single employee by badge number (case-insensitive).

    A badge shared by more than one employee is a data problem that
    reconciliation reports; it is answered with 409 here.
    """
    matches = list(Employee.objects.filter(id_badge_number__iexact=badge_number.strip()))
    if not matches:
        return 404, {'error': f'Employee with badge number {badge_number} not found'}
    if len(matches) > 1:
        return 409, {
            'error': f'Badge number {badge_number} is shared by {len(matches)} employees'
        }

    employee = matches[0]
    data = serialize_employee(employee)
    data['survey_responses'] = [
        str(pk) for pk in employee.survey_responses.values_list('id', flat=True)
    ]
    return 200, data
