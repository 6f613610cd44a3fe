"""
Survey responses API endpoints (read only).
"""
from ninja import Router
from typing import Optional
from pydantic import BaseModel
from django.db.models import Q
from surveys.models import SurveyResponse
import uuid
import logging

router = Router(tags=["surveys"])
logger = logging.getLogger(__name__)


class ErrorResponseSchema(BaseModel):
    """Error response schema"""
    error: str


def serialize_response(response, include_answers=False):
    data = {
        'response_id': str(response.id),
        'id_badge_number': response.id_badge_number,
        'employee_id': str(response.employee_id) if response.employee_id else None,
        'name': response.name,
        'department': response.department,
        'level': response.level,
        'is_linked': response.is_linked,
        'created_at': response.created_at.isoformat() if response.created_at else None,
    }
    if include_answers:
        data['answers'] = response.answers or {}
    return data


@router.get("/survey-responses", response=dict)
def list_survey_responses(
    request,
    page: int = 1,
    per_page: int = 20,
    search: Optional[str] = None,
    linked: Optional[bool] = None,
):
    """
    List survey responses with pagination.

    Args:
        search: Matches badge number, name or department
        linked: True for responses with an employee link, False for those without
    """
    query = SurveyResponse.objects.all()

    if search:
        query = query.filter(
            Q(id_badge_number__icontains=search) |
            Q(name__icontains=search) |
            Q(department__icontains=search)
        )
    if linked is not None:
        query = query.filter(employee__isnull=not linked)

    total = query.count()

    page = max(page, 1)
    per_page = max(min(per_page, 100), 1)  # Max 100 items per page
    start = (page - 1) * per_page
    end = start + per_page

    responses = query.order_by('-created_at', 'id')[start:end]

    return {
        'responses': [serialize_response(r) for r in responses],
        'total': total,
        'page': page,
        'per_page': per_page,
        'total_pages': (total + per_page - 1) // per_page,
    }


@router.get("/survey-responses/{response_id}", response={200: dict, 404: ErrorResponseSchema})
def get_survey_response(request, response_id: str):
    """Get a single survey response including its answers."""
    try:
        response = SurveyResponse.objects.get(id=uuid.UUID(response_id))
    except (ValueError, SurveyResponse.DoesNotExist):
        return 404, {'error': f'Survey response {response_id} not found'}
    return 200, serialize_response(response, include_answers=True)
