"""
Reconciliation API endpoints.

Report and analytics are read-only. The run endpoint defaults to a dry
run; live repairs must be asked for explicitly with dry_run=false.
"""
from ninja import Router
from typing import Optional
from pydantic import BaseModel
import logging

from .analytics import build_analytics
from .runner import ReconciliationConfig, fetch_records, reconcile, run_reconciliation
from .stores import StoreError, build_store

router = Router(tags=["reconciliation"])
logger = logging.getLogger(__name__)


class RunRequestSchema(BaseModel):
    """Options for a reconciliation run"""
    dry_run: bool = True
    batch_size: Optional[int] = None
    sync_departments: Optional[bool] = None
    sync_status: Optional[bool] = None


class ErrorResponseSchema(BaseModel):
    """Error response schema"""
    error: str


@router.get(
    "/reconciliation/report",
    response={200: dict, 502: ErrorResponseSchema},
    summary="Reconciliation Report",
)
def get_report(request, sync_departments: Optional[bool] = None):
    """Current orphans, unlinked responses, drift and the repair plan. Never writes."""
    try:
        config = ReconciliationConfig.from_settings(sync_departments=sync_departments)
        report = reconcile(build_store(), config)
    except StoreError as e:
        logger.error(f"Reconciliation report failed: {str(e)}")
        return 502, {"error": str(e)}
    return 200, report.as_dict()


@router.post(
    "/reconciliation/run",
    response={200: dict, 400: ErrorResponseSchema, 502: ErrorResponseSchema},
    summary="Run Reconciliation",
)
def run(request, payload: RunRequestSchema):
    """
    Plan and (unless dry_run) apply repairs, then verify.

    Returns:
        200: Run result with applied/failed/remaining ops
        400: Invalid options
        502: The store could not be read
    """
    try:
        config = ReconciliationConfig.from_settings(
            dry_run=payload.dry_run,
            batch_size=payload.batch_size,
            sync_departments=payload.sync_departments,
            sync_status=payload.sync_status,
        )
    except ValueError as e:
        return 400, {"error": str(e)}

    try:
        result = run_reconciliation(build_store(), config)
    except StoreError as e:
        logger.error(f"Reconciliation run failed: {str(e)}")
        return 502, {"error": str(e)}
    return 200, result.as_dict()


@router.get(
    "/reconciliation/analytics",
    response={200: dict, 502: ErrorResponseSchema},
    summary="Completion Analytics",
)
def get_analytics(request):
    """Completion rate per level and mean category scores per level."""
    try:
        employees, responses = fetch_records(build_store())
    except StoreError as e:
        logger.error(f"Analytics failed: {str(e)}")
        return 502, {"error": str(e)}
    return 200, build_analytics(employees, responses)
