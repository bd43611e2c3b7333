"""Fee reports router: report modes, report data, CSV/Excel export."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.dependencies import get_current_user
from backoffice.auth.rbac import check_permission
from backoffice.auth.schemas import CurrentUser
from backoffice.core.enums import ExportFormat, FeeHeadKind, PaymentStatusFilter
from backoffice.core.exceptions import ServiceError
from backoffice.db.session import get_db

from .export import export_report
from .modes import list_modes
from .schemas import ReportFilters, ReportModeInfo, ReportResult
from . import service

router = APIRouter(prefix="/api/v1/fee-reports", tags=["fee-reports"])


def report_filters(
    class_id: Optional[UUID] = Query(None),
    payment_status: PaymentStatusFilter = Query(PaymentStatusFilter.ALL, description="all, Paid, Dues"),
    on_date: Optional[date] = Query(None, alias="date", description="Exact payment date (collection report)"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    year: Optional[int] = Query(None),
    search: Optional[str] = Query(None, description="Student name (and father name for dues reports)"),
    fee_category_id: Optional[UUID] = Query(None),
    fee_kind: Optional[FeeHeadKind] = Query(None, description="fee_type, special_fee_type, installment"),
    fee_head_id: Optional[UUID] = Query(None),
    installment_id: Optional[UUID] = Query(None),
    fee_group_id: Optional[UUID] = Query(None),
    student_id: Optional[UUID] = Query(None),
    payment_method: Optional[str] = Query(None),
) -> ReportFilters:
    try:
        return ReportFilters(
            class_id=class_id,
            payment_status=payment_status,
            on_date=on_date,
            start_date=start_date,
            end_date=end_date,
            year=year,
            search=search,
            fee_category_id=fee_category_id,
            fee_kind=fee_kind,
            fee_head_id=fee_head_id,
            installment_id=installment_id,
            fee_group_id=fee_group_id,
            student_id=student_id,
            payment_method=payment_method,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[{"loc": err["loc"], "msg": err["msg"]} for err in e.errors()],
        )


@router.get(
    "/modes",
    response_model=List[ReportModeInfo],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_report_modes() -> List[ReportModeInfo]:
    return list_modes()


@router.get(
    "/{mode}",
    response_model=ReportResult,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_report(
    mode: str,
    filters: ReportFilters = Depends(report_filters),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Report envelope. Failures come back as {ok: false, message} with the matching status code."""
    result = await service.build_report(db, current_user, mode, filters)
    if not result.ok:
        return JSONResponse(status_code=result.status_code, content=result.model_dump(mode="json"))
    return result


@router.get(
    "/{mode}/export",
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def export_fee_report(
    mode: str,
    export_format: ExportFormat = Query(ExportFormat.CSV, alias="format"),
    filters: ReportFilters = Depends(report_filters),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    result = await service.build_report(db, current_user, mode, filters)
    try:
        content, media_type, filename = export_report(result, export_format)
    except ServiceError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"ok": False, "message": e.message, "mode": mode},
        )
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
