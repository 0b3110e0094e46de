from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from erms.dependencies import Principal, get_db, require_page
from erms.logging_config import get_logger
from erms.schemas.views import (
    EmployeePerformanceViewModel, ProjectReportViewModel, ProjectSummaryViewModel, ReportFilter, select_options
)
from erms.services import departments as department_service
from erms.services import procedures
from erms.services.pdf import employee_performance_pdf, project_summary_pdf
from erms.services.reports import (
    employee_performance, generate_status_chart, get_task_dataframe, project_report
)
from erms.templating import redirect, render
from erms.utils.forms import validate_form

logger = get_logger(__name__)

router = APIRouter(prefix="/Report", tags=["reports"], include_in_schema=False)


def _filters(request: Request):
    filters, form = validate_form(ReportFilter, dict(request.query_params))
    return filters or ReportFilter(), form


async def _department_options(db: AsyncSession, selected):
    departments = await department_service.list_departments(db)
    return select_options(((d.department_id, d.department_name) for d in departments), selected)


def _pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/Projects")
async def projects(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("report.view")),
):
    filters, form = _filters(request)
    model = ProjectReportViewModel(
        filters=filters,
        departments=await _department_options(db, filters.department_id),
        rows=await project_report(db, filters),
    )
    return render(request, "report/projects.html", principal=principal, model=model, form=form)


@router.get("/EmployeePerformance")
async def employee_performance_page(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("report.view")),
):
    filters, form = _filters(request)
    model = EmployeePerformanceViewModel(
        filters=filters,
        departments=await _department_options(db, filters.department_id),
        rows=await employee_performance(db, filters),
    )
    return render(request, "report/employee_performance.html", principal=principal, model=model, form=form)


@router.get("/ProjectSummary")
async def project_summary(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("report.view")),
):
    try:
        rows = await procedures.get_project_task_summary(db)
    except SQLAlchemyError as e:
        logger.error("Error generating project summary report: %s", e, exc_info=True)
        return redirect("/Home/Index", "Error generating project summary report.", category="danger")
    model = ProjectSummaryViewModel(rows=rows)
    return render(request, "report/project_summary.html", principal=principal, model=model)


@router.get("/StatusChart")
async def status_chart(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("report.view")),
):
    df = await get_task_dataframe(db)
    img_buf = await run_in_threadpool(generate_status_chart, df)
    if not img_buf:
        return Response(status_code=204)
    return StreamingResponse(img_buf, media_type="image/png")


@router.get("/ExportProjectSummaryPdf")
async def export_project_summary_pdf(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("report.view")),
):
    filters, _ = _filters(request)
    rows = await project_report(db, filters)
    df = await get_task_dataframe(db)
    chart = await run_in_threadpool(generate_status_chart, df)
    content = await run_in_threadpool(project_summary_pdf, rows, chart)
    logger.info("User %s exported the project summary PDF (%d rows)", principal.user_id, len(rows))
    return _pdf_response(content, "ProjectSummary.pdf")


@router.get("/ExportEmployeePerformancePdf")
async def export_employee_performance_pdf(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("report.view")),
):
    filters, _ = _filters(request)
    rows = await employee_performance(db, filters)
    content = await run_in_threadpool(employee_performance_pdf, rows)
    logger.info("User %s exported the employee performance PDF (%d rows)", principal.user_id, len(rows))
    return _pdf_response(content, "EmployeePerformance.pdf")
