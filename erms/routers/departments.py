from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from erms.dependencies import Principal, get_db, require_page
from erms.exceptions import ConcurrencyError, DependencyError, NotFoundError
from erms.logging_config import get_logger
from erms.schemas.department import DepartmentCreate, DepartmentUpdate
from erms.schemas.views import DepartmentFormViewModel, FormState
from erms.services import departments as department_service
from erms.templating import redirect, render
from erms.utils.forms import optional_int, read_form, validate_form

logger = get_logger(__name__)

router = APIRouter(prefix="/Department", tags=["departments"], include_in_schema=False)


async def _load_or_404(db: AsyncSession, department_id: int):
    department = await department_service.find_department(db, department_id)
    if department is None:
        raise HTTPException(status_code=404, detail="Department not found")
    return department


@router.get("")
@router.get("/Index")
async def index(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("department.view")),
):
    departments = await department_service.list_departments(db)
    return render(request, "department/index.html", principal=principal, departments=departments)


@router.get("/Details/{department_id}")
async def details(
    department_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("department.view")),
):
    department = await _load_or_404(db, department_id)
    employees = await department_service.employee_count(db, department_id)
    return render(
        request, "department/details.html",
        principal=principal, department=department, employee_count=employees
    )


@router.get("/Create")
async def create_page(request: Request, principal: Principal = Depends(require_page("department.create"))):
    return render(
        request, "department/form.html",
        principal=principal, model=DepartmentFormViewModel(), form=FormState(), action="/Department/Create"
    )


@router.post("/Create")
async def create(
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("department.create")),
):
    data = await read_form(request)
    payload, form = validate_form(DepartmentCreate, data)
    if payload is not None:
        await department_service.create_department(db, payload)
        return redirect("/Department/Index", "Department created successfully.")
    model = DepartmentFormViewModel.from_form(data)
    return render(
        request, "department/form.html",
        principal=principal, model=model, form=form, action="/Department/Create"
    )


@router.get("/Edit/{department_id}")
async def edit_page(
    department_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("department.edit")),
):
    department = await _load_or_404(db, department_id)
    model = DepartmentFormViewModel.from_entity(department)
    return render(
        request, "department/form.html",
        principal=principal, model=model, form=FormState(), action=f"/Department/Edit/{department_id}"
    )


@router.post("/Edit/{department_id}")
async def edit(
    department_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("department.edit")),
):
    data = await read_form(request)
    if optional_int(data.get("department_id")) != department_id:
        raise HTTPException(status_code=404, detail="Department not found")

    payload, form = validate_form(DepartmentUpdate, data)
    if payload is not None:
        try:
            await department_service.update_department(db, department_id, payload)
            return redirect("/Department/Index", "Department updated successfully.")
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Department not found")
        except ConcurrencyError as exc:
            logger.warning("Concurrency conflict editing department %s", department_id)
            form.add("", exc.message)

    model = DepartmentFormViewModel.from_form(data)
    return render(
        request, "department/form.html",
        principal=principal, model=model, form=form, action=f"/Department/Edit/{department_id}"
    )


@router.get("/Delete/{department_id}")
async def delete_page(
    department_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("department.delete")),
):
    department = await _load_or_404(db, department_id)
    error = None
    if await department_service.employee_count(db, department_id):
        error = department_service.HAS_EMPLOYEES_MESSAGE
    return render(request, "department/delete.html", principal=principal, department=department, error=error)


@router.post("/Delete/{department_id}")
async def delete_confirmed(
    department_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_page("department.delete")),
):
    try:
        await department_service.delete_department(db, department_id)
    except NotFoundError:
        return redirect("/Department/Index")
    except DependencyError as exc:
        department = await _load_or_404(db, department_id)
        return render(
            request, "department/delete.html", principal=principal, department=department, error=exc.message
        )
    return redirect("/Department/Index", "Department deleted successfully.")
