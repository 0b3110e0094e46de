from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from erms.dependencies import Principal, get_db, require_api
from erms.logging_config import get_logger
from erms.schemas.employee import EmployeeCreate, EmployeeDto, EmployeeUpdate
from erms.services import employees as employee_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/EmployeesApi", tags=["employees"])


@router.get("", response_model=list[EmployeeDto])
async def list_employees(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("employee.view")),
):
    return await employee_service.list_employees(db)


@router.get("/{employee_id}", response_model=EmployeeDto)
async def get_employee(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("employee.view")),
):
    return await employee_service.get_employee(db, employee_id)


@router.post("", response_model=EmployeeDto, status_code=status.HTTP_201_CREATED)
async def create_employee(
    employee_data: EmployeeCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("employee.create")),
):
    try:
        user = await employee_service.create_employee(db, employee_data)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Database error creating employee %s", employee_data.email)
        raise HTTPException(status_code=500, detail="An unexpected error occurred while creating the employee.")
    response.headers["Location"] = f"/api/EmployeesApi/{user.id}"
    return await employee_service.get_employee(db, user.id)


@router.put("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_employee(
    employee_id: str,
    employee_data: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("employee.edit")),
):
    try:
        await employee_service.update_employee(db, employee_id, employee_data)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Database error updating employee %s", employee_id)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred updating employee {employee_id}.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_employee(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("employee.delete")),
):
    try:
        await employee_service.delete_employee(db, employee_id)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Database error deleting employee %s", employee_id)
        raise HTTPException(status_code=500, detail="An error occurred while deleting the employee.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
