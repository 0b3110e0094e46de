from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from erms.dependencies import Principal, get_db, require_api
from erms.logging_config import get_logger
from erms.schemas.task import TaskCreate, TaskDto, TaskStatusUpdate, TaskUpdate
from erms.services import tasks as task_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/TasksApi", tags=["tasks"])


@router.get("", response_model=list[TaskDto])
async def list_tasks(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("task.view")),
):
    tasks = await task_service.list_tasks(db)
    return [task_service.to_task_dto(t) for t in tasks]


@router.get("/user/{user_id}", response_model=list[TaskDto])
async def list_tasks_for_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("task.view")),
):
    tasks = await task_service.tasks_for_user(db, user_id)
    return [task_service.to_task_dto(t) for t in tasks]


@router.get("/project/{project_id}", response_model=list[TaskDto])
async def list_tasks_for_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("task.view")),
):
    tasks = await task_service.tasks_for_project(db, project_id)
    return [task_service.to_task_dto(t) for t in tasks]


@router.get("/{task_id}", response_model=TaskDto)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("task.view")),
):
    return task_service.to_task_dto(await task_service.get_task(db, task_id))


@router.post("", response_model=TaskDto, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("task.create")),
):
    try:
        task = await task_service.create_task(db, task_data)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Database error creating task %s", task_data.task_name)
        raise HTTPException(status_code=500, detail="A database error occurred while creating the task.")
    response.headers["Location"] = f"/api/TasksApi/{task.task_id}"
    return task_service.to_task_dto(await task_service.get_task(db, task.task_id))


@router.put("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_task(
    task_id: int,
    task_data: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("task.edit")),
):
    try:
        await task_service.update_task(db, task_id, task_data)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Database error updating task %s", task_id)
        raise HTTPException(status_code=500, detail=f"A database error occurred while updating task {task_id}.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{task_id}/status")
async def update_task_status(
    task_id: int,
    status_data: TaskStatusUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("task.status")),
):
    try:
        await task_service.update_task_status(db, task_id, status_data)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Database error updating status for task %s", task_id)
        raise HTTPException(
            status_code=500, detail=f"A database error occurred while updating status for task {task_id}."
        )
    return {"message": f"Status for task {task_id} updated successfully."}


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("task.delete")),
):
    try:
        await task_service.delete_task(db, task_id)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Database error deleting task %s", task_id)
        raise HTTPException(status_code=500, detail=f"A database error occurred while deleting task {task_id}.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
