from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from erms.dependencies import Principal, get_db, require_api
from erms.logging_config import get_logger
from erms.schemas.project import ProjectCreate, ProjectDto, ProjectUpdate
from erms.services import projects as project_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/ProjectsApi", tags=["projects"])


@router.get("", response_model=list[ProjectDto])
async def list_projects(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("project.view")),
):
    logger.info("Retrieving all projects")
    return await project_service.list_projects(db)


@router.get("/{project_id}", response_model=ProjectDto)
async def get_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("project.view")),
):
    return await project_service.get_project_dto(db, project_id)


@router.post("", response_model=ProjectDto, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("project.create")),
):
    try:
        project = await project_service.create_project(db, project_data)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Database error creating project %s", project_data.project_name)
        raise HTTPException(status_code=500, detail="A database error occurred while creating the project.")
    response.headers["Location"] = f"/api/ProjectsApi/{project.project_id}"
    return await project_service.get_project_dto(db, project.project_id)


@router.put("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_project(
    project_id: int,
    project_data: ProjectUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("project.edit")),
):
    try:
        await project_service.update_project(db, project_id, project_data)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Database error updating project %s", project_id)
        raise HTTPException(status_code=500, detail=f"A database error occurred while updating project {project_id}.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api("project.delete")),
):
    try:
        await project_service.delete_project(db, project_id)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Database error deleting project %s", project_id)
        raise HTTPException(
            status_code=500,
            detail=f"A database error occurred while deleting project {project_id}. Check for dependencies."
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
