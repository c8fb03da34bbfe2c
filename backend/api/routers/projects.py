# backend/api/routers/projects.py
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, require_admin
from api.schemas import AssignUserRequest, ProjectRequest
from api.serializers import serialize_project, serialize_user
from database.connection import get_db
from database.models import Project, User, UserProjectAssignment
from services.access_control import (
    accessible_project_ids, can_manage_assignments, has_project_access, is_project_owner,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


async def _get_project(db: AsyncSession, project_id: str) -> Project:
    project = await db.get(Project, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


async def _assigned_users(db: AsyncSession, project_id: str):
    result = await db.execute(
        select(UserProjectAssignment).where(UserProjectAssignment.project_id == project_id)
    )
    return [a.user for a in result.scalars().all() if a.user is not None]


@router.get("")
async def list_projects(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Projects the caller owns or is assigned to"""
    try:
        project_ids = await accessible_project_ids(db, user.id)
        if not project_ids:
            return []

        result = await db.execute(
            select(Project).where(Project.id.in_(project_ids)).order_by(Project.created_at.desc())
        )
        return [serialize_project(p) for p in result.scalars().all()]
    except Exception as e:
        logger.error(f"❌ Get projects error: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch projects")


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await _get_project(db, project_id)
    if not await has_project_access(db, user.id, project_id):
        raise HTTPException(status_code=403, detail="Access denied")

    return serialize_project(project, assigned_users=await _assigned_users(db, project_id))


@router.post("", status_code=201)
async def create_project(
    body: ProjectRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not body.name:
        raise HTTPException(status_code=400, detail="Project name is required")

    try:
        project = Project(name=body.name, description=body.description or "", owner_id=user.id)
        db.add(project)
        await db.commit()
        await db.refresh(project, attribute_names=["owner"])
        logger.info(f"✅ Project created: {project.name}")
        return serialize_project(project)
    except Exception as e:
        logger.error(f"❌ Create project error: {e}")
        raise HTTPException(status_code=500, detail="Failed to create project")


@router.put("/{project_id}")
async def update_project(
    project_id: str,
    body: ProjectRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await _get_project(db, project_id)
    if not is_project_owner(project, user):
        raise HTTPException(status_code=403, detail="Only project owner can update")

    try:
        if body.name:
            project.name = body.name
        if body.description is not None:
            project.description = body.description
        await db.commit()
        return serialize_project(project)
    except Exception as e:
        logger.error(f"❌ Update project error: {e}")
        raise HTTPException(status_code=500, detail="Failed to update project")


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Removes the project and its assignments; services and logs stay behind"""
    project = await _get_project(db, project_id)
    if not is_project_owner(project, user):
        raise HTTPException(status_code=403, detail="Only project owner can delete")

    try:
        await db.execute(
            delete(UserProjectAssignment).where(UserProjectAssignment.project_id == project_id)
        )
        await db.delete(project)
        await db.commit()
        logger.info(f"✅ Project deleted: {project_id}")
        return {"message": "Project deleted successfully"}
    except Exception as e:
        logger.error(f"❌ Delete project error: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete project")


@router.post("/{project_id}/assign", status_code=201)
async def assign_user(
    project_id: str,
    body: AssignUserRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not body.user_id:
        raise HTTPException(status_code=400, detail="User ID is required")

    project = await _get_project(db, project_id)
    if not can_manage_assignments(project, user):
        raise HTTPException(status_code=403, detail="Only admin or project owner can assign users")

    assignee = await db.get(User, body.user_id)
    if assignee is None:
        raise HTTPException(status_code=404, detail="User not found")

    existing = await db.execute(
        select(UserProjectAssignment.id).where(
            UserProjectAssignment.user_id == body.user_id,
            UserProjectAssignment.project_id == project_id,
        )
    )
    if existing.first() is not None:
        raise HTTPException(status_code=400, detail="User is already assigned to this project")

    try:
        assignment = UserProjectAssignment(user_id=body.user_id, project_id=project_id)
        db.add(assignment)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="User is already assigned to this project")
    except Exception as e:
        logger.error(f"❌ Assign user error: {e}")
        raise HTTPException(status_code=500, detail="Failed to assign user")

    return {
        "id": assignment.id,
        "project_id": project_id,
        "user": serialize_user(assignee),
    }


@router.delete("/{project_id}/assign/{user_id}")
async def remove_user(
    project_id: str,
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await _get_project(db, project_id)
    if not can_manage_assignments(project, user):
        raise HTTPException(status_code=403, detail="Only admin or project owner can remove users")

    if project.owner_id == user_id:
        raise HTTPException(status_code=400, detail="Cannot remove project owner")

    result = await db.execute(
        select(UserProjectAssignment).where(
            UserProjectAssignment.user_id == user_id,
            UserProjectAssignment.project_id == project_id,
        )
    )
    assignment = result.scalar_one_or_none()
    if assignment is None:
        raise HTTPException(status_code=404, detail="User assignment not found")

    try:
        await db.delete(assignment)
        await db.commit()
        return {"message": "User removed from project successfully"}
    except Exception as e:
        logger.error(f"❌ Remove user error: {e}")
        raise HTTPException(status_code=500, detail="Failed to remove user")


@router.get("/{project_id}/users/available")
async def available_users(
    project_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Users that are neither the owner nor already assigned"""
    project = await _get_project(db, project_id)

    assigned = await db.execute(
        select(UserProjectAssignment.user_id).where(UserProjectAssignment.project_id == project_id)
    )
    excluded = set(assigned.scalars().all())
    excluded.add(project.owner_id)

    result = await db.execute(select(User).order_by(User.email))
    return [serialize_user(u) for u in result.scalars().all() if u.id not in excluded]
