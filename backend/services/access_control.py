# backend/services/access_control.py
from typing import List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Project, User, UserProjectAssignment

logger = logging.getLogger(__name__)


async def has_project_access(db: AsyncSession, user_id: str, project_id: Optional[str]) -> bool:
    """Owner or assigned user may read and write the project's resources.

    Fails closed when the project does not exist.
    """
    if not project_id:
        return False

    project = await db.get(Project, project_id)
    if project is None:
        return False

    if project.owner_id == user_id:
        return True

    result = await db.execute(
        select(UserProjectAssignment.id).where(
            UserProjectAssignment.user_id == user_id,
            UserProjectAssignment.project_id == project_id,
        )
    )
    return result.first() is not None


async def accessible_project_ids(db: AsyncSession, user_id: str) -> List[str]:
    """Ids of projects the user owns or is assigned to"""
    owned = await db.execute(select(Project.id).where(Project.owner_id == user_id))
    assigned = await db.execute(
        select(UserProjectAssignment.project_id).where(UserProjectAssignment.user_id == user_id)
    )

    project_ids = list(owned.scalars().all())
    for project_id in assigned.scalars().all():
        if project_id not in project_ids:
            project_ids.append(project_id)
    return project_ids


def is_project_owner(project: Project, user: User) -> bool:
    return project.owner_id == user.id


def can_manage_assignments(project: Project, user: User) -> bool:
    # Admins bypass project membership here only
    return user.is_admin or is_project_owner(project, user)
