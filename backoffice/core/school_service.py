"""School scoping helpers shared by the fee services."""
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.schemas import CurrentUser
from backoffice.core.exceptions import ServiceError
from backoffice.core.models import Student

NO_SCHOOL_MESSAGE = "Admin not associated with a school."


def require_school(ctx: CurrentUser) -> UUID:
    """School of the caller; aborts when the caller has none."""
    if ctx is None or ctx.school_id is None:
        raise ServiceError(NO_SCHOOL_MESSAGE, status.HTTP_403_FORBIDDEN)
    return ctx.school_id


async def get_school_student(db: AsyncSession, school_id: UUID, student_id: UUID) -> Student:
    student = (
        await db.execute(
            select(Student).where(Student.id == student_id, Student.school_id == school_id)
        )
    ).scalar_one_or_none()
    if not student:
        raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)
    return student
