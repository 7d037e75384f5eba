"""
Staff account management and login.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from getaways.models.staff import Staff
from getaways.schemas.staff import StaffCreate, StaffLogin
from getaways.core.security import hash_password, verify_password, create_access_token
from getaways.core.logging import get_logger

logger = get_logger(__name__)


async def create_staff(db: AsyncSession, staff_data: StaffCreate) -> Staff:
    """
    Create a staff account with a hashed password.
    Raises 409 if email or username already exists.
    """
    result = await db.execute(select(Staff).where(Staff.email == staff_data.email.lower()))
    if result.scalar_one_or_none():
        logger.warning("staff_create_failed", reason="email_exists", email=staff_data.email)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    result = await db.execute(select(Staff).where(Staff.username == staff_data.username))
    if result.scalar_one_or_none():
        logger.warning("staff_create_failed", reason="username_exists", username=staff_data.username)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already taken",
        )

    staff = Staff(
        email=staff_data.email.lower(),
        username=staff_data.username,
        hashed_password=hash_password(staff_data.password),
        is_admin=staff_data.is_admin,
    )
    db.add(staff)
    await db.flush()
    await db.refresh(staff)

    logger.info("staff_created", staff_id=staff.id, email=staff.email, is_admin=staff.is_admin)
    return staff


async def authenticate_staff(db: AsyncSession, login_data: StaffLogin) -> str:
    """
    Authenticate staff and return a JWT access token.
    Raises 401 if credentials are invalid.
    """
    result = await db.execute(select(Staff).where(Staff.email == login_data.email.lower()))
    staff = result.scalar_one_or_none()

    if not staff or not verify_password(login_data.password, staff.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not staff.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    token = create_access_token(data={"sub": str(staff.id)})
    logger.info("staff_logged_in", staff_id=staff.id)
    return token
