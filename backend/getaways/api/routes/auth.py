"""
Authentication endpoints: staff login and account creation.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from getaways.core.security import require_admin
from getaways.db.session import get_db
from getaways.models.staff import Staff
from getaways.schemas.staff import StaffCreate, StaffLogin, StaffResponse, Token
from getaways.services.auth_service import authenticate_staff, create_staff

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=Token)
async def login(login_data: StaffLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive a JWT access token."""
    token = await authenticate_staff(db, login_data)
    return Token(access_token=token)


@router.post("/staff", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
async def create_staff_account(
    staff_data: StaffCreate,
    admin: Staff = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a staff account. Admin only."""
    return await create_staff(db, staff_data)
