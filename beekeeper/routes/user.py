from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import or_

from starlette import status

from beekeeper.models.user import User
from beekeeper.policy.ownership import ensure_can_change_role
from beekeeper.policy.roles import Identity, Role
from beekeeper.schemas.common import ApiResponse
from beekeeper.schemas.user import UserCreate, UserInDB, RoleUpdate, Token
from beekeeper.utils.exceptions import NotFound, PASSTHROUGH_ERRORS
from beekeeper.utils.security import get_password_hash, create_access_token
from dependencies import get_db, get_current_user, require_admin, logger

router = APIRouter()


@router.get("/me", response_model=UserInDB)
async def read_users_me(current_user: User = Depends(get_current_user)):
    """Get current user profile."""
    return current_user


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register_user(
    user: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """Register a new reader account. New accounts always start with the user role."""
    try:
        existing_user = await db.scalar(
            select(User).filter(or_(User.username == user.username, User.email == user.email))
        )
        if existing_user:
            raise HTTPException(status_code=400, detail="User already registered")

        db_user = User(
            username=user.username,
            email=user.email,
            password_hash=get_password_hash(user.password),
            first_name=user.first_name,
            last_name=user.last_name,
            bio=user.bio,
            role=Role.USER,
        )
        db.add(db_user)
        await db.commit()
        await db.refresh(db_user)

        access_token = create_access_token(data={"sub": str(db_user.id)})
        return {"access_token": access_token, "token_type": "bearer"}

    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error in register_user: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to register user")


@router.put("/{user_id}/role", response_model=ApiResponse[UserInDB])
async def update_user_role(
    user_id: int,
    role_update: RoleUpdate,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Change another user's role. Nobody can change their own role."""
    try:
        ensure_can_change_role(admin, user_id)

        user = await db.get(User, user_id)
        if not user:
            raise NotFound("User")

        user.role = role_update.role
        await db.commit()
        await db.refresh(user)
        logger.info(f"Admin {admin.id} set role of user {user_id} to {role_update.role.value}")

        return ApiResponse(message="User role updated", data=UserInDB.model_validate(user))

    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating role of user {user_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update user role"
        )
