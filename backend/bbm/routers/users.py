"""User management router.

Endpoints:
    GET    /users                        List users (paginated, searchable)
    GET    /users/{user_id}              Single user
    POST   /users                        Create user (admin)
    PUT    /users/{user_id}              Update user (admin)
    DELETE /users/{user_id}              Delete user (admin)
    PATCH  /users/{user_id}/toggle-status  Activate / deactivate (admin)
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.auth.deps import get_current_user, require_admin
from bbm.auth.password import hash_password
from bbm.auth.tokens import delete_user_refresh_tokens
from bbm.database import get_db
from bbm.middleware.exceptions import NotFoundError
from bbm.models.system_log import LogAction
from bbm.models.user import User
from bbm.schemas.auth import UserOut
from bbm.schemas.common import MessageResponse, PaginatedResponse, Pagination
from bbm.schemas.user import CreateUserRequest, ToggleStatusResponse, UserUpdate
from bbm.utils.activity import log_activity

router = APIRouter()


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User", user_id)
    return user


async def _email_taken(db: AsyncSession, email: str, exclude_id: int | None = None) -> bool:
    query = select(User.id).where(User.email == email)
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    result = await db.execute(query)
    return result.scalar_one_or_none() is not None


# ══════════════════════════════════════════════════════════════
# READ
# ══════════════════════════════════════════════════════════════

@router.get("", response_model=PaginatedResponse[UserOut])
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    query = select(User)
    if search:
        term = search.lower()
        query = query.where(
            or_(
                func.lower(User.name).contains(term, autoescape=True),
                func.lower(User.email).contains(term, autoescape=True),
            )
        )

    total_r = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_r.scalar() or 0

    result = await db.execute(
        query.order_by(User.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    return PaginatedResponse[UserOut](
        items=[UserOut.model_validate(u) for u in result.scalars().all()],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return UserOut.model_validate(await _get_user_or_404(db, user_id))


# ══════════════════════════════════════════════════════════════
# WRITE (admin)
# ══════════════════════════════════════════════════════════════

@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: CreateUserRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if await _email_taken(db, body.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=body.email,
        hashed_password=hash_password(body.password),
        name=body.name,
        role=body.role,
        location=body.location,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    await log_activity(
        db, request, admin,
        action=LogAction.USER_CREATED,
        entity_type="user",
        entity_id=user.id,
        details=f"Created {user.email} (role {int(user.role)})",
    )
    return UserOut.model_validate(user)


@router.put("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    body: UserUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Partial update. A new password is re-hashed; omitted fields stay."""
    target = await _get_user_or_404(db, user_id)
    changes = body.model_dump(exclude_unset=True)

    if "email" in changes and await _email_taken(db, changes["email"], exclude_id=target.id):
        raise HTTPException(status_code=400, detail="Email already registered")

    password = changes.pop("password", None)
    if password:
        target.hashed_password = hash_password(password)
    for field, value in changes.items():
        setattr(target, field, value)
    await db.flush()
    await db.refresh(target)

    if changes.get("is_active") is False:
        await delete_user_refresh_tokens(db, target.id)

    changed = sorted(changes) + (["password"] if password else [])
    await log_activity(
        db, request, admin,
        action=LogAction.USER_UPDATED,
        entity_type="user",
        entity_id=target.id,
        details=f"Updated {target.email}: {', '.join(changed) or 'no changes'}",
    )
    return UserOut.model_validate(target)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Delete a user. Fails with 409 while the user owns stock movements."""
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="Cannot delete yourself")

    target = await _get_user_or_404(db, user_id)
    email = target.email

    await delete_user_refresh_tokens(db, target.id)
    await db.delete(target)
    # Surface the movements FK violation here, as a 409
    await db.flush()

    await log_activity(
        db, request, admin,
        action=LogAction.USER_DELETED,
        entity_type="user",
        entity_id=user_id,
        details=f"Deleted {email}",
    )
    return MessageResponse(message="User deleted")


@router.patch("/{user_id}/toggle-status", response_model=ToggleStatusResponse)
async def toggle_user_status(
    user_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Flip is_active. Deactivation logs the user out of every device."""
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="Cannot change your own status")

    target = await _get_user_or_404(db, user_id)
    target.is_active = not target.is_active
    await db.flush()

    if not target.is_active:
        await delete_user_refresh_tokens(db, target.id)

    state = "activated" if target.is_active else "deactivated"
    await log_activity(
        db, request, admin,
        action=LogAction.USER_UPDATED,
        entity_type="user",
        entity_id=target.id,
        details=f"User {target.email} {state}",
    )
    return ToggleStatusResponse(message=f"User {state}", is_active=target.is_active)
