"""User API routes.

Learn: Routes handle HTTP concerns (status codes, error responses),
UserService handles business logic. The publisher and cache are
injected as dependencies, so tests can swap them for mocks and the API
keeps serving database reads when Redis is down.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from userpulse.broker.publisher import EventPublisher, get_publisher
from userpulse.cache import RedisCache, get_user_cache
from userpulse.db.engine import get_db
from userpulse.schemas.user import UserCreate, UserRead, UserUpdate
from userpulse.services.user_service import (
    EmailAlreadyRegisteredError,
    UserNotFoundError,
    UserService,
)

router = APIRouter()


def _svc(
    db: AsyncSession = Depends(get_db),
    publisher: Optional[EventPublisher] = Depends(get_publisher),
    cache: Optional[RedisCache] = Depends(get_user_cache),
) -> UserService:
    return UserService(db, publisher=publisher, cache=cache)


@router.post("/users", response_model=UserRead, status_code=201)
async def create_user(body: UserCreate, svc: UserService = Depends(_svc)):
    """Register a user. Publishes user.created, or user.created.failed on a duplicate email."""
    try:
        return await svc.create_user(name=body.name, email=body.email)
    except EmailAlreadyRegisteredError:
        raise HTTPException(status_code=409, detail="Email already registered")


@router.get("/users", response_model=list[UserRead])
async def list_users(svc: UserService = Depends(_svc)):
    return await svc.list_users()


@router.get("/users/deleted", response_model=list[UserRead])
async def list_deleted_users(svc: UserService = Depends(_svc)):
    return await svc.list_deleted_users()


@router.get("/users/by-email", response_model=UserRead)
async def get_user_by_email(
    email: str = Query(..., min_length=3),
    svc: UserService = Depends(_svc),
):
    try:
        return await svc.get_by_email(email)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")


@router.patch("/users/{user_id}", response_model=UserRead)
async def update_user(
    user_id: int,
    body: UserUpdate,
    svc: UserService = Depends(_svc),
):
    try:
        return await svc.update_user(user_id, name=body.name, email=body.email)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    except EmailAlreadyRegisteredError:
        raise HTTPException(status_code=409, detail="Email already registered")


@router.delete("/users/{user_id}", response_model=UserRead)
async def delete_user(user_id: int, svc: UserService = Depends(_svc)):
    """Soft delete — the user is hidden from reads but keeps its email reserved."""
    try:
        return await svc.soft_delete_user(user_id)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
