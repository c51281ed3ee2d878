"""JSON auth endpoints (/api/auth/register, /api/auth/login).

Both return ``{ token }``, a bearer access token carrying the user id
and role.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from coursehub.api.dependencies import Repos
from coursehub.models.principal import Role
from coursehub.services import auth_service, token_service, users_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# --- Request / Response schemas -------------------------------------------


class RegisterIn(BaseModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6)
    role: Role = Role.STUDENT


class LoginIn(BaseModel):
    username: str
    password: str


class TokenOut(BaseModel):
    token: str


# --- POST /api/auth/register -----------------------------------------------


@router.post(
    "/register",
    response_model=TokenOut,
    status_code=status.HTTP_201_CREATED,
)
async def register(payload: RegisterIn, repos: Repos) -> TokenOut:
    try:
        user = await users_service.register_user(
            repos.users,
            username=payload.username,
            password=payload.password,
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=payload.role,
        )
    except users_service.UserAlreadyExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message,
        ) from None
    except users_service.UserValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=e.message,
        ) from None

    token = token_service.create_access_token(sub=user.id, role=user.role)
    return TokenOut(token=token)


# --- POST /api/auth/login --------------------------------------------------


@router.post("/login", response_model=TokenOut)
async def login(payload: LoginIn, repos: Repos) -> TokenOut:
    username = payload.username.strip()

    user = await auth_service.authenticate_user(repos.users, username, payload.password)
    if user is None:
        logger.warning("Login failed username=%s", username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    logger.info("Login succeeded user_id=%s", user.id)
    token = token_service.create_access_token(sub=user.id, role=user.role)
    return TokenOut(token=token)
