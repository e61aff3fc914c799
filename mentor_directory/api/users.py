"""User account API endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, status

from mentor_directory.api.dependencies import get_current_user, get_directory
from mentor_directory.schemas.user import ProfileUpdate, UserCreate, UserLogin
from mentor_directory.services.directory import UserDirectory

router = APIRouter(prefix="/api/v1/users", tags=["users"])


def envelope(result: Any) -> dict[str, Any]:
    return {"result": result, "error": 0}


@router.post("", status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserCreate,
    directory: Annotated[UserDirectory, Depends(get_directory)],
):
    """Register a new user or mentor."""
    return envelope(directory.create_user(user_data.model_dump()))


@router.post("/login")
def login(
    credentials: UserLogin,
    directory: Annotated[UserDirectory, Depends(get_directory)],
):
    """Login with email and password."""
    return envelope(
        directory.login(credentials.email, credentials.password, credentials.type_user)
    )


@router.get("/me")
def get_me(
    current_user: Annotated[dict, Depends(get_current_user)],
    directory: Annotated[UserDirectory, Depends(get_directory)],
):
    """Get the profile of the token's owner."""
    return envelope(directory.get_user(current_user["id"], current_user["type_user"]))


@router.put("/me")
def update_me(
    updates: ProfileUpdate,
    current_user: Annotated[dict, Depends(get_current_user)],
    directory: Annotated[UserDirectory, Depends(get_directory)],
):
    """Update the profile of the token's owner."""
    search = {"id": current_user["id"], "type_user": current_user["type_user"]}
    directory.set_user(search, updates.model_dump(exclude_unset=True))
    return envelope(directory.get_user(current_user["id"], current_user["type_user"]))
