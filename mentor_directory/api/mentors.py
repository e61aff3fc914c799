"""Public mentor lookup and search endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from mentor_directory.api.dependencies import get_directory
from mentor_directory.api.users import envelope
from mentor_directory.services.directory import UserDirectory

router = APIRouter(prefix="/api/v1", tags=["mentors"])


@router.get("/mentors/{search_key}")
def get_mentor(
    search_key: str,
    directory: Annotated[UserDirectory, Depends(get_directory)],
):
    """Get a mentor's public profile by search key."""
    return envelope(directory.get_user_by_search_key(search_key))


@router.get("/search/{query}")
def search_mentors(
    query: str,
    directory: Annotated[UserDirectory, Depends(get_directory)],
):
    """Search mentors by name fragments and tags."""
    return envelope(directory.search_mentors(query))
