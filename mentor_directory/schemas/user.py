"""User request schemas."""

from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, model_validator

UserTypeName = Literal["user", "mentor"]

# Emails compare case-insensitively
LowerEmail = Annotated[EmailStr, AfterValidator(str.lower)]


class UserCreate(BaseModel):
    """User registration request."""

    name: str = Field(..., min_length=1, max_length=255)
    email: LowerEmail = Field(..., max_length=255)
    password: str = Field(..., min_length=4, max_length=72)
    password_confirmation: str
    type_user: UserTypeName = "user"

    @model_validator(mode="after")
    def passwords_match(self) -> "UserCreate":
        """Check the confirmation repeats the password."""
        if self.password != self.password_confirmation:
            raise ValueError("The confirmation password must be the same as the password.")
        return self


class UserLogin(BaseModel):
    """User login request."""

    email: LowerEmail = Field(..., max_length=255)
    password: str = Field(..., min_length=1, max_length=72)
    type_user: UserTypeName | None = None


class ProfileUpdate(BaseModel):
    """Profile fields a user may change about themselves.

    Anything else in the request body is ignored.
    """

    model_config = ConfigDict(extra="ignore")

    email: LowerEmail | None = Field(None, max_length=255)
    name: str | None = Field(None, min_length=1, max_length=255)
    password: str | None = Field(None, min_length=4, max_length=72)
    bio: str | None = Field(None, max_length=5000)
    role: str | None = Field(None, max_length=255)
    location: str | None = Field(None, max_length=255)
    homepage: str | None = Field(None, max_length=500)
    company: str | None = Field(None, max_length=255)
    picture_hash: str | None = Field(None, max_length=255)
    tags: list[str] | None = Field(None, max_length=50)
