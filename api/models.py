"""
API request and response models for the tours REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
tours/models.py, which own the internal domain representation. Route
handlers map between the two.

Field names on the wire are camelCase (passwordConfirm, maxGroupSize, ...);
populate_by_name lets Python code build the models with snake_case names.

Separation of concerns: domain dataclasses = domain truth; api/ models = API contract.
"""

from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from auth.models import User
from tours.models import Difficulty, Tour

# bcrypt only looks at the first 72 bytes of a password.
_MAX_PASSWORD = 72

_Status = Literal["success"]

# Tour text fields are trimmed before the length check, so "   " is rejected
# and "Alpha " collides with "Alpha" on the unique name.
_TourName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
_TourText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
_TourNote = Annotated[str, StringConstraints(strip_whitespace=True)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Users -- request models
# ---------------------------------------------------------------------------


class SignupRequest(_CamelModel):
    """Request body for POST /api/v1/users/signup.

    Email format, password length and confirmation are checked by
    SessionAuthenticator.signup() so the CLI and the API share one rule set.
    Any `role` sent by the client is ignored -- new accounts are always `user`.
    """

    name: str = Field(default="", max_length=255)
    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=_MAX_PASSWORD)
    password_confirm: str = Field(default="", alias="passwordConfirm", max_length=_MAX_PASSWORD)


class LoginRequest(_CamelModel):
    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=_MAX_PASSWORD)


class ForgotPasswordRequest(_CamelModel):
    email: str = Field(default="", max_length=255)


class ResetPasswordRequest(_CamelModel):
    password: str = Field(default="", max_length=_MAX_PASSWORD)
    password_confirm: str = Field(default="", alias="passwordConfirm", max_length=_MAX_PASSWORD)


class UpdatePasswordRequest(_CamelModel):
    password_current: str = Field(default="", alias="passwordCurrent", max_length=_MAX_PASSWORD)
    password: str = Field(default="", max_length=_MAX_PASSWORD)
    password_confirm: str = Field(default="", alias="passwordConfirm", max_length=_MAX_PASSWORD)


# ---------------------------------------------------------------------------
# Users -- response models
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    """Public view of an identity. There is no password field on purpose."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str
    photo: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(id=user.id, name=user.name, email=user.email, role=user.role.value, photo=user.photo)


class UserData(BaseModel):
    user: UserOut


class UsersData(BaseModel):
    users: list[UserOut]


class AuthResponse(BaseModel):
    """Envelope returned by every endpoint that issues a session."""

    status: _Status = "success"
    token: str
    data: UserData


class UserResponse(BaseModel):
    status: _Status = "success"
    data: UserData


class UserListResponse(BaseModel):
    status: _Status = "success"
    results: int
    data: UsersData


class MessageResponse(BaseModel):
    status: _Status = "success"
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Tours
# ---------------------------------------------------------------------------


class TourCreate(_CamelModel):
    """Request body for POST /api/v1/tours."""

    name: _TourName
    duration: int = Field(gt=0)
    max_group_size: int = Field(gt=0, alias="maxGroupSize")
    difficulty: Difficulty
    price: float = Field(ge=0)
    summary: _TourText
    image_cover: str = Field(min_length=1, alias="imageCover")
    ratings_average: float = Field(default=4.5, ge=1, le=5, alias="ratingsAverage")
    ratings_quantity: int = Field(default=0, ge=0, alias="ratingsQuantity")
    price_discount: Optional[float] = Field(default=None, ge=0, alias="priceDiscount")
    description: Optional[_TourNote] = None
    images: list[str] = Field(default_factory=list)
    start_dates: list[str] = Field(default_factory=list, alias="startDates")


class TourUpdate(_CamelModel):
    """Request body for PATCH /api/v1/tours/{tour_id}. Only sent fields are written."""

    name: Optional[_TourName] = None
    duration: Optional[int] = Field(default=None, gt=0)
    max_group_size: Optional[int] = Field(default=None, gt=0, alias="maxGroupSize")
    difficulty: Optional[Difficulty] = None
    price: Optional[float] = Field(default=None, ge=0)
    summary: Optional[_TourText] = None
    image_cover: Optional[str] = Field(default=None, min_length=1, alias="imageCover")
    ratings_average: Optional[float] = Field(default=None, ge=1, le=5, alias="ratingsAverage")
    ratings_quantity: Optional[int] = Field(default=None, ge=0, alias="ratingsQuantity")
    price_discount: Optional[float] = Field(default=None, ge=0, alias="priceDiscount")
    description: Optional[_TourNote] = None
    images: Optional[list[str]] = None
    start_dates: Optional[list[str]] = Field(default=None, alias="startDates")


class TourOut(BaseModel):
    """Public view of a tour. created_at is internal and not exposed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    name: str
    duration: int
    max_group_size: int = Field(alias="maxGroupSize")
    difficulty: str
    price: float
    price_discount: Optional[float] = Field(default=None, alias="priceDiscount")
    summary: str
    description: Optional[str] = None
    image_cover: str = Field(alias="imageCover")
    images: list[str] = Field(default_factory=list)
    start_dates: list[str] = Field(default_factory=list, alias="startDates")
    ratings_average: float = Field(alias="ratingsAverage")
    ratings_quantity: int = Field(alias="ratingsQuantity")

    @classmethod
    def from_tour(cls, tour: Tour) -> "TourOut":
        """Factory Method: the mapping lives next to the output model, not in route handlers."""
        return cls(
            id=tour.id,
            name=tour.name,
            duration=tour.duration,
            max_group_size=tour.max_group_size,
            difficulty=tour.difficulty,
            price=tour.price,
            price_discount=tour.price_discount,
            summary=tour.summary,
            description=tour.description,
            image_cover=tour.image_cover,
            images=tour.images,
            start_dates=tour.start_dates,
            ratings_average=tour.ratings_average,
            ratings_quantity=tour.ratings_quantity,
        )


class TourData(BaseModel):
    tour: TourOut


class ToursData(BaseModel):
    tours: list[TourOut]


class TourResponse(BaseModel):
    status: _Status = "success"
    data: TourData


class TourListResponse(BaseModel):
    status: _Status = "success"
    results: int
    data: ToursData


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    status: Literal["fail", "error"]
    message: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
