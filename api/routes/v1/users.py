"""
api/routes/v1/users.py -- Authentication and user endpoints.

Routes:
  POST  /api/v1/users/signup                 -- create account; sets JWT cookie; 201
  POST  /api/v1/users/login                  -- password login; sets JWT cookie
  GET   /api/v1/users/logout                 -- overwrites the JWT cookie
  POST  /api/v1/users/forgotPassword         -- email a reset link
  PATCH /api/v1/users/resetPassword/{token}  -- consume reset token; sets JWT cookie
  PATCH /api/v1/users/updateMyPassword       -- change password (requires auth)
  GET   /api/v1/users/me                     -- current user (requires auth)
  GET   /api/v1/users                        -- list users (admin only)

Every endpoint that issues a session responds with the same envelope:
  {"status": "success", "token": "...", "data": {"user": {...}}}
and writes the token into an httpOnly `jwt` cookie. The user object is built
from UserOut, which has no password field.

Errors are raised as core.errors.AppError subclasses by the auth services and
rendered by the AppError handler in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    UpdatePasswordRequest,
    UserData,
    UserListResponse,
    UserOut,
    UserResponse,
    UsersData,
)
from auth.dependencies import get_current_user, restrict_to
from auth.models import Role, User
from auth.reset import PasswordResetFlow
from auth.session import Session, SessionAuthenticator
from auth.store import UserStore
from auth.tokens import clear_auth_cookie, set_auth_cookie

# Auth policy:
# - signup, login, logout, forgotPassword, resetPassword: public
# - updateMyPassword, me:                                  requires auth (get_current_user)
# - GET /users:                                            requires admin (restrict_to)
router = APIRouter(prefix="/users")


def _send_session(request: Request, session: Session, status_code: int = 200) -> JSONResponse:
    """Render the session envelope and set the JWT cookie."""
    settings = request.app.state.settings
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            token=session.token,
            data=UserData(user=UserOut.from_user(session.user)),
        ).model_dump(),
    )
    set_auth_cookie(resp, session.token, max_age=settings.cookie_max_age, secure=settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/signup", response_model=AuthResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Create a `user`-role account and log it in."""
    authenticator: SessionAuthenticator = request.app.state.authenticator
    session = authenticator.signup(body.name, body.email, body.password, body.password_confirm)
    return _send_session(request, session, status_code=201)


@router.post("/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Unknown email and wrong password produce the same 401 message.
    """
    authenticator: SessionAuthenticator = request.app.state.authenticator
    session = authenticator.login(body.email, body.password)
    return _send_session(request, session)


@router.get("/logout", response_model=MessageResponse)
async def logout(request: Request) -> JSONResponse:
    """Replace the JWT cookie with a short-lived dummy value."""
    resp = JSONResponse(content=MessageResponse().model_dump(exclude_none=True))
    clear_auth_cookie(resp, secure=request.app.state.settings.secure_cookies)
    return resp


@router.post("/forgotPassword", response_model=MessageResponse)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    """Email a one-time reset link to the account owner."""
    reset_flow: PasswordResetFlow = request.app.state.reset_flow
    reset_url_base = f"{str(request.base_url).rstrip('/')}/api/v1/users/resetPassword"
    reset_flow.forgot_password(body.email, reset_url_base)
    return MessageResponse(message="Token sent to email!")


@router.patch("/resetPassword/{token}", response_model=AuthResponse)
def reset_password(request: Request, token: str, body: ResetPasswordRequest) -> JSONResponse:
    """Set a new password using the emailed reset token and log the user in."""
    reset_flow: PasswordResetFlow = request.app.state.reset_flow
    session = reset_flow.reset_password(token, body.password, body.password_confirm)
    return _send_session(request, session)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.patch("/updateMyPassword", response_model=AuthResponse)
def update_my_password(
    request: Request,
    body: UpdatePasswordRequest,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Change the password of the logged-in user.

    Every other token issued to this user stops working; the token in the
    response is the new one.
    """
    authenticator: SessionAuthenticator = request.app.state.authenticator
    session = authenticator.update_password(
        current_user,
        body.password_current,
        body.password,
        body.password_confirm,
    )
    return _send_session(request, session)


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the currently authenticated user."""
    return UserResponse(data=UserData(user=UserOut.from_user(current_user)))


@router.get("", response_model=UserListResponse)
def list_users(
    request: Request,
    current_user: User = Depends(restrict_to(Role.admin)),
) -> UserListResponse:
    """List all accounts. Admin only."""
    user_store: UserStore = request.app.state.user_store
    users = [UserOut.from_user(u) for u in user_store.list_users()]
    return UserListResponse(results=len(users), data=UsersData(users=users))
