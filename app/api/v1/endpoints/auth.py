"""
Auth endpoints: registration, password / OTP / Google login, profile.
"""

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.security import OAuth2PasswordRequestForm

from app.api.v1.deps import (get_credential_store, get_current_identity,
                             get_otp_channel)
from app.core.config import settings
from app.core.rate_limit import limiter
from app.models.user import User
from app.schemas.common import ApiResponse, MessageData
from app.schemas.otp import SendOtpRequest, VerifyOtpRequest
from app.schemas.token import AuthData, OAuth2Token
from app.schemas.user import (GoogleAuthRequest, LoginRequest, ProfileUpdate,
                              RegisterRequest, UserRead)
from app.services.credentials import AuthResult, CredentialStore
from app.services.otp import OtpChannel

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(result: AuthResult) -> ApiResponse[AuthData]:
    return ApiResponse[AuthData](
        data=AuthData(token=result.token, user=UserRead.from_user(result.user)),
        message=result.message,
    )


@router.post(
    "/register",
    response_model=ApiResponse[AuthData],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    body: RegisterRequest,
    store: CredentialStore = Depends(get_credential_store),
) -> ApiResponse[AuthData]:
    """Self-service sign-up for sellers, buyers and agents."""
    result = await store.register(
        name=body.name,
        email=body.email,
        phone=body.phone,
        password=body.password,
        account_kind=body.user_type,
        experience=body.experience,
        specializations=body.specializations,
        service_areas=body.service_areas,
    )
    return _auth_response(result)


@router.post("/login", response_model=ApiResponse[AuthData])
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    store: CredentialStore = Depends(get_credential_store),
) -> ApiResponse[AuthData]:
    """Authenticate with email, phone or staff username plus password."""
    result = await store.authenticate(
        password=body.password,
        email=body.email,
        phone=body.phone,
        username=body.username,
        account_kind=body.user_type,
    )
    return _auth_response(result)


@router.post("/token", response_model=OAuth2Token)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    store: CredentialStore = Depends(get_credential_store),
) -> OAuth2Token:
    """OAuth2 compatible token endpoint for Swagger UI."""
    identifier = form_data.username.strip()
    if "@" in identifier:
        lookup = {"email": identifier}
    elif identifier.lstrip("+").isdigit():
        lookup = {"phone": identifier}
    else:
        lookup = {"username": identifier}
    result = await store.authenticate(password=form_data.password, **lookup)
    return OAuth2Token(access_token=result.token)


@router.post("/send-otp", response_model=ApiResponse[MessageData])
@limiter.limit(settings.OTP_RATE_LIMIT)
async def send_otp(
    request: Request,
    body: SendOtpRequest,
    channel: OtpChannel = Depends(get_otp_channel),
) -> ApiResponse[MessageData]:
    await channel.send(body.phone)
    return ApiResponse[MessageData](data=MessageData(message="OTP sent successfully"))


@router.post("/verify-otp", response_model=ApiResponse[AuthData])
async def verify_otp(
    body: VerifyOtpRequest,
    channel: OtpChannel = Depends(get_otp_channel),
) -> ApiResponse[AuthData]:
    result = await channel.verify(body.phone, body.otp)
    return _auth_response(result)


@router.post("/google", response_model=ApiResponse[AuthData])
async def google_auth(
    body: GoogleAuthRequest,
    store: CredentialStore = Depends(get_credential_store),
) -> ApiResponse[AuthData]:
    """Sign in (or sign up) with a profile already verified by Google."""
    profile = body.google_user
    result = await store.federated_login(
        email=profile.email if profile else None,
        name=profile.display_name() if profile else None,
        account_kind=body.user_type,
    )
    return _auth_response(result)


@router.post("/logout", response_model=ApiResponse[MessageData])
async def logout() -> ApiResponse[MessageData]:
    # Tokens are not tracked server-side; the client discards its copy.
    return ApiResponse[MessageData](data=MessageData(message="Logged out"))


@router.get("/profile", response_model=ApiResponse[UserRead])
async def read_profile(
    current_user: User = Depends(get_current_identity),
) -> ApiResponse[UserRead]:
    return ApiResponse[UserRead](data=UserRead.from_user(current_user))


@router.put("/profile", response_model=ApiResponse[UserRead])
async def update_profile(
    body: ProfileUpdate,
    current_user: User = Depends(get_current_identity),
    store: CredentialStore = Depends(get_credential_store),
) -> ApiResponse[UserRead]:
    user = await store.update_profile(
        current_user, body.model_dump(exclude_unset=True, exclude_none=True)
    )
    return ApiResponse[UserRead](
        data=UserRead.from_user(user), message="Profile updated successfully"
    )


@router.get("/verify-email", response_model=ApiResponse[MessageData])
async def verify_email(
    token: str | None = Query(default=None),
    store: CredentialStore = Depends(get_credential_store),
) -> ApiResponse[MessageData]:
    await store.verify_email(token)
    return ApiResponse[MessageData](data=MessageData(message="Email verified successfully"))


@router.post("/resend-verification", response_model=ApiResponse[MessageData])
async def resend_verification(
    current_user: User = Depends(get_current_identity),
    store: CredentialStore = Depends(get_credential_store),
) -> ApiResponse[MessageData]:
    await store.resend_verification(current_user)
    return ApiResponse[MessageData](data=MessageData(message="Verification email sent"))
