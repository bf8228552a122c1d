"""
Authentication endpoints.
"""

from fastapi import APIRouter, HTTPException, Request, status

from confportal.api.deps import CurrentUser, DbSession, get_client_ip
from confportal.kernel.identity.identity_service import IdentityService
from confportal.schemas.auth import TokenResponse, UserCreate, UserLogin, UserResponse

router = APIRouter()


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    data: UserCreate,
    db: DbSession,
):
    """
    Register a student or scholar account.

    Returns an access token on successful registration.
    """
    identity_service = IdentityService(db)
    ip_address = get_client_ip(request)

    await identity_service.register_user(
        email=data.email,
        password=data.password,
        full_name=data.full_name,
        role=data.role,
        phone=data.phone,
        institution=data.institution,
        ip_address=ip_address,
    )

    result = await identity_service.authenticate(
        email=data.email,
        password=data.password,
        ip_address=ip_address,
    )
    if not result:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to authenticate after registration",
        )

    user, token = result
    return TokenResponse(
        access_token=token.access_token,
        token_type=token.token_type,
        expires_in=token.expires_in,
        user=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    request: Request,
    data: UserLogin,
    db: DbSession,
):
    """Authenticate user and return an access token."""
    identity_service = IdentityService(db)

    result = await identity_service.authenticate(
        email=data.email,
        password=data.password,
        ip_address=get_client_ip(request),
    )
    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    user, token = result
    return TokenResponse(
        access_token=token.access_token,
        token_type=token.token_type,
        expires_in=token.expires_in,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(user: CurrentUser):
    """Get current user's profile."""
    return UserResponse.model_validate(user)
