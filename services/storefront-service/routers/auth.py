"""Member authentication API router."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_member_service
from mappers import to_member_response
from schemas import (
    LoginRequest,
    MemberResponse,
    RefreshTokenRequest,
    SignupRequest,
    TokenResponse,
)
from services.member_service import MemberService

router = APIRouter(prefix="/api/auth", tags=["authentication"])


@router.post("/signup", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
def signup(
    request: SignupRequest,
    db: Session = Depends(get_db),
    member_service: MemberService = Depends(get_member_service)
):
    """Register a new member."""
    member = member_service.signup(db, request.email, request.user_name, request.password)
    return to_member_response(member)


@router.post("/login", response_model=TokenResponse)
def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    member_service: MemberService = Depends(get_member_service)
):
    """Authenticate and return access and refresh tokens."""
    access_token, refresh_token = member_service.login(db, request.email, request.password)
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


@router.post("/token", response_model=TokenResponse)
def create_new_access_token(
    request: RefreshTokenRequest,
    db: Session = Depends(get_db),
    member_service: MemberService = Depends(get_member_service)
):
    """Issue a new access token from a refresh token."""
    access_token = member_service.create_new_access_token(db, request.refresh_token)
    return TokenResponse(access_token=access_token)
