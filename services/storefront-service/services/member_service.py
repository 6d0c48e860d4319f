"""Member directory and token service."""
import logging
from typing import Tuple
from jose import JWTError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import transaction
from errors import ErrorCode, StorefrontError
from models import Member, MemberRole, RefreshToken
from monitoring import auth_attempts_counter, auth_failures_counter
from security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)


class MemberService:
    """Service for member signup, login and token renewal."""

    def find_by_id(self, db: Session, member_id: int) -> Member:
        member = db.query(Member).filter(Member.id == member_id).first()
        if member is None:
            raise StorefrontError(ErrorCode.USER_NOT_FOUND)
        return member

    def find_by_email(self, db: Session, email: str) -> Member:
        member = db.query(Member).filter(Member.email == email.lower()).first()
        if member is None:
            raise StorefrontError(ErrorCode.USER_NOT_FOUND)
        return member

    def signup(self, db: Session, email: str, user_name: str, password: str) -> Member:
        """
        Register a new member.

        Raises:
            StorefrontError: DUPLICATE_EMAIL
        """
        email = email.lower()
        try:
            with transaction(db):
                if db.query(Member).filter(Member.email == email).first() is not None:
                    raise StorefrontError(ErrorCode.DUPLICATE_EMAIL)

                member = Member(
                    email=email,
                    user_name=user_name,
                    password_hash=hash_password(password),
                    role=MemberRole.USER,
                )
                db.add(member)
                db.flush()
        except IntegrityError:
            raise StorefrontError(ErrorCode.DUPLICATE_EMAIL)

        logger.info("Member signed up", extra={"member_id": member.id})
        return member

    def login(self, db: Session, email: str, password: str) -> Tuple[str, str]:
        """
        Authenticate with email and password.

        Returns:
            Access token and refresh token

        Raises:
            StorefrontError: INVALID_CREDENTIALS
        """
        auth_attempts_counter.add(1, {"type": "login"})

        try:
            member = self.find_by_email(db, email)
        except StorefrontError:
            member = None

        if member is None or not verify_password(password, member.password_hash):
            auth_failures_counter.add(1, {"reason": "invalid_credentials"})
            logger.warning("Login failed: Invalid email or password")
            raise StorefrontError(ErrorCode.INVALID_CREDENTIALS)

        access_token = create_access_token(member.id, member.role.value)
        refresh_token = create_refresh_token(member.id, member.role.value)

        with transaction(db):
            stored = db.query(RefreshToken).filter(RefreshToken.member_id == member.id).first()
            if stored is None:
                db.add(RefreshToken(member_id=member.id, token=refresh_token))
            else:
                stored.token = refresh_token

        logger.info("Member logged in", extra={"member_id": member.id})
        return access_token, refresh_token

    def create_new_access_token(self, db: Session, refresh_token: str) -> str:
        """
        Issue a new access token from a refresh token.

        Raises:
            StorefrontError: INVALID_TOKEN if the token is invalid, expired,
                not a refresh token or no longer the member's latest one
        """
        try:
            claims = decode_token(refresh_token)
        except JWTError:
            raise StorefrontError(ErrorCode.INVALID_TOKEN)

        if claims.get("type") != REFRESH_TOKEN_TYPE:
            raise StorefrontError(ErrorCode.INVALID_TOKEN)

        stored = db.query(RefreshToken).filter(RefreshToken.token == refresh_token).first()
        if stored is None or str(stored.member_id) != claims.get("sub"):
            raise StorefrontError(ErrorCode.INVALID_TOKEN)

        member = self.find_by_id(db, stored.member_id)
        return create_access_token(member.id, member.role.value)
