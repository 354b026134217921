import logging
from datetime import datetime, timedelta, UTC

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.hash import bcrypt
from pydantic import BaseModel

import config
from database import Database, get_db
from errors import AuthError
from models import AuthSession, User
from utils import generate_id

logger = logging.getLogger(__name__)

# OAuth2 scheme; optional because the session cookie is accepted too
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


class TokenData(BaseModel):
    user_id: str
    session_id: str
    type: str


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.verify(password, hashed)


def _encode(data: dict, expires: timedelta) -> tuple[str, datetime]:
    to_encode = data.copy()
    expire = datetime.now(UTC) + expires
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM), expire


def create_access_token(db: Database, user_id: str) -> str:
    """Create a JWT access token and record its session id."""
    session_id = generate_id()
    token, expire = _encode(
        {"sub": user_id, "jti": session_id, "type": "access"},
        timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    db.add_auth_session(AuthSession(id=session_id, user_id=user_id, expires_at=expire))
    return token


def create_refresh_token(db: Database, user_id: str) -> str:
    """Create a JWT refresh token."""
    session_id = generate_id()
    token, expire = _encode(
        {"sub": user_id, "jti": session_id, "type": "refresh"},
        timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS),
    )
    db.add_auth_session(AuthSession(id=session_id, user_id=user_id, expires_at=expire))
    return token


def decode_token(db: Database, token: str, expected_type: str = "access") -> TokenData:
    """Validate signature, expiry, type and server-side revocation of a token."""
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected token: {e}")
        raise AuthError("Invalid or expired token")
    user_id = payload.get("sub")
    session_id = payload.get("jti")
    if user_id is None or session_id is None or payload.get("type") != expected_type:
        raise AuthError("Invalid or expired token")
    session = db.get_auth_session(session_id)
    if session is None or session["revoked"] or session["user_id"] != user_id:
        raise AuthError("Session has been revoked")
    return TokenData(user_id=user_id, session_id=session_id, type=expected_type)


def token_from_request(request: Request, bearer: str | None) -> str | None:
    return bearer or request.cookies.get(config.SESSION_COOKIE_NAME)


def authenticate(db: Database, email: str, password: str) -> User:
    """Check credentials and return the user."""
    row = db.get_user_by_email(email)
    if not row or not verify_password(password, row["password"]):
        raise AuthError("Invalid credentials")
    return user_from_row(row)


def user_from_row(row: dict) -> User:
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        password=row["password"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def resolve_session(request: Request, bearer: str | None, db: Database) -> tuple[User, TokenData]:
    """Return the user and token data behind the request, or raise AuthError."""
    token = token_from_request(request, bearer)
    if not token:
        raise AuthError("Not authenticated")
    token_data = decode_token(db, token)
    row = db.get_user(token_data.user_id)
    if row is None:
        raise AuthError("User not found")
    return user_from_row(row), token_data


def current_user(request: Request, bearer: str | None = Depends(oauth2_scheme),
                 db: Database = Depends(get_db)) -> User | None:
    """The authenticated user, or None for anonymous requests."""
    try:
        user, _ = resolve_session(request, bearer, db)
    except AuthError:
        return None
    return user


def require_authenticated(request: Request, bearer: str | None = Depends(oauth2_scheme),
                          db: Database = Depends(get_db)) -> User:
    """The authenticated user; anonymous or invalid sessions get a 401."""
    user, _ = resolve_session(request, bearer, db)
    return user
