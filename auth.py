from datetime import datetime, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session

from config import Settings
from database import get_db, User
from logger import get_logger
from responses import success
from schemas import UserCreate, UserLogin, UserPublic, CurrentUser

ALGORITHM = "HS256"

NOT_LOGGED_IN = "You are not logged in! Please log in to get access."
INVALID_TOKEN = "Invalid token. Please log in again."
USER_GONE = "The user belonging to this token does no longer exist."
BAD_CREDENTIALS = "Incorrect email or password"

auth_router = APIRouter()
authorization_header = APIKeyHeader(name="Authorization", auto_error=False)
logger = get_logger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _secret_bytes(secret: str) -> bytes:
    # bcrypt only looks at the first 72 bytes; newer releases raise past that
    return secret.encode("utf-8")[:72]


def hash_secret(secret: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(_secret_bytes(secret), bcrypt.gensalt(rounds)).decode("utf-8")


def verify_secret(secret: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_secret_bytes(secret), hashed.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


def create_access_token(user_id: int, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {"id": user_id, "iat": now, "exp": now + settings.token_lifetime}
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> int:
    """Return the user id carried by token; raises jwt.PyJWTError when invalid."""
    payload = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[ALGORITHM],
        options={"require": ["exp", "id"]},
    )
    user_id = payload["id"]
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise jwt.InvalidTokenError("id claim must be an integer")
    return user_id


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    # the scheme is matched case-sensitively
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[len("Bearer "):].strip() or None


def protect(
    request: Request,
    authorization: Optional[str] = Depends(authorization_header),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> CurrentUser:
    """Resolve the bearer token to a live user or fail with 401."""
    token = bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=NOT_LOGGED_IN)

    try:
        user_id = decode_access_token(token, settings)
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_TOKEN)

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=USER_GONE)

    current_user = CurrentUser.model_validate(user)
    request.state.user = current_user
    return current_user


def _token_response(user: User, settings: Settings, status_code: int):
    token = create_access_token(user.id, settings)
    return success(
        "user",
        UserPublic.model_validate(user).model_dump(),
        status_code=status_code,
        token=token,
    )


@auth_router.post("/register", status_code=status.HTTP_201_CREATED)
@auth_router.post("/register/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
def register(
    user: UserCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    db_user = db.query(User).filter(User.email == user.email).first()
    if db_user:
        raise HTTPException(status_code=400, detail="Email already in use")

    new_user = User(
        name=user.name,
        email=user.email,
        password=hash_secret(user.password, settings.bcrypt_rounds),
        pin=hash_secret(user.pin, settings.bcrypt_rounds),
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info("user_registered", user_id=new_user.id)
    return _token_response(new_user, settings, status.HTTP_201_CREATED)


@auth_router.post("/login")
@auth_router.post("/login/", include_in_schema=False)
def login(
    user: UserLogin,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    db_user = db.query(User).filter(User.email == user.email).first()
    if not db_user or not verify_secret(user.password, db_user.password):
        logger.info("user_login_failed")
        raise HTTPException(status_code=401, detail=BAD_CREDENTIALS)

    logger.info("user_logged_in", user_id=db_user.id)
    return _token_response(db_user, settings, status.HTTP_200_OK)


@auth_router.get("/me")
@auth_router.get("/me/", include_in_schema=False)
def me(current_user: CurrentUser = Depends(protect)):
    return success("user", current_user.model_dump())
