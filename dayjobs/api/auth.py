"""Authentication utilities for the dayjobs API.

Identity is issued elsewhere; this module only decodes the bearer JWT into
an actor id and a role flag (company or worker).
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated, Literal

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import Settings, get_settings
from .logging_config import get_logger

logger = get_logger("dayjobs.api.auth")

# Bearer token scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)

Role = Literal["company", "worker"]
ROLES = ("company", "worker")


def create_access_token(
    actor_id: str,
    role: Role,
    settings: Settings,
    expires_delta: timedelta | None = None,
    is_admin: bool = False,
    name: str | None = None,
) -> str:
    """Create a JWT access token for a company or worker."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)

    to_encode = {
        "sub": actor_id,
        "role": role,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "type": "access",
    }
    if is_admin:
        to_encode["is_admin"] = True
    if name:
        to_encode["name"] = name
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthContext:
    """Caller identity decoded from the token."""

    def __init__(
        self,
        actor_id: str,
        role: str,
        is_admin: bool = False,
        name: str | None = None,
    ):
        self.actor_id = actor_id
        self.role = role
        self.is_admin = is_admin
        self.name = name

    @property
    def is_company(self) -> bool:
        return self.role == "company"

    @property
    def is_worker(self) -> bool:
        return self.role == "worker"


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthContext:
    """Get the authenticated actor from the bearer token."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated - provide Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials, settings)
    actor_id = payload.get("sub")
    role = payload.get("role")
    if not actor_id or role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return AuthContext(
        actor_id=actor_id,
        role=role,
        is_admin=bool(payload.get("is_admin", False)),
        name=payload.get("name"),
    )


# Type alias for dependency injection
CurrentActor = Annotated[AuthContext, Depends(get_current_actor)]


async def require_company(actor: CurrentActor) -> AuthContext:
    if not actor.is_company:
        logger.info(f"Company-only endpoint refused | actor={actor.actor_id} | role={actor.role}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Company account required")
    return actor


async def require_worker(actor: CurrentActor) -> AuthContext:
    if not actor.is_worker:
        logger.info(f"Worker-only endpoint refused | actor={actor.actor_id} | role={actor.role}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Worker account required")
    return actor


async def require_admin(actor: CurrentActor) -> AuthContext:
    if not actor.is_admin:
        logger.warning(f"Admin endpoint refused | actor={actor.actor_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return actor


CompanyActor = Annotated[AuthContext, Depends(require_company)]
WorkerActor = Annotated[AuthContext, Depends(require_worker)]
AdminActor = Annotated[AuthContext, Depends(require_admin)]
