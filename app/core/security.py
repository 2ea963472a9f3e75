from __future__ import annotations

import logging
import secrets
from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from app.config import Settings, get_settings
from app.core.firebase import verify_id_token

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer()


async def get_current_claims(token: Annotated[HTTPAuthorizationCredentials, Depends(security_scheme)]) -> dict[str, Any]:
  """Verify the Firebase ID token sent as a bearer credential."""
  decoded_claims = await run_in_threadpool(verify_id_token, token.credentials)
  if not decoded_claims:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials", headers={"WWW-Authenticate": "Bearer"})
  return decoded_claims


async def get_current_uid(claims: Annotated[dict[str, Any], Depends(get_current_claims)]) -> str:
  """Return the Firebase uid of the caller."""
  firebase_uid = claims.get("uid")
  if not firebase_uid:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")
  return str(firebase_uid)


def ensure_same_user(current_uid: str, user_id: str) -> None:
  """Reject callers acting on another user's devices or history."""
  if current_uid != user_id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot act on behalf of another user")


async def require_task_secret(settings: Annotated[Settings, Depends(get_settings)], authorization: str | None = Header(default=None), x_aura_task_secret: str | None = Header(default=None)) -> None:
  """Authenticate scheduler callbacks with the shared task secret."""
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")

  # Cloud Tasks OIDC occupies Authorization, so the dedicated header is checked first.
  shared_secret_valid = secrets.compare_digest(x_aura_task_secret or "", settings.task_secret)
  bearer_valid = secrets.compare_digest(authorization or "", f"Bearer {settings.task_secret}")
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to internal task endpoint")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")
