import logging
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials, firestore
from google.cloud.firestore import Client as FirestoreClient

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)


def firebase_credentials_configured(settings: Settings) -> bool:
  """Report whether enough configuration exists to talk to Firebase."""
  return bool(settings.firebase_project_id)


def initialize_firebase(settings: Settings | None = None) -> bool:
  """Initialize the Firebase Admin SDK once; return whether an app is available."""
  if firebase_admin._apps:
    return True

  settings = settings or get_settings()
  if not firebase_credentials_configured(settings):
    logger.warning("Firebase Project ID not set. Firebase Admin SDK not initialized.")
    return False

  try:
    if settings.firebase_service_account_json_path:
      cred = credentials.Certificate(settings.firebase_service_account_json_path)
      firebase_admin.initialize_app(cred, {"projectId": settings.firebase_project_id})
    else:
      # Application Default Credentials (Cloud Run, GKE, gcloud auth).
      firebase_admin.initialize_app(options={"projectId": settings.firebase_project_id})
  except (ValueError, OSError) as exc:
    logger.error("Failed to initialize Firebase Admin SDK: %s", exc)
    return False

  logger.info("Firebase Admin SDK initialized for project %s", settings.firebase_project_id)
  return True


def get_firestore_client() -> FirestoreClient | None:
  """Return a Firestore client, initializing Firebase lazily."""
  if not firebase_admin._apps and not initialize_firebase():
    return None

  try:
    return firestore.client()
  except ValueError as exc:
    logger.error("Failed to get Firestore client: %s", exc)
    return None


def verify_id_token(id_token: str) -> dict[str, Any] | None:
  """Verify a Firebase ID token and return its claims, or None when invalid."""
  if not firebase_admin._apps and not initialize_firebase():
    return None

  try:
    return auth.verify_id_token(id_token)
  except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError, auth.CertificateFetchError, auth.UserDisabledError) as exc:
    logger.warning("Token verification failed: %s", exc)
    return None
