"""
Authentication helpers for the HTTP surface.

This module provides:
- Supabase JWT validation (PyJWT first, Supabase SDK as fallback)
- The ``require_auth`` helper used by FastAPI dependencies
- Shared-secret checks for the cron trigger and workflow callers
"""

import base64
import binascii
import hmac
import logging
from typing import Any, Dict, Optional

import jwt
from fastapi import HTTPException, status
from supabase import Client, create_client

from ..config import CONFIG


logger = logging.getLogger(__name__)


def _bearer_token(authorization_header: Optional[str]) -> Optional[str]:
    if not authorization_header or not authorization_header.startswith("Bearer "):
        return None
    token = authorization_header[7:].strip()
    return token or None


class SupabaseAuthManager:
    """Validates Supabase-issued access tokens."""

    def __init__(self):
        self.supabase_url = CONFIG.supabase_url
        self.supabase_anon_key = CONFIG.supabase_anon_key
        self.supabase_service_role_key = CONFIG.supabase_service_role_key
        self.jwt_secret = CONFIG.supabase_jwt_secret
        if not all([self.supabase_url, self.supabase_anon_key]):
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY environment variables are required")

        client_key = self.supabase_service_role_key or self.supabase_anon_key
        if not self.supabase_service_role_key:
            logger.warning("SUPABASE_SERVICE_ROLE_KEY not set; falling back to anon key for auth verification")
        self.supabase: Client = create_client(self.supabase_url, client_key)
        self._jwt_secret_candidates = self._prepare_jwt_secret_candidates(self.jwt_secret)

    @staticmethod
    def _prepare_jwt_secret_candidates(secret: Optional[str]) -> list:
        candidates: list = []
        if not secret:
            return candidates

        raw = secret.strip()
        if raw:
            candidates.append(raw)
            try:
                decoded = base64.b64decode(raw, validate=True)
                if decoded:
                    candidates.append(decoded)
            except (binascii.Error, ValueError):
                pass
        return candidates

    def _load_user_via_supabase(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            user = self.supabase.auth.get_user(token)
        except Exception as exc:
            logger.warning("Supabase auth get_user raised an exception: %s", exc)
            return None
        if not user or not getattr(user, "user", None):
            return None
        supa_user = user.user
        return {
            "sub": supa_user.id,
            "email": supa_user.email,
            "user_metadata": supa_user.user_metadata or {},
        }

    def verify_jwt_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify and decode a Supabase access token.

        Each configured secret candidate is tried with HS256 and the
        ``authenticated`` audience before falling back to the SDK.
        """
        if not token:
            return None
        for candidate in self._jwt_secret_candidates:
            try:
                return jwt.decode(
                    token,
                    candidate,
                    algorithms=["HS256"],
                    audience="authenticated",
                )
            except jwt.InvalidTokenError:
                logger.debug("JWT decode failed for one candidate; trying next")
        result = self._load_user_via_supabase(token)
        if not result:
            logger.warning("Supabase SDK could not validate token")
        return result

    def get_user_from_token(self, token: str) -> Optional[Dict[str, Any]]:
        payload = self.verify_jwt_token(token)
        if not payload:
            return None
        return {
            "id": payload.get("sub"),
            "email": payload.get("email"),
            "metadata": payload.get("user_metadata", {}),
        }

    def authenticate_request_token(self, authorization_header: str) -> Optional[str]:
        """Return the user id for a ``Bearer`` header, or None when invalid."""
        token = _bearer_token(authorization_header)
        if not token:
            return None
        user_info = self.get_user_from_token(token)
        return user_info.get("id") if user_info else None


AuthManager = SupabaseAuthManager


# Global auth manager instance
_auth_manager: Optional[AuthManager] = None


def get_auth_manager() -> AuthManager:
    """Get the global AuthManager instance."""
    global _auth_manager
    if _auth_manager is None:
        _auth_manager = AuthManager()
    return _auth_manager


def require_auth(authorization: str = None) -> str:
    """Resolve the user id from an Authorization header or raise 401."""
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    auth_manager = get_auth_manager()
    user_id = auth_manager.authenticate_request_token(authorization)

    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_id


def require_shared_secret(authorization: Optional[str], expected: Optional[str]) -> None:
    """
    Check a ``Bearer <secret>`` header against a configured secret.

    An unset secret disables the check (local development).
    """
    if not expected:
        return
    token = _bearer_token(authorization)
    if not token or not hmac.compare_digest(token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
