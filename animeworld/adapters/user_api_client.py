"""
Client for the AnimeWorld user-record API.

The front-end side of /api/users and /api/health. Every failure surfaces
as FetchError so the caller can offer a retry.
"""

from typing import Any, Dict, List, Optional
import logging

import requests

from .base_adapter import BaseAdapter
from animeworld.config.settings import API_BASE_URL, API_CLIENT_TIMEOUT
from animeworld.models import UserCreateRequest, UserRecord

logger = logging.getLogger(__name__)


class UserApiClient(BaseAdapter):
    """HTTP client for the user-record API."""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        timeout: int = API_CLIENT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(name="user-api", requests_per_minute=None, timeout=timeout, session=session)
        self.base_url = base_url.rstrip("/")

    def _call(self, method: str, path: str, **kwargs) -> Any:
        response = self._request(method, f"{self.base_url}{path}", **kwargs)
        if not response.ok:
            detail = ""
            try:
                detail = response.json().get("error", "")
            except (ValueError, AttributeError):
                detail = response.text[:200] if response.text else ""
            self._raise_for_status(response, detail)
        return self._decode_json(response)

    def register(self, request: UserCreateRequest) -> Dict[str, Any]:
        """
        Register or touch a user after sign-in.

        Returns:
            {'status': 'created' | 'updated', 'user': UserRecord}
        """
        payload = self._call(
            "POST",
            "/api/users",
            json=request.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        return {
            "status": payload.get("status"),
            "user": UserRecord.model_validate(payload.get("user") or {}),
        }

    def list_users(self, caller_id: Optional[str] = None) -> List[UserRecord]:
        """All users, newest first. caller_id is sent as X-User-Id for admin checks."""
        headers = {"X-User-Id": caller_id} if caller_id else {}
        payload = self._call("GET", "/api/users", headers=headers)
        users = payload.get("data") if "data" in payload else payload
        return [UserRecord.model_validate(user) for user in users or []]

    def get_user(self, external_id: str) -> Optional[UserRecord]:
        """The record, or None when the API reports 404."""
        response = self._request("GET", f"{self.base_url}/api/users/{external_id}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response)
        return UserRecord.model_validate(self._decode_json(response))

    def health(self) -> Dict[str, Any]:
        return self._call("GET", "/api/health")
