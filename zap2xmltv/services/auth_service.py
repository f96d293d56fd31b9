"""
Zap2it Authentication

Exchanges account credentials for a session token and the regional
headend hint carried in the login response.
"""
import logging

import httpx

from zap2xmltv.errors import AuthError
from zap2xmltv.models import Session
from zap2xmltv.utils.json_fields import get_dict, get_str


logger = logging.getLogger(__name__)

LOGIN_URL = "https://tvlistings.zap2it.com/api/user/login"

# Key of the headend identifier inside the login response "properties"
REGION_PROPERTY = "2004"


class AuthClient:
    """Logs in against the listings provider. One attempt, no retry."""

    def __init__(self, client: httpx.AsyncClient, login_url: str = LOGIN_URL) -> None:
        self._client = client
        self._login_url = login_url

    async def authenticate(self, username: str, password: str) -> Session:
        """
        Submit credentials and build a Session

        Args:
            username: Account e-mail
            password: Account password

        Returns:
            Session with bearer token and optional region hint

        Raises:
            AuthError: On transport failure, HTTP error status, non-JSON body
                or a missing token
        """
        form = {
            "emailid": username,
            "password": password,
            "isfacebookuser": "false",
            "usertype": "0",
            "objectid": "",
        }

        logger.info("Authenticating as %s", username)
        try:
            response = await self._client.post(self._login_url, data=form)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise AuthError(
                f"Authentication rejected with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AuthError(f"Authentication request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthError("Failed to parse authentication response") from exc

        token = get_str(payload, "token")
        if not token:
            raise AuthError("Token not found in authentication response")

        region_hint = get_str(get_dict(payload, "properties"), REGION_PROPERTY)
        logger.info("Authenticated (region hint: %s)", region_hint or "none")
        return Session(token=token, region_hint=region_hint)
