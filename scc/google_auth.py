"""Google Cloud OAuth2 access token acquisition."""

import asyncio
import logging
import os
from typing import Protocol

import google.auth
import google.auth.transport.requests
from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError
from google.auth.transport import Request

from shared.constants import CLOUD_PLATFORM_SCOPE
from shared.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

# Pre-minted tokens, e.g. exported by an earlier auth step
ACCESS_TOKEN_ENV_VARS = ("GOOGLE_OAUTH_ACCESS_TOKEN", "CLOUDSDK_AUTH_ACCESS_TOKEN")


class TokenProvider(Protocol):
    """Anything able to supply a bearer token for the validation service."""

    async def get_access_token(self) -> str: ...


class GoogleAuth:
    """Resolves Application Default Credentials and caches their token.

    Covers service account keys, workload identity federation
    (``external_account``), gcloud user credentials and the metadata server.
    """

    def __init__(
        self,
        scopes: tuple[str, ...] = (CLOUD_PLATFORM_SCOPE,),
        request: Request | None = None,
    ) -> None:
        """Initialize the auth handler.

        Args:
            scopes: OAuth2 scopes requested for the token
            request: google-auth transport used for token refreshes;
                a requests-based one is created when omitted
        """
        self.scopes = scopes
        self._request = request
        self._credentials: Credentials | None = None

    def _get_request(self) -> Request:
        if self._request is None:
            self._request = google.auth.transport.requests.Request()
        return self._request

    def _refresh(self) -> str:
        """Load credentials on first use and refresh them once expired."""
        try:
            if self._credentials is None:
                self._credentials, _ = google.auth.default(
                    scopes=list(self.scopes), request=self._get_request()
                )
                logger.debug(f"Loaded {type(self._credentials).__name__} credentials")

            if not self._credentials.valid:
                logger.debug("Refreshing access token")
                self._credentials.refresh(self._get_request())
        except GoogleAuthError as e:
            raise AuthenticationError(f"Failed to obtain access token: {e}") from e

        token = self._credentials.token
        if not token:
            raise AuthenticationError("Credentials refresh did not produce an access token")
        return token

    async def get_access_token(self) -> str:
        """Get an access token for the validation service.

        Returns:
            OAuth2 access token

        Raises:
            AuthenticationError: If no token can be obtained
        """
        for name in ACCESS_TOKEN_ENV_VARS:
            token = os.environ.get(name)
            if token:
                logger.debug(f"Using access token from {name}")
                return token

        # google-auth is synchronous
        return await asyncio.to_thread(self._refresh)
