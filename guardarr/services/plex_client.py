"""Remote restriction client for the plex.tv account API.

Restrictions are the ``filterMovies`` / ``filterTelevision`` attributes of a
shared user, set with ``PUT /api/users/{id}``. Both calls are idempotent and
never raise: network errors, timeouts and non-2xx responses are logged and
reported as ``False`` so the enforcer can retry on its next tick.
"""
import logging
import uuid
from typing import Optional

import requests

from guardarr.config import settings

logger = logging.getLogger(__name__)


class PlexClient:
    """Thin wrapper around the plex.tv shared-user update call."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        # Be resilient to accidental whitespace/trailing slashes
        self.base_url = (base_url or settings.PLEX_API_URL).strip().rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PLEX_REQUEST_TIMEOUT
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "X-Plex-Product": "Guardarr",
                "X-Plex-Version": "1.0",
                "X-Plex-Client-Identifier": str(uuid.uuid4()),
                "X-Plex-Platform": "Python",
                "Accept": "application/xml",
            }
        )
        return session

    def apply_filter(self, plex_id: str, movie_filter: str, tv_filter: str, token: str) -> bool:
        """Push content-rating filters; an empty filter is left out of the call."""
        params = {"X-Plex-Token": token}
        if movie_filter:
            params["filterMovies"] = movie_filter
        if tv_filter:
            params["filterTelevision"] = tv_filter
        if len(params) == 1:
            return True
        logger.debug("Applying filters to %s: movies=%r tv=%r", plex_id, movie_filter, tv_filter)
        return self._update_user(plex_id, params, token)

    def clear_filter(self, plex_id: str, token: str) -> bool:
        """Remove every rating restriction from the account."""
        params = {"X-Plex-Token": token, "filterMovies": "", "filterTelevision": ""}
        return self._update_user(plex_id, params, token)

    def _update_user(self, plex_id: str, params: dict[str, str], token: str) -> bool:
        url = f"{self.base_url}/api/users/{plex_id}"
        try:
            response = self.session.request("PUT", url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Plex update for account %s failed: %s", plex_id, _mask(str(e), token))
            return False
        if not response.ok:
            logger.warning(
                "Plex update for account %s returned %s %s",
                plex_id,
                response.status_code,
                response.reason,
            )
            return False
        return True


def _mask(text: str, token: str) -> str:
    return text.replace(token, "***") if token else text
