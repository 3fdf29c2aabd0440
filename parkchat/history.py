"""Room history retrieval."""

from __future__ import annotations

import logging

import httpx

from .exceptions import HistoryError, MessageDecodeError
from .models import Message, decode_history
from .session import Identity

logger = logging.getLogger(__name__)


class HistoryFetcher:
    """Fetches a room's backlog with a one-shot authenticated GET.

    Args:
        timeout_s: Request timeout in seconds
        http_client: Optional pre-configured client (tests pass one backed
            by ``httpx.MockTransport``)
    """

    def __init__(
        self, *, timeout_s: float = 10.0, http_client: httpx.Client | None = None
    ):
        self.timeout_s = timeout_s
        self._http_client = http_client

    def fetch(self, url: str, identity: Identity) -> list[Message]:
        """Return the room history, oldest first.

        Raises:
            HistoryError: On network failure, non-200 status or bad payload
        """
        try:
            if self._http_client is not None:
                response = self._http_client.get(
                    url, auth=identity.basic_auth, timeout=self.timeout_s
                )
            else:
                response = httpx.get(
                    url, auth=identity.basic_auth, timeout=self.timeout_s
                )
        except httpx.HTTPError as e:
            raise HistoryError(f"Error downloading history: {e}") from e

        if response.status_code != httpx.codes.OK:
            raise HistoryError(
                f"Error downloading history: {response.status_code} {response.reason_phrase}"
            )

        try:
            messages = decode_history(response.json())
        except (ValueError, MessageDecodeError) as e:
            raise HistoryError(f"Error decoding history: {e}") from e

        logger.debug("Fetched %d history message(s) from %s", len(messages), url)
        return messages
