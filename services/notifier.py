from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class HttpNotifier:
    """Push notifications through an ntfy-style HTTP endpoint.

    The body is posted as plain text with the title in the ``Title`` header.
    """

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self._token = token
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def send(self, title: str, body: str) -> bool:
        headers: Dict[str, str] = {"Title": title}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        try:
            response = self._client.post(self.url, content=body.encode("utf-8"), headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error("Notification request failed: %s", exc)
            return False
        if not response.is_success:
            logger.error(
                "Notification rejected with status %s",
                response.status_code,
                extra={"status": response.status_code},
            )
            return False
        return True
