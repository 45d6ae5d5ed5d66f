from __future__ import annotations

import httpx

from models.records import Record
from services.errors import InvalidRecord, SourceUnavailable
from services.extractor import parse_record


class HttpLatestRecordSource:
    """Fetches the most recent snapshot from an HTTP endpoint.

    The endpoint must return the snapshot JSON document, for instance a raw
    file URL of the sensor repository or this service's ``/records/latest``.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def fetch_latest(self) -> Record:
        try:
            response = self._client.get(self.url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SourceUnavailable(
                f"Latest record request failed with status {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise SourceUnavailable(f"Latest record request failed: {exc}") from exc

        # Required fields are the replicator's concern; only the timestamp matters here.
        try:
            return parse_record(response.content)
        except InvalidRecord as exc:
            raise SourceUnavailable(f"Latest record is unreadable: {exc.reason}") from exc
