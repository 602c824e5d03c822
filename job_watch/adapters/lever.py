"""Lever job board adapter."""

from typing import Any, Dict

from job_watch.domain.models import NormalizedPosting
from job_watch.utils.timestamps import coerce_datetime

from .base import BaseAdapter, MalformedEntry


class LeverAdapter(BaseAdapter):
    """Adapter for the Lever public postings API.

    API Details:
        Endpoint: https://api.lever.co/v0/postings/{source_id}?mode=json
        Method: GET
        Authentication: None (public)
        Response: JSON array of posting objects (not wrapped in an object)

    createdAt/updatedAt are epoch milliseconds.
    """

    SOURCE_TYPE = "lever"
    API_BASE_URL = "https://api.lever.co/v0/postings"

    def fetch_postings(self, source_id: str) -> list[NormalizedPosting]:
        url = f"{self.API_BASE_URL}/{self._encode(source_id)}"
        data = self._get_json(url, params={"mode": "json"})

        if not isinstance(data, list):
            data = []

        return self._normalize_all(data, source_id)

    def _normalize(self, entry: Dict[str, Any], source_id: str) -> NormalizedPosting:
        posting_id = entry.get("id")
        text = entry.get("text")
        hosted_url = entry.get("hostedUrl")

        if not all(isinstance(v, str) for v in (posting_id, text, hosted_url)):
            raise MalformedEntry("id, text or hostedUrl is not a string")

        categories = entry.get("categories")
        location = categories.get("location") if isinstance(categories, dict) else None

        return NormalizedPosting(
            external_id=posting_id,
            title=text.strip(),
            url=hosted_url,
            location=self._text(location),
            posted_at=coerce_datetime(entry.get("createdAt")),
            updated_at=coerce_datetime(entry.get("updatedAt")),
        )
