"""Greenhouse job board adapter."""

from typing import Any, Dict

from job_watch.domain.models import NormalizedPosting
from job_watch.utils.timestamps import coerce_datetime

from .base import BaseAdapter, MalformedEntry


class GreenhouseAdapter(BaseAdapter):
    """Adapter for the Greenhouse public job board API.

    API Details:
        Endpoint: https://boards-api.greenhouse.io/v1/boards/{source_id}/jobs
        Method: GET
        Authentication: None (public)
        Response: JSON object with a 'jobs' array

    Greenhouse exposes no creation time on this endpoint, so posted_at is
    always None.
    """

    SOURCE_TYPE = "greenhouse"
    API_BASE_URL = "https://boards-api.greenhouse.io/v1/boards"

    def fetch_postings(self, source_id: str) -> list[NormalizedPosting]:
        url = f"{self.API_BASE_URL}/{self._encode(source_id)}/jobs"
        data = self._get_json(url)

        jobs = data.get("jobs") if isinstance(data, dict) else None
        if not isinstance(jobs, list):
            jobs = []

        return self._normalize_all(jobs, source_id)

    def _normalize(self, entry: Dict[str, Any], source_id: str) -> NormalizedPosting:
        job_id = entry.get("id")
        title = entry.get("title")
        absolute_url = entry.get("absolute_url")

        if isinstance(job_id, bool) or not isinstance(job_id, (int, float)):
            raise MalformedEntry("id is not a number")
        if not isinstance(title, str) or not isinstance(absolute_url, str):
            raise MalformedEntry("title or absolute_url is not a string")

        if isinstance(job_id, float) and job_id.is_integer():
            job_id = int(job_id)

        location = entry.get("location")
        location_name = location.get("name") if isinstance(location, dict) else None

        return NormalizedPosting(
            external_id=str(job_id),
            title=title.strip(),
            url=absolute_url,
            location=self._text(location_name),
            posted_at=None,
            updated_at=coerce_datetime(entry.get("updated_at")),
        )
