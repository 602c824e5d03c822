"""Ashby job board adapter."""

from typing import Any, Dict

from job_watch.domain.models import NormalizedPosting
from job_watch.utils.timestamps import coerce_datetime

from .base import BaseAdapter, MalformedEntry

HOSTED_BOARD_URL = "https://jobs.ashbyhq.com"


def _first_present(entry: Dict[str, Any], *keys: str) -> Any:
    """Value of the first key that is present and not None."""
    for key in keys:
        value = entry.get(key)
        if value is not None:
            return value
    return None


class AshbyAdapter(BaseAdapter):
    """Adapter for the Ashby public posting API.

    API Details:
        Endpoint: https://api.ashbyhq.com/posting-api/job-board/{source_id}
        Method: GET
        Authentication: None (public)
        Response: JSON object with a 'jobs' array

    Ashby entries are loosely shaped, so most fields have fallbacks. Only the
    title is required. When an entry has no string id the title doubles as the
    external id, which means two postings sharing a title on the same board
    collapse into one alert.
    """

    SOURCE_TYPE = "ashby"
    API_BASE_URL = "https://api.ashbyhq.com/posting-api/job-board"

    def fetch_postings(self, source_id: str) -> list[NormalizedPosting]:
        url = f"{self.API_BASE_URL}/{self._encode(source_id)}"
        data = self._get_json(url)

        jobs = data.get("jobs") if isinstance(data, dict) else None
        if not isinstance(jobs, list):
            jobs = []

        return self._normalize_all(jobs, source_id)

    def _normalize(self, entry: Dict[str, Any], source_id: str) -> NormalizedPosting:
        title = entry.get("title")
        if not isinstance(title, str):
            raise MalformedEntry("title is not a string")

        job_id = _first_present(entry, "id", "_id")
        has_id = isinstance(job_id, str)
        job_url = _first_present(entry, "jobUrl", "applyUrl", "url")

        if isinstance(job_url, str) and job_url:
            url = job_url
        elif has_id:
            url = f"{HOSTED_BOARD_URL}/{source_id}/{job_id}"
        else:
            url = f"{HOSTED_BOARD_URL}/{source_id}"

        location = entry.get("location")
        location_name = location.get("name") if isinstance(location, dict) else None

        return NormalizedPosting(
            external_id=job_id if has_id else title,
            title=title.strip(),
            url=url,
            location=self._text(location_name),
            posted_at=coerce_datetime(_first_present(entry, "publishedAt", "createdAt")),
            updated_at=coerce_datetime(
                _first_present(entry, "updatedAt", "publishedAt", "createdAt")
            ),
        )
