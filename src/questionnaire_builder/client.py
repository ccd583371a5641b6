from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from .config import Settings
from .surveys.engine import load_default_questions
from .surveys.ids import generate_id
from .surveys.normalize import Normalizer
from .surveys.schema import Question


logger = logging.getLogger(__name__)


class QuestionnaireClientError(Exception):
    pass


class SaveRejectedError(QuestionnaireClientError):
    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(f"{url} rejected the save with HTTP {status_code}")
        self.url = url
        self.status_code = status_code


class SaveFailedError(QuestionnaireClientError):
    def __init__(self, last_error: Optional[BaseException]) -> None:
        super().__init__(f"no API base accepted the save, last error: {last_error}")
        self.last_error = last_error


class QuestionnaireClient:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        normalizer: Optional[Normalizer] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self.settings = settings or Settings()
        self.normalizer = normalizer or Normalizer()
        self._transport = transport
        self._timeout = timeout

    def url_for(self, base: str, path: str) -> str:
        if base.startswith("http"):
            return f"{base}{path}"
        return f"{self.settings.origin}{base}{path}"

    def survey_link(self, uuid: str) -> str:
        return self.url_for(self.settings.api_prefix, f"/survey?uuid={quote(uuid, safe='')}")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def fetch_questions(self) -> List[Dict[str, Any]]:
        """Load the stored schema; any failure yields the default question set."""
        url = self.url_for(self.settings.api_base, "/api/questions")
        try:
            async with self._client() as client:
                resp = await client.get(url)
            if not resp.is_success:
                logger.warning("Failed to fetch questions: %s. Using default config.", resp.status_code)
                return load_default_questions()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error connecting to backend API: %s", e)
            return load_default_questions()
        if not isinstance(data, list) or not data:
            logger.warning("Server returned empty data, using default config.")
            return load_default_questions()
        canonical = self.normalizer.normalize(data)
        try:
            for q in canonical:
                Question.model_validate(q)
        except ValidationError as e:
            logger.warning("Server returned an unusable schema, using default config: %s", e)
            return load_default_questions()
        return canonical

    async def save_questions(self, questions: Any) -> str:
        """Normalize and POST the schema, trying each candidate base in turn.

        Returns the URL that accepted it. A 404 or a transport error moves on
        to the next candidate; any other non-success status stops the search.
        """
        payload = self.normalizer.normalize(questions)
        headers = {}
        if self.settings.admin_token:
            headers["X-Admin-Token"] = self.settings.admin_token
        last_error: Optional[BaseException] = None
        async with self._client() as client:
            for base in self.settings.save_candidates():
                url = self.url_for(base, "/api/questions")
                try:
                    resp = await client.post(url, json=payload, headers=headers)
                except httpx.HTTPError as e:
                    logger.warning("save to %s failed: %s", url, e)
                    last_error = e
                    continue
                if resp.is_success:
                    logger.info("saved questions to %s", url)
                    return url
                if resp.status_code == 404:
                    last_error = QuestionnaireClientError(f"404 from {url}")
                    logger.info("no questions API at %s, trying next base", url)
                    continue
                raise SaveRejectedError(url, resp.status_code)
        raise SaveFailedError(last_error)

    async def fetch_profile(self, uuid: str) -> Optional[Dict[str, Any]]:
        url = self.url_for(self.settings.api_base, "/api/profile")
        async with self._client() as client:
            resp = await client.get(url, params={"uuid": uuid})
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected profile response")
        return data

    async def save_profile(self, profile: Dict[str, Any]) -> str:
        """Store a respondent record and return its uuid (assigned if missing)."""
        record = dict(profile)
        record["uuid"] = str(record.get("uuid") or generate_id("uuid"))
        url = self.url_for(self.settings.api_base, "/api/profile")
        async with self._client() as client:
            resp = await client.post(url, json=record)
            resp.raise_for_status()
        return record["uuid"]


class ProfileLookup:
    """Resolves the respondent greeting from a profile uuid.

    Only the most recently started lookup counts: starting a new one
    cancels the one still in flight and its result is discarded.
    """

    GREETING = "您好"

    def __init__(self, client: QuestionnaireClient) -> None:
        self._client = client
        self._generation = 0
        self._pending: Optional[asyncio.Task] = None

    async def lookup(self, uuid: str) -> Optional[Dict[str, Any]]:
        self._generation += 1
        generation = self._generation
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        task = asyncio.ensure_future(self._client.fetch_profile(uuid))
        self._pending = task
        try:
            profile = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.debug("profile lookup for %s superseded", uuid)
                return None
            raise
        if generation != self._generation:
            return None
        return profile

    async def display_name(self, uuid: Optional[str], name: Optional[str] = None) -> str:
        if name and name.strip():
            return f"{name.strip()} {self.GREETING}"
        if not uuid:
            return self.GREETING
        try:
            profile = await self.lookup(uuid)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("fetch profile by uuid failed: %s", e)
            return self.GREETING
        if profile and profile.get("name"):
            return f"{profile['name']} {self.GREETING}"
        return self.GREETING
