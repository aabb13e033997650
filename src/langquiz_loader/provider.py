"""
Course provider clients.

The loader talks to the language-learning provider through the
``CourseProvider`` protocol. ``HttpCourseProvider`` implements it over the
provider's JSON API with httpx; tests use their own in-memory fakes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol, Sequence, runtime_checkable

import httpx

from .exceptions import ConfigurationError, LoaderError, RemoteFetchError

logger = logging.getLogger("langquiz-loader")


DEFAULT_BASE_URL = "https://www.duolingo.com"
DEFAULT_TIMEOUT = 30.0
MAX_RETRIES = 3
RETRY_BACKOFF = 2.0


async def fetch_remote(
    stage: str,
    entity_id: str | None,
    call: Callable[..., Awaitable[Any]],
    *args: Any,
) -> Any:
    """Await a provider call, reporting any failure as ``RemoteFetchError``.

    Args:
        stage: Pipeline stage, used in the error context
        entity_id: Entity being fetched, used in the error context
        call: Provider coroutine function
        *args: Arguments for ``call``
    """
    try:
        return await call(*args)
    except LoaderError:
        raise
    except Exception as e:
        raise RemoteFetchError(
            f"Provider call failed during {stage}"
            + (f" for {entity_id}" if entity_id else "")
            + f": {e}",
            stage=stage,
            entity_id=entity_id,
        ) from e


@runtime_checkable
class CourseProvider(Protocol):
    """Remote capability the pipeline fetches course data from.

    All results are plain JSON values so they can be cached verbatim.
    ``translate`` returns one payload per word, in the order of ``words``.
    """

    async def login(self, user: str, password: str) -> None: ...

    async def get_courses(self) -> list[dict[str, Any]]: ...

    async def set_current_course(self, course_id: str) -> None: ...

    async def get_course_skills(self, course_id: str) -> list[dict[str, Any]]: ...

    async def get_skill_words(self, skill_id: str) -> list[str]: ...

    async def translate(self, course_id: str, words: Sequence[str]) -> list[Any]: ...


class HttpCourseProvider:
    """CourseProvider backed by the provider's JSON API.

    Endpoint paths are relative to ``base_url``. Login stores the bearer
    token returned by the provider and sends it on every later request.
    Timeouts, HTTP 429 and HTTP 5xx are retried with exponential backoff;
    other failures raise ``RemoteFetchError`` right away.
    """

    LOGIN_PATH = "/login"
    COURSES_PATH = "/api/courses"
    CURRENT_COURSE_PATH = "/api/users/me/current-course"
    SKILLS_PATH = "/api/courses/{course_id}/skills"
    WORDS_PATH = "/api/skills/{skill_id}/words"
    TRANSLATE_PATH = "/api/courses/{course_id}/translations"

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_retries: int = MAX_RETRIES,
        retry_backoff: float = RETRY_BACKOFF,
    ):
        """
        Args:
            client: Open httpx client whose ``base_url`` points at the provider
            max_retries: Attempts per request for retryable failures
            retry_backoff: Base of the exponential backoff in seconds
        """
        self._client = client
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self._token: str | None = None

    @classmethod
    def create_client(
        cls, base_url: str = DEFAULT_BASE_URL, timeout: float = DEFAULT_TIMEOUT
    ) -> httpx.AsyncClient:
        """Build an httpx client suitable for this provider."""
        return httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    async def login(self, user: str, password: str) -> None:
        if not user or not password:
            raise ConfigurationError("Provider user and password are required to log in")

        response = await self._request(
            "POST", self.LOGIN_PATH, stage="login", json={"login": user, "password": password}
        )
        token = response.headers.get("jwt")
        if not token:
            body = self._decode(response, stage="login")
            if isinstance(body, dict):
                token = body.get("jwt") or body.get("token")
        if not token:
            raise RemoteFetchError("Login response did not contain a token", stage="login")

        self._token = token
        logger.info(f"Logged in to course provider as {user}")

    async def get_courses(self) -> list[dict[str, Any]]:
        return await self._get_list(self.COURSES_PATH, stage="courses")

    async def set_current_course(self, course_id: str) -> None:
        logger.info(f"setCurrentCourse: {course_id}")
        await self._request(
            "PUT", self.CURRENT_COURSE_PATH, stage="course", entity_id=course_id,
            json={"courseId": course_id},
        )

    async def get_course_skills(self, course_id: str) -> list[dict[str, Any]]:
        return await self._get_list(
            self.SKILLS_PATH.format(course_id=course_id), stage="skills", entity_id=course_id
        )

    async def get_skill_words(self, skill_id: str) -> list[str]:
        return await self._get_list(
            self.WORDS_PATH.format(skill_id=skill_id), stage="words", entity_id=skill_id
        )

    async def translate(self, course_id: str, words: Sequence[str]) -> list[Any]:
        response = await self._request(
            "POST", self.TRANSLATE_PATH.format(course_id=course_id),
            stage="translate", entity_id=course_id, json={"words": list(words)},
        )
        data = self._decode(response, stage="translate", entity_id=course_id)
        if not isinstance(data, list):
            raise RemoteFetchError(
                f"Expected a JSON array of translations, got {type(data).__name__}",
                stage="translate", entity_id=course_id,
            )
        return data

    async def close(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # HTTP Helpers
    # =========================================================================

    async def _get_list(self, path: str, stage: str, entity_id: str | None = None) -> list[Any]:
        response = await self._request("GET", path, stage=stage, entity_id=entity_id)
        data = self._decode(response, stage=stage, entity_id=entity_id)
        if not isinstance(data, list):
            raise RemoteFetchError(
                f"Expected a JSON array from {path}, got {type(data).__name__}",
                stage=stage, entity_id=entity_id,
            )
        return data

    async def _request(
        self,
        method: str,
        path: str,
        stage: str,
        entity_id: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send a request with retry logic.

        Raises:
            RemoteFetchError: If the request fails after retries or with a non-retryable status
        """
        headers = kwargs.pop("headers", {})
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                response = await self._client.request(method, path, headers=headers, **kwargs)

                if response.status_code == 429:
                    wait = self.retry_backoff ** attempt
                    logger.warning(f"Rate limited on {path}, waiting {wait}s")
                    last_error = httpx.HTTPStatusError(
                        "429 Too Many Requests", request=response.request, response=response
                    )
                    await asyncio.sleep(wait)
                    continue

                response.raise_for_status()
                return response

            except httpx.TimeoutException as e:
                logger.warning(f"Timeout on {method} {path}, attempt {attempt + 1}")
                last_error = e
                await asyncio.sleep(self.retry_backoff ** attempt)

            except httpx.HTTPStatusError as e:
                if e.response.status_code >= 500:
                    logger.warning(
                        f"Server error {e.response.status_code} on {path}, attempt {attempt + 1}"
                    )
                    last_error = e
                    await asyncio.sleep(self.retry_backoff ** attempt)
                else:
                    raise RemoteFetchError(
                        f"HTTP {e.response.status_code} from {method} {path}",
                        stage=stage, entity_id=entity_id,
                        details={"status_code": e.response.status_code},
                    ) from e

            except httpx.RequestError as e:
                raise RemoteFetchError(
                    f"Failed to connect to course provider: {e}",
                    stage=stage, entity_id=entity_id,
                ) from e

        raise RemoteFetchError(
            f"{method} {path} failed after {self.max_retries} attempts: {last_error}",
            stage=stage, entity_id=entity_id,
        )

    @staticmethod
    def _decode(response: httpx.Response, stage: str, entity_id: str | None = None) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise RemoteFetchError(
                f"Invalid JSON from course provider: {e}", stage=stage, entity_id=entity_id
            ) from e


__all__ = [
    "CourseProvider",
    "HttpCourseProvider",
    "fetch_remote",
    "DEFAULT_BASE_URL",
]
