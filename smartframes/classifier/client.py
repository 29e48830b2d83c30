"""HTTP client for the AI vision classification service.

Submits one batch of candidate frames to ``POST /v1/classify`` and returns
the normalized recommendations.

Authentication: ``X-API-Key`` header.
Retry policy: injected ``RetryPolicy``; by default 3 attempts with
exponential back-off (1 s → 2 s).
Non-retryable errors: 401 (invalid key), 402 (no credits), 422 (validation),
and any response body that fails schema validation.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from smartframes.classifier.base import (
    ClassificationRequest,
    ClassificationResult,
    Classifier,
    ClassifierError,
    ClassifierResponseError,
)
from smartframes.classifier.schema import parse_classification
from smartframes.config import Settings

logger = logging.getLogger(__name__)

_CLASSIFY_PATH = "/v1/classify"
_NON_RETRYABLE = (401, 402, 422)


def exponential_backoff(base_delay: float = 1.0) -> Callable[[int], float]:
    """Return a backoff function: ``base``, ``2*base``, ``4*base`` …"""

    def _delay(attempt: int) -> float:
        return base_delay * (2**attempt)

    return _delay


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    # Maps a zero-based failed attempt number to seconds to wait.
    backoff: Callable[[int], float] = field(default_factory=exponential_backoff)

    def delay(self, attempt: int) -> float:
        return max(0.0, self.backoff(attempt))


class HttpClassifier(Classifier):
    """Async HTTP classifier client.

    Must be used as an async context manager::

        async with HttpClassifier(api_key="sk-...", base_url=url) as classifier:
            result = await classifier.classify(request)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        retry_policy: RetryPolicy | None = None,
        timeout: float = 60.0,
        model: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._retry = retry_policy or RetryPolicy()
        self._timeout = timeout
        self._model = model
        self._http: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpClassifier":
        return cls(
            api_key=settings.classifier_api_key,
            base_url=settings.classifier_base_url,
            retry_policy=RetryPolicy(
                max_attempts=settings.classifier_max_attempts,
                backoff=exponential_backoff(settings.classifier_retry_base_delay_s),
            ),
            timeout=settings.classifier_timeout_s,
            model=settings.classifier_model,
        )

    async def __aenter__(self) -> "HttpClassifier":
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"X-API-Key": self._api_key},
            timeout=self._timeout,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def classify(self, request: ClassificationRequest) -> ClassificationResult:
        """Classify one batch of frames.

        Raises:
            ValueError: If images and metadata differ in length or are empty.
            ClassifierError: Non-retryable API error (401 / 402 / 422).
            ClassifierResponseError: Body is not valid JSON or fails the schema.
            httpx.HTTPStatusError: Unexpected HTTP error after all retries.
        """
        if not request.images or len(request.images) != len(request.metadata):
            raise ValueError(
                f"classify requires one metadata row per image, got "
                f"{len(request.images)} images and {len(request.metadata)} rows"
            )

        payload = request.to_payload()
        if self._model:
            payload["model"] = self._model

        attempts = max(1, self._retry.max_attempts)
        last_exc: Exception | None = None

        for attempt in range(attempts):
            wait = self._retry.delay(attempt)
            try:
                data = await self._post(_CLASSIFY_PATH, payload)
                return parse_classification(data)
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status in _NON_RETRYABLE:
                    body = _safe_json(exc.response)
                    raise ClassifierError(
                        f"Classifier API error {status}: "
                        f"{body.get('detail', str(exc))}",
                        status_code=status,
                    ) from exc
                last_exc = exc
                if status == 429:
                    body = _safe_json(exc.response)
                    wait = float(body.get("retry_after", wait))
                    logger.warning(
                        "Classifier rate-limited (attempt %d/%d), waiting %.1fs",
                        attempt + 1,
                        attempts,
                        wait,
                    )
                else:
                    logger.warning(
                        "Classifier server error %d (attempt %d/%d)",
                        status,
                        attempt + 1,
                        attempts,
                    )
            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                last_exc = exc
                logger.warning(
                    "Classifier connection error (attempt %d/%d): %s",
                    attempt + 1,
                    attempts,
                    exc,
                )

            if attempt < attempts - 1:
                await asyncio.sleep(wait)

        assert last_exc is not None
        raise last_exc

    async def _post(self, path: str, payload: dict) -> Any:
        assert self._http is not None, "Use HttpClassifier as async context manager"
        response = await self._http.post(path, json=payload)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as exc:
            raise ClassifierResponseError(
                f"Classifier returned a non-JSON body: {exc}"
            ) from exc


def _safe_json(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
