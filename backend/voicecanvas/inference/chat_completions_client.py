import asyncio
import logging
from typing import Dict, List, Optional, Set

import requests
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from voicecanvas.config import (
    HTTP_BACKOFF_MAX_SECONDS,
    HTTP_MAX_ATTEMPTS,
    LLM_TEMPERATURE,
    REQUEST_TIMEOUT_SECONDS,
)
from voicecanvas.inference.base import LLMClient
from voicecanvas.ir.errors import GenerationCancelled, GenerationFailed, GenerationTimeout
from voicecanvas.observability.logging import get_logger

logger = get_logger(__name__)


def is_retryable(exc: BaseException) -> bool:
    """Transport failures, 429 and 5xx are retried; other 4xx are final."""
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


class ChatCompletionsClient(LLMClient):
    def __init__(
        self,
        base_url: str,
        model: str,
        temperature: float = LLM_TEMPERATURE,
        api_key: str = "",
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.api_key = api_key
        self.timeout = timeout
        self._in_flight: Set[asyncio.Task] = set()
        self._superseded: Set[asyncio.Task] = set()

    def _post(self, messages: List[Dict]) -> str:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        response = requests.post(
            f"{self.base_url}/chat/completions",
            json={
                "model": self.model,
                "messages": messages,
                "temperature": self.temperature,
            },
            headers=headers,
            timeout=self.timeout,
        )
        response.raise_for_status()

        try:
            return response.json()["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise GenerationFailed("Malformed chat completion response") from exc

    @retry(
        stop=stop_after_attempt(HTTP_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=1, max=HTTP_BACKOFF_MAX_SECONDS),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _post_with_retry(self, messages: List[Dict]) -> str:
        return await asyncio.to_thread(self._post, messages)

    def cancel_outstanding(self, keep: Optional[asyncio.Task] = None) -> int:
        """Cancel every tracked call except ``keep``; returns how many."""
        cancelled = 0
        for task in list(self._in_flight):
            if task is keep or task.done():
                continue
            self._superseded.add(task)
            task.cancel()
            cancelled += 1
        if cancelled:
            logger.info("Cancelled %d outstanding generator call(s)", cancelled)
        return cancelled

    async def complete(self, messages: List[Dict], newer_transcript: bool = False) -> str:
        task = asyncio.current_task()
        if newer_transcript:
            self.cancel_outstanding(keep=task)
        self._in_flight.add(task)

        try:
            return await asyncio.wait_for(self._post_with_retry(messages), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise GenerationTimeout(f"Generator call exceeded {self.timeout:.0f}s") from exc
        except asyncio.CancelledError:
            if task in self._superseded:
                task.uncancel()
                raise GenerationCancelled("Superseded by a newer transcript") from None
            raise
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "?"
            raise GenerationFailed(f"Generator returned HTTP {status}") from exc
        except requests.RequestException as exc:
            raise GenerationFailed(f"Generator unreachable: {exc}") from exc
        finally:
            self._in_flight.discard(task)
            self._superseded.discard(task)
