"""Completion service client — one chat completion per run.

Speaks the OpenAI-compatible ``POST {base_url}/chat/completions`` protocol
over httpx.  The response is free text; no schema is requested or enforced,
which is why the artifact extractor has a fallback chain.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from appforge.config import AppforgeConfig
from appforge.core.errors import StepTimeoutError, UpstreamRequestError

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = """\
You are a professional front-end engineer. From the requirements below, generate
HTML, CSS and JavaScript as SEPARATE files.
- Follow the Google Material Design guidelines.
- The HTML must include <link rel="stylesheet" href="styles.css"> and
  <script src="script.js" defer></script>.
- Output each file in its own fenced code block: ```html```, ```css```, ```js```.\
"""


class CompletionClient:
    """Requests generated front-end source for an application description.

    Parameters
    ----------
    config:
        Supplies the API key, base URL, model and sampling settings.
    http_client:
        Optional pre-built ``httpx.Client`` (tests pass one with a
        ``MockTransport``).
    """

    def __init__(
        self, config: AppforgeConfig, *, http_client: httpx.Client | None = None
    ) -> None:
        self._config = config
        self._http = http_client or httpx.Client(
            base_url=config.completion_base_url,
            timeout=config.request_timeout_seconds,
        )

    def _payload(self, description: str) -> dict[str, Any]:
        return {
            "model": self._config.completion_model,
            "messages": [
                {"role": "system", "content": SYSTEM_INSTRUCTION},
                {"role": "user", "content": description},
            ],
            "temperature": self._config.completion_temperature,
            "max_tokens": self._config.completion_max_tokens,
        }

    def complete(self, description: str) -> str:
        """Return the completion text for *description*."""
        headers = {
            "Authorization": f"Bearer {self._config.openai_api_key.get_secret_value()}",
            "Content-Type": "application/json",
        }
        try:
            response = self._http.post(
                "/chat/completions", json=self._payload(description), headers=headers
            )
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            raise StepTimeoutError(f"Completion request timed out: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise UpstreamRequestError(
                f"Completion service answered {exc.response.status_code}: "
                f"{exc.response.text[:500]}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamRequestError(f"Completion request failed: {exc}") from exc

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamRequestError(
                f"Completion response has no message content: {exc!r}"
            ) from exc
        if not isinstance(content, str):
            raise UpstreamRequestError("Completion message content is not text")

        logger.info("Completion received (%d chars)", len(content))
        return content

    def close(self) -> None:
        self._http.close()
