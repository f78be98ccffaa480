# src/decision/transport.py
"""
HTTP transport to a generate-style oracle endpoint (Ollama-compatible).

    POST {base_url}{endpoint}
    {"model": ..., "prompt": ..., "stream": false}
    -> {"response": "<text>", ...}

submit() returns immediately with a Future; the blocking POST runs on a
single worker thread, so calls are serialized even if a caller misbehaves.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

import httpx

from env.schema import OracleConfig

from .errors import ParseFailure, TransportFailure

logger = logging.getLogger(__name__)


class HttpOracleTransport:
    def __init__(self, config: OracleConfig, client: Optional[httpx.Client] = None) -> None:
        self._config = config
        self._client = client or httpx.Client(timeout=config.timeout)
        self._owns_client = client is None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="oracle")

    @property
    def model(self) -> str:
        return self._config.model

    def submit(self, prompt: str) -> "Future[str]":
        return self._executor.submit(self._post, prompt)

    def _post(self, prompt: str) -> str:
        body = {"model": self._config.model, "prompt": prompt, "stream": False}
        url = self._config.url
        logger.debug("POST %s (model=%s, prompt_chars=%d)", url, self._config.model, len(prompt))
        try:
            response = self._client.post(url, json=body)
        except httpx.HTTPError as exc:
            raise TransportFailure(f"{type(exc).__name__}: {exc}", url=url) from None

        if not response.is_success:
            raise TransportFailure(
                f"oracle answered HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            raise ParseFailure("oracle body is not JSON", body=response.text[:200]) from None

        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise ParseFailure("oracle body has no string 'response' field")
        return text

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        if self._owns_client:
            self._client.close()
