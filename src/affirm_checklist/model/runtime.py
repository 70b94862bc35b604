# src/affirm_checklist/model/runtime.py

"""
Local model runtime (Ollama-compatible server on this machine).

- availability: GET  /api/tags   -> is the model already on disk?
- create:       POST /api/pull   -> streamed download with progress, then a session
- generate:     OpenAI-compatible /v1 chat endpoint via the openai SDK
- destroy:      POST /api/generate with keep_alive=0 -> unload the model from memory

Nothing is contacted at import time; a missing/unreachable server surfaces as an
exception from availability(), which the session manager reads as "no".
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from ..core.ports import DownloadMonitor, SessionOptions
from ..errors import ModelUnavailableError, QuotaExceededError, SessionCreationError

logger = logging.getLogger(__name__)


def _make_timeout(request_timeout_s: float) -> httpx.Timeout:
    # Downloads stream for minutes; only the connect phase must be short.
    return httpx.Timeout(connect=5.0, read=request_timeout_s, write=10.0, pool=5.0)


def _model_names(payload: Any) -> set[str]:
    names: set[str] = set()
    models = payload.get("models") if isinstance(payload, dict) else None
    for m in models or []:
        if not isinstance(m, dict):
            continue
        for key in ("name", "model"):
            v = m.get(key)
            if isinstance(v, str) and v:
                names.add(v)
                if v.endswith(":latest"):
                    names.add(v[: -len(":latest")])
    return names


def _system_prompt(options: SessionOptions, context: str) -> str:
    parts = [options.shared_context.strip()]
    if context.strip():
        parts.append(f"Context:\n{context.strip()}")
    if options.expected_languages:
        parts.append(f"The user may write in: {', '.join(options.expected_languages)}.")
    parts.append(f"Reply in language: {options.output_language}.")
    return "\n\n".join(p for p in parts if p)


class LocalModelSession:
    def __init__(
            self,
            *,
            http: httpx.AsyncClient,
            llm: AsyncOpenAI,
            options: SessionOptions,
    ) -> None:
        self._http = http
        self._llm = llm
        self._options = options

    async def summarize(self, prompt: str, *, context: str = "") -> str:
        try:
            resp = await self._llm.chat.completions.create(
                model=self._options.model,
                messages=[
                    {"role": "system", "content": _system_prompt(self._options, context)},
                    {"role": "user", "content": prompt},
                ],
                temperature=self._options.temperature,
                extra_body={"top_k": self._options.top_k},
            )
        except openai.RateLimitError as e:
            raise QuotaExceededError(f"Model quota exceeded: {e}") from e

        try:
            content = resp.choices[0].message.content
        except (AttributeError, IndexError):
            content = None
        text = (content or "").strip()
        if not text:
            raise SessionCreationError(f"Model returned no content: {self._options.model}")
        return text

    async def destroy(self) -> None:
        try:
            await self._http.post(
                "/api/generate",
                json={"model": self._options.model, "keep_alive": 0},
            )
        finally:
            await self._llm.close()


class LocalModelRuntime:
    def __init__(
            self,
            base_url: str,
            *,
            request_timeout_seconds: float = 60.0,
            transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        base_url = (base_url or "").strip().rstrip("/")
        if not base_url:
            raise ValueError("Model runtime base URL is not set. Set AFFIRM_RUNTIME_BASE_URL in your .env.")
        self._base_url = base_url
        self._timeout = _make_timeout(float(request_timeout_seconds))
        # Custom transport (e.g. httpx.MockTransport) for both clients; None uses the network.
        self._transport = transport
        self._http = httpx.AsyncClient(base_url=base_url, timeout=self._timeout, transport=transport)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def availability(self, options: SessionOptions) -> str:
        resp = await self._http.get("/api/tags")
        if resp.status_code == 404:
            # Reachable but not a model runtime we understand.
            return "no"
        resp.raise_for_status()

        if options.model in _model_names(resp.json()):
            return "readily"
        return "after-download"

    async def _pull(self, options: SessionOptions, monitor: DownloadMonitor | None) -> None:
        logger.info("Pulling model=%s from %s", options.model, self._base_url)
        async with self._http.stream(
            "POST",
            "/api/pull",
            json={"model": options.model, "stream": True},
            timeout=httpx.Timeout(connect=5.0, read=None, write=10.0, pool=5.0),
        ) as resp:
            if resp.status_code == 404:
                raise ModelUnavailableError(f"Model not available: {options.model}")
            resp.raise_for_status()

            async for line in resp.aiter_lines():
                if not line.strip():
                    continue
                try:
                    ev = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug("Skipping non-JSON pull line: %r", line[:200])
                    continue
                if not isinstance(ev, dict):
                    logger.debug("Skipping non-object pull event: %r", line[:200])
                    continue

                if ev.get("error"):
                    raise SessionCreationError(f"Model download failed: {ev['error']}")

                total = ev.get("total")
                completed = ev.get("completed")
                if monitor is not None and total and completed is not None:
                    monitor(min(1.0, float(completed) / float(total)))

                if ev.get("status") == "success":
                    break

        if monitor is not None:
            monitor(1.0)

    async def create(
            self,
            options: SessionOptions,
            *,
            monitor: DownloadMonitor | None = None,
    ) -> LocalModelSession:
        if await self.availability(options) != "readily":
            await self._pull(options, monitor)

        llm = AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            # Local runtimes ignore the key, the SDK requires one.
            api_key="local",
            timeout=self._timeout,
            max_retries=0,
            http_client=(
                httpx.AsyncClient(transport=self._transport, timeout=self._timeout)
                if self._transport is not None
                else None
            ),
        )
        return LocalModelSession(http=self._http, llm=llm, options=options)
