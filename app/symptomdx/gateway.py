"""Gateway for the hosted text-generation endpoint."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from symptomdx.config import Settings


class UpstreamUnavailable(RuntimeError):
    """The inference endpoint failed, timed out or answered with an unusable payload."""

    def __init__(self, reason: str, detail: str = "", *, status_code: int | None = None):
        self.reason = reason
        self.detail = detail
        self.status_code = status_code
        message = f"{reason}: {detail}" if detail else reason
        super().__init__(message)


def extract_generated_text(payload: Any) -> str:
    if not isinstance(payload, list) or not payload:
        raise UpstreamUnavailable("malformed", "expected a non-empty JSON array")
    first = payload[0]
    if not isinstance(first, dict):
        raise UpstreamUnavailable("malformed", "first element is not an object")
    generated = first.get("generated_text")
    if not isinstance(generated, str) or not generated:
        raise UpstreamUnavailable("malformed", "missing generated_text")
    return generated


class InferenceGateway:
    def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None):
        self._settings = settings
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return self._settings.inference_url

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.inference_token or ''}",
            "Content-Type": "application/json",
        }

    async def _post_json(self, payload: dict[str, Any], *, timeout_sec: float) -> Any:
        async with httpx.AsyncClient(
            timeout=timeout_sec,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            response = await client.post(self.endpoint, json=payload, headers=self._headers())
            response.raise_for_status()
            return response.json()

    async def infer(self, prompt: str, *, timeout_sec: float | None = None) -> str:
        """Send one generation request and return the generated text.

        A single attempt is made. The whole exchange is bounded by ``timeout_sec``
        (the diagnosis budget by default) and every failure is raised as
        ``UpstreamUnavailable``.
        """
        budget = timeout_sec if timeout_sec is not None else self._settings.diagnosis_timeout_sec
        try:
            payload = await asyncio.wait_for(self._post_json({"inputs": prompt}, timeout_sec=budget), budget)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise UpstreamUnavailable("timeout", f"no answer within {budget:g}s") from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise UpstreamUnavailable("status", f"HTTP {status}", status_code=status) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UpstreamUnavailable("network", f"{type(exc).__name__}: {exc}") from exc
        except ValueError as exc:
            raise UpstreamUnavailable("malformed", "response body is not JSON") from exc

        return extract_generated_text(payload)
