"""Chat-completion gateway.

One request per call against an OpenAI-compatible ``/chat/completions``
endpoint. Every call goes through the call-site's retry profile and a hard
wall-clock timeout, and every failure leaves as a ``GatewayError`` subclass so
callers never have to know about the SDK's exception types.
"""
from __future__ import annotations
import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from openai import AsyncOpenAI, APIConnectionError, APIError, APIStatusError, APITimeoutError

from tutor.core.config import AIConfig, CallProfile
from tutor.ai.retry import with_retry


class GatewayError(Exception):
    kind = "gateway"


class GatewayUnconfigured(GatewayError):
    kind = "unconfigured"


class GatewayNetworkError(GatewayError):
    kind = "network"


class GatewayTimeout(GatewayError):
    kind = "timeout"


class GatewayHTTPError(GatewayError):
    kind = "http"

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        detail = f" - {body[:300]}" if body else ""
        super().__init__(f"AI gateway returned HTTP {status}{detail}")


class MalformedResponse(GatewayError):
    kind = "malformed"


@dataclass
class RawCompletion:
    content: str
    model: Optional[str] = None
    usage: dict[str, Any] = field(default_factory=dict)


def parse_json_content(content: str) -> Any:
    """Decode a JSON payload the model returned as message content."""
    text = (content or "").strip()
    # models sometimes wrap JSON in a markdown fence
    if text.startswith("```"):
        text = text[3:]
        if text.lower().startswith("json"):
            text = text[4:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"Model content is not valid JSON: {e}") from e


class GatewayClient:
    """Per-request client bound to one ``AIConfig``."""

    def __init__(self, config: AIConfig, http_client: httpx.AsyncClient | None = None):
        self.config = config
        self._http_client = http_client
        self._client: AsyncOpenAI | None = None

    @property
    def available(self) -> bool:
        return self.config.availability.usable

    def _openai(self) -> AsyncOpenAI:
        if self._client is None:
            # the SDK appends "chat/completions" to whatever path the base carries
            base_url = self.config.base_url.rstrip("/") + "/"
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=base_url,
                max_retries=0,
                http_client=self._http_client,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def complete(
        self,
        messages: list[dict[str, Any]],
        profile: CallProfile,
        model: str | None = None,
    ) -> RawCompletion:
        """Send ``messages`` and return the first choice's content.

        Retries according to ``profile``; the last error is re-raised as-is.
        """
        availability = self.config.availability
        if not availability.usable:
            raise GatewayUnconfigured(f"AI API key is {availability.value}")

        model = model or self.config.text_model

        async def attempt() -> RawCompletion:
            return await self._complete_once(messages, profile, model)

        return await with_retry(
            attempt,
            max_attempts=profile.max_attempts,
            base_delay_s=profile.base_delay_s,
        )

    async def _complete_once(
        self,
        messages: list[dict[str, Any]],
        profile: CallProfile,
        model: str,
    ) -> RawCompletion:
        client = self._openai()
        try:
            # wait_for cancels the in-flight request when the deadline trips
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=model,
                    messages=messages,
                    max_tokens=profile.max_tokens,
                    temperature=profile.temperature,
                    timeout=profile.timeout_s,
                ),
                timeout=profile.timeout_s,
            )
        except (asyncio.TimeoutError, APITimeoutError) as e:
            raise GatewayTimeout(f"AI call exceeded {profile.timeout_s:g}s") from e
        except APIStatusError as e:
            raise GatewayHTTPError(e.status_code, e.response.text or e.message) from e
        except APIConnectionError as e:
            raise GatewayNetworkError(f"AI gateway unreachable: {e}") from e
        except (APIError, ValueError) as e:
            # 200 with a body the SDK cannot decode
            raise MalformedResponse(f"Unreadable AI response: {e}") from e

        choices = getattr(response, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None) if message is not None else None
        if content is None:
            raise MalformedResponse("Response has no choices[0].message.content")

        usage = getattr(response, "usage", None)
        logging.debug(f"AI completion from {model}: {len(content)} chars")
        return RawCompletion(
            content=content,
            model=getattr(response, "model", None),
            usage=usage.model_dump() if usage is not None else {},
        )
