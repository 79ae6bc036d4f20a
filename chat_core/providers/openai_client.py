"""Chat-completions client over httpx.

This module is the transport of the chat pipeline:

1. Take a ChatRequest and turn it into the JSON body of the call.
2. Build URL and auth headers for the configured provider flavour.
3. Issue the POST and map httpx / HTTP failures to business errors.
4. Non-streaming: parse the JSON reply into a ChatResult.
   Streaming: hand the body bytes to FrameStream -> DeltaStream and yield
   the resulting events lazily, one network read at a time.
"""

import json
import logging
from typing import Any, Dict, Iterator, Optional

import httpx

from chat_core.domain.exceptions import (
    ApiError,
    ConfigurationError,
    HttpStatusError,
    NetworkError,
    ParseError,
    RateLimitError,
)
from chat_core.domain.models import ChatRequest, ChatResult, ChatUsage, StreamEvent
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.registry import AZURE_CONFIG, ProviderConfig
from chat_core.streaming.deltas import DeltaStream
from chat_core.streaming.sse import FrameStream


class OpenAIChatClient:
    """Client for OpenAI-compatible chat-completions endpoints.

    - name: provider flavour name (azure / openai), used in logs.
    - chat: buffered call, returns ChatResult.
    - chat_stream: streaming call, yields StreamEvent.
    """

    def __init__(self, settings, provider: ProviderConfig = AZURE_CONFIG):
        # settings carries endpoint, key, api version and timeouts
        self._settings = settings
        self._provider = provider
        self.name = provider.name

    # ---- non-streaming ----

    def chat(self, req: ChatRequest) -> ChatResult:
        """Run one non-streaming call and return the whole reply."""

        self._require_config(req)
        payload = self._build_payload(req, stream=False)
        self._log(logging.INFO, "Calling provider", req, stream=False)
        try:
            with httpx.Client(timeout=self._timeout(), trust_env=False) as client:
                resp = client.post(
                    self._url(req),
                    params=self._params(),
                    json=payload,
                    headers=self._headers(stream=False),
                )
        except httpx.RequestError as e:
            # DNS failure, refused connection, timeout
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)
        self._raise_for_status(resp.status_code, resp.text)
        try:
            data = resp.json()
        except ValueError as e:
            raise ParseError(code="INVALID_RESPONSE", message=f"Response is not JSON: {e}", provider=self.name)
        return self._parse_response(data, req)

    # ---- streaming ----

    def chat_stream(self, req: ChatRequest) -> Iterator[StreamEvent]:
        """Run one streaming call, yielding events as the body arrives.

        Closing the generator early closes the HTTP response.
        """

        self._require_config(req)
        payload = self._build_payload(req, stream=True)
        self._log(logging.INFO, "Calling provider", req, stream=True)
        try:
            with httpx.Client(timeout=self._timeout(), trust_env=False) as client:
                with client.stream(
                    "POST",
                    self._url(req),
                    params=self._params(),
                    json=payload,
                    headers=self._headers(stream=True),
                ) as resp:
                    if not 200 <= resp.status_code < 300:
                        resp.read()
                        self._raise_for_status(resp.status_code, resp.text)
                    frames = FrameStream(self._iter_body(resp))
                    deltas = DeltaStream(frames)
                    yield from deltas
                    self._log(
                        logging.INFO,
                        "Stream finished",
                        req,
                        saw_sentinel=frames.saw_sentinel,
                        frames=frames.frame_count,
                        skipped_frames=deltas.skipped_frames,
                    )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)

    def _iter_body(self, resp) -> Iterator[bytes]:
        try:
            for chunk in resp.iter_bytes():
                yield chunk
        except httpx.RequestError as e:
            # headers arrived, then the body broke off or could not be decoded
            raise ParseError(
                code="STREAM_INTERRUPTED",
                message=f"Stream closed abnormally: {e}",
                provider=self.name,
            )

    # ---- helpers ----

    def _require_config(self, req: ChatRequest) -> None:
        missing = []
        if not getattr(self._settings, "openai_api_endpoint", None):
            missing.append("endpoint")
        if not getattr(self._settings, "openai_api_key", None):
            missing.append("api key")
        if not req.model:
            missing.append("model")
        if missing:
            raise ConfigurationError(code="MISSING_CONFIG", message="Missing " + ", ".join(missing))

    def _url(self, req: ChatRequest) -> str:
        return self._provider.chat_url(self._settings.openai_api_endpoint, req.model)

    def _params(self) -> Dict[str, str]:
        return self._provider.query_params(getattr(self._settings, "openai_api_version", None))

    def _headers(self, stream: bool) -> Dict[str, str]:
        headers = self._provider.auth_headers(self._settings.openai_api_key)
        headers["Content-Type"] = "application/json"
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self._settings.http_timeout,
            connect=getattr(self._settings, "connect_timeout", self._settings.http_timeout),
        )

    def _build_payload(self, req: ChatRequest, stream: bool) -> Dict[str, Any]:
        """Turn a ChatRequest into the chat-completions JSON body."""

        payload: Dict[str, Any] = {
            "model": req.model,
            "messages": [m.to_payload() for m in req.messages],
            "stream": stream,
        }
        if req.temperature is not None:
            payload["temperature"] = req.temperature
        if req.max_tokens is not None:
            payload["max_tokens"] = req.max_tokens
        if req.top_p is not None:
            payload["top_p"] = req.top_p
        return payload

    def _raise_for_status(self, status_code: int, body: str) -> None:
        if 200 <= status_code < 300:
            return
        detail = self._error_detail(body) or f"HTTP {status_code}"
        if status_code == 429:
            # no automatic retry; the user can resend
            raise RateLimitError(code="RATE_LIMIT", message=detail, http_status=status_code, provider=self.name)
        raise HttpStatusError(code="HTTP_STATUS", message=detail, http_status=status_code, provider=self.name)

    @staticmethod
    def _error_detail(body: str) -> str:
        """Prefer the structured ``error.message`` of an API error body."""

        try:
            data = json.loads(body)
        except (TypeError, ValueError):
            return (body or "").strip()
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str):
                return error
        return (body or "").strip()

    def _parse_response(self, data: Any, req: ChatRequest) -> ChatResult:
        """Parse a buffered chat-completions response."""

        if not isinstance(data, dict):
            raise ParseError(code="INVALID_RESPONSE", message="Response is not a JSON object", provider=self.name)
        error = data.get("error")
        if error:
            detail = error.get("message") if isinstance(error, dict) else str(error)
            raise ApiError(code="API_ERROR", message=detail or "Provider returned an error", provider=self.name)
        choices = data.get("choices") or []
        if not isinstance(choices, list):
            raise ParseError(code="INVALID_RESPONSE", message="Response choices is not a list", provider=self.name)
        if not choices:
            raise ParseError(code="NO_CHOICES", message="No response choices available", provider=self.name)
        first = choices[0] or {}
        if not isinstance(first, dict):
            raise ParseError(code="INVALID_RESPONSE", message="Response choice is not an object", provider=self.name)
        message: Optional[Dict[str, Any]] = first.get("message") or {}
        if not isinstance(message, dict):
            raise ParseError(code="INVALID_RESPONSE", message="Response message is not an object", provider=self.name)
        content = message.get("content") or ""
        if not isinstance(content, str):
            raise ParseError(code="INVALID_RESPONSE", message="Response content is not text", provider=self.name)
        finish_reason = first.get("finish_reason")
        usage = ChatUsage.from_payload(data.get("usage"))
        if usage:
            self._log(
                logging.INFO,
                "Token usage",
                req,
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            )
        return ChatResult(
            provider=self.name,
            model=req.model,
            content=content,
            finish_reason=finish_reason if isinstance(finish_reason, str) else None,
            usage=usage,
            raw=data,
        )

    def _log(self, level: int, message: str, req: ChatRequest, **fields: Any) -> None:
        payload = {"provider": self.name, "model": req.model, "message_count": len(req.messages)}
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
