"""
HTTP client for the analysis endpoints of a running StockLens API.

Mirrors what the web dashboard does: POST a snapshot payload and get back an
AnalysisResult, either in one response or by reading the SSE stream and
forwarding each text delta as it arrives. Failures never raise; they come
back as ``AnalysisResult(ok=False, ...)``.
"""

from collections.abc import Callable
from typing import Any

import httpx

from stocklens.analysis.snapshot import Snapshot
from stocklens.config import settings
from stocklens.exceptions import ErrorKind
from stocklens.narrative.generator import NETWORK_MESSAGE, TIMEOUT_MESSAGE
from stocklens.narrative.models import AnalysisResult, NarrativeResult, parse_narrative
from stocklens.narrative.streaming import StreamAccumulator, parse_sse
from stocklens.utils.logging import get_logger

log = get_logger(__name__)

ANALYZE_PATH = "/api/ai/analyze"
STREAM_PATH = "/api/ai/analyze/stream"

_STATUS_KIND = {
    503: ErrorKind.NOT_CONFIGURED,
    504: ErrorKind.TIMEOUT,
}


def kind_for_status(status_code: int) -> ErrorKind:
    return _STATUS_KIND.get(status_code, ErrorKind.UPSTREAM)


def _kind_from_body(body: dict[str, Any], status_code: int) -> ErrorKind:
    try:
        return ErrorKind(body.get("error_kind"))
    except ValueError:
        return kind_for_status(status_code)


class NarrativeClient:
    """
    Client for ``/api/ai/analyze`` and ``/api/ai/analyze/stream``.

    Example:
        client = NarrativeClient("http://localhost:8787")
        result = await client.analyze_stream(snapshot, on_delta=print)
        await client.aclose()
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url or settings.api.base_url
        # Slightly above the server-side bound so the server reports its own timeout
        self.timeout = settings.llm.timeout_seconds + 5 if timeout is None else timeout
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def analyze(self, snapshot: Snapshot | dict[str, Any]) -> AnalysisResult:
        """Batched analysis of ``snapshot``."""
        try:
            response = await self.client.post(ANALYZE_PATH, json=_as_payload(snapshot))
        except httpx.TimeoutException:
            return AnalysisResult.failure(TIMEOUT_MESSAGE, ErrorKind.TIMEOUT)
        except httpx.HTTPError as e:
            log.warning("narrative_client_request_failed", path=ANALYZE_PATH, error=str(e))
            return AnalysisResult.failure(str(e) or NETWORK_MESSAGE, ErrorKind.NETWORK)

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {"ok": False, "error": f"Invalid JSON from {ANALYZE_PATH}"}

        if response.is_error or not body.get("ok"):
            return AnalysisResult.failure(
                body.get("error") or f"AI error {response.status_code}",
                _kind_from_body(body, response.status_code),
                source=body.get("source"),
            )

        analysis = body.get("analysis")
        return AnalysisResult(
            ok=True,
            source=body.get("source"),
            analysis=NarrativeResult.model_validate(analysis if isinstance(analysis, dict) else {}),
        )

    async def analyze_stream(
        self,
        snapshot: Snapshot | dict[str, Any],
        on_delta: Callable[[str], None] | None = None,
    ) -> AnalysisResult:
        """
        Streamed analysis of ``snapshot``.

        Each chunk is passed to ``on_delta`` as it is decoded; the final text
        is parsed once the ``done`` event arrives. A stream that ends without
        a terminal event is parsed from the chunks received so far.
        """
        accumulator = StreamAccumulator(on_delta=on_delta)
        status_code = 200
        buffer = ""
        try:
            async with self.client.stream("POST", STREAM_PATH, json=_as_payload(snapshot)) as response:
                status_code = response.status_code
                async for text in response.aiter_text():
                    events, buffer = parse_sse(buffer + text)
                    for event in events:
                        accumulator.feed(event)
                    if accumulator.finished:
                        break
        except httpx.TimeoutException:
            return AnalysisResult.failure(TIMEOUT_MESSAGE, ErrorKind.TIMEOUT)
        except httpx.HTTPError as e:
            log.warning("narrative_client_request_failed", path=STREAM_PATH, error=str(e))
            return AnalysisResult.failure(str(e) or NETWORK_MESSAGE, ErrorKind.NETWORK)

        if accumulator.error is not None:
            # The wire form carries only the message
            if status_code >= 400:
                kind = kind_for_status(status_code)
            elif accumulator.error == TIMEOUT_MESSAGE:
                kind = ErrorKind.TIMEOUT
            else:
                kind = ErrorKind.NETWORK
            return AnalysisResult.failure(accumulator.error, kind)
        if status_code >= 400:
            return AnalysisResult.failure(f"AI stream error {status_code}", kind_for_status(status_code))

        return AnalysisResult(ok=True, analysis=parse_narrative(accumulator.text))


def _as_payload(snapshot: Snapshot | dict[str, Any]) -> dict[str, Any]:
    return snapshot.to_payload() if isinstance(snapshot, Snapshot) else snapshot
