"""
Narrative generation: sends a snapshot to a chat model and parses the answer.

The chat model is an external collaborator reached through LangChain. Every
request, batched or streamed, is bounded by a hard timeout; a timeout is
reported with its own error kind so callers can tell it apart from other
network failures.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from stocklens.analysis.snapshot import Snapshot
from stocklens.config import settings
from stocklens.exceptions import ErrorKind, NarrativeError
from stocklens.narrative.models import AnalysisResult, parse_narrative
from stocklens.narrative.prompts import SYSTEM_PROMPT, build_user_prompt
from stocklens.narrative.streaming import StreamAccumulator, StreamEvent
from stocklens.utils.logging import get_logger

log = get_logger(__name__)

TIMEOUT_MESSAGE = "AI request timed out"
NETWORK_MESSAGE = "Network error"


def build_messages(payload: dict[str, Any]) -> list[BaseMessage]:
    return [
        SystemMessage(content=SYSTEM_PROMPT),
        HumanMessage(content=build_user_prompt(payload)),
    ]


def infer_provider(model_name: str) -> str | None:
    """
    Infer the LLM provider from the model name.

    Returns:
        Provider name or None if ambiguous
    """
    model_lower = model_name.lower()

    if model_lower.startswith(("gpt-", "o1-", "o3-", "o4-")):
        return "openai"
    if model_lower.startswith("claude"):
        return "anthropic"
    if model_lower.startswith("deepseek"):
        return "deepseek"
    return None


def _content_text(content: Any) -> str:
    """Flatten message content (plain string or a list of content blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and isinstance(block.get("text"), str):
                parts.append(block["text"])
        return "".join(parts)
    return ""


def _is_timeout(exc: BaseException) -> bool:
    # Client libraries raise their own timeout types (httpx.ReadTimeout, openai.APITimeoutError)
    return isinstance(exc, TimeoutError) or "Timeout" in type(exc).__name__


def to_narrative_error(exc: Exception) -> NarrativeError:
    """Classify a failure from the chat model call."""
    if isinstance(exc, NarrativeError):
        return exc
    if _is_timeout(exc):
        return NarrativeError(TIMEOUT_MESSAGE, ErrorKind.TIMEOUT)
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return NarrativeError(str(exc) or f"AI error {status_code}", ErrorKind.UPSTREAM)
    return NarrativeError(str(exc) or NETWORK_MESSAGE, ErrorKind.NETWORK)


class NarrativeGenerator:
    """
    Produces narrative analyses for snapshots.

    Example:
        generator = NarrativeGenerator()
        result = await generator.analyze(snapshot)
        if result.ok:
            print(result.analysis.stance, result.analysis.summary)
    """

    def __init__(
        self,
        llm: BaseChatModel | None = None,
        model_name: str | None = None,
        provider: str | None = None,
        timeout: float | None = None,
    ):
        """
        Args:
            llm: Pre-built chat model (skips provider selection; used by tests)
            model_name: Override the configured model
            provider: Override the provider ("openai", "anthropic", "deepseek", or "auto")
            timeout: Hard timeout in seconds for one request (default: from config)
        """
        self.model_name = model_name or settings.llm.model
        self.provider_override = provider
        self.timeout = timeout if timeout is not None else settings.llm.timeout_seconds
        self._llm = llm

    # =========================================================================
    # LLM CLIENT
    # =========================================================================

    @property
    def provider(self) -> str:
        """Provider selection: explicit override, config, model-name inference, then openai."""
        if self.provider_override and self.provider_override != "auto":
            return self.provider_override.lower()
        if settings.llm.provider and settings.llm.provider != "auto":
            return settings.llm.provider.lower()
        return infer_provider(self.model_name) or "openai"

    def is_configured(self) -> bool:
        if self._llm is not None:
            return True
        key_by_provider = {
            "openai": settings.llm.openai_api_key,
            "anthropic": settings.llm.anthropic_api_key,
            "deepseek": settings.llm.deepseek_api_key,
        }
        return bool(key_by_provider.get(self.provider))

    @property
    def llm(self) -> BaseChatModel:
        """Lazy initialization of the chat model."""
        if self._llm is None:
            self._llm = self._create_llm(self.provider)
        return self._llm

    def _create_llm(self, provider: str) -> BaseChatModel:
        common = {
            "model": self.model_name,
            "max_retries": settings.llm.max_retries,
            "timeout": self.timeout,
            "temperature": settings.llm.temperature,
        }
        if provider == "openai":
            if not settings.llm.openai_api_key:
                raise NarrativeError("Missing LLM_OPENAI_API_KEY", ErrorKind.NOT_CONFIGURED)
            return ChatOpenAI(
                api_key=settings.llm.openai_api_key,
                model_kwargs={"response_format": {"type": "json_object"}},
                **common,
            )
        elif provider == "anthropic":
            if not settings.llm.anthropic_api_key:
                raise NarrativeError("Missing LLM_ANTHROPIC_API_KEY", ErrorKind.NOT_CONFIGURED)
            return ChatAnthropic(api_key=settings.llm.anthropic_api_key, **common)
        elif provider == "deepseek":
            # DeepSeek uses OpenAI-compatible API
            if not settings.llm.deepseek_api_key:
                raise NarrativeError("Missing LLM_DEEPSEEK_API_KEY", ErrorKind.NOT_CONFIGURED)
            return ChatOpenAI(
                api_key=settings.llm.deepseek_api_key,
                base_url="https://api.deepseek.com/v1",
                **common,
            )
        raise NarrativeError(f"Unsupported LLM provider: {provider}", ErrorKind.NOT_CONFIGURED)

    # =========================================================================
    # BATCHED
    # =========================================================================

    async def generate(self, snapshot: Snapshot | dict[str, Any]) -> str:
        """
        Request a narrative and return the model's raw text.

        Raises:
            NarrativeError: on timeout, missing configuration or any call failure
        """
        messages = build_messages(_as_payload(snapshot))
        try:
            llm = self.llm
            response = await asyncio.wait_for(llm.ainvoke(messages), timeout=self.timeout)
        except Exception as e:
            error = to_narrative_error(e)
            log.error(
                "narrative_request_failed",
                model=self.model_name,
                error=str(error),
                error_kind=error.kind.value,
                error_type=type(e).__name__,
            )
            if error is e:
                raise
            raise error from e

        text = _content_text(response.content)
        log.debug("narrative_request_complete", model=self.model_name, response_length=len(text))
        return text

    async def analyze(self, snapshot: Snapshot | dict[str, Any]) -> AnalysisResult:
        """Batched analysis; failures come back as ``ok=False`` results, never raised."""
        try:
            text = await self.generate(snapshot)
        except NarrativeError as e:
            return AnalysisResult.failure(str(e), e.kind, source=self.provider)
        return AnalysisResult(ok=True, source=self.provider, analysis=parse_narrative(text))

    # =========================================================================
    # STREAMED
    # =========================================================================

    async def _stream_text(self, payload: dict[str, Any]) -> AsyncIterator[str]:
        """Yield text deltas; the whole stream shares one deadline."""
        messages = build_messages(payload)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        iterator = None
        try:
            iterator = self.llm.astream(messages).__aiter__()
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise TimeoutError
                try:
                    chunk = await asyncio.wait_for(iterator.__anext__(), timeout=remaining)
                except StopAsyncIteration:
                    return
                delta = _content_text(chunk.content)
                if delta:
                    yield delta
        except Exception as e:
            error = to_narrative_error(e)
            log.error(
                "narrative_stream_failed",
                model=self.model_name,
                error=str(error),
                error_kind=error.kind.value,
            )
            if error is e:
                raise
            raise error from e
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception:
                    log.debug("narrative_stream_close_failed")

    async def stream(self, snapshot: Snapshot | dict[str, Any]) -> AsyncIterator[StreamEvent]:
        """
        Stream the narrative as events: chunks, then ``done`` with the full
        text, or a single ``error`` event.
        """
        parts: list[str] = []
        try:
            async for delta in self._stream_text(_as_payload(snapshot)):
                parts.append(delta)
                yield StreamEvent(kind="chunk", data=delta)
        except NarrativeError as e:
            yield StreamEvent(kind="error", data=str(e), error_kind=e.kind)
            return
        yield StreamEvent(kind="done", data="".join(parts))

    async def analyze_stream(
        self,
        snapshot: Snapshot | dict[str, Any],
        on_delta: Callable[[str], None] | None = None,
    ) -> AnalysisResult:
        """Consume ``stream`` (forwarding deltas to ``on_delta``) and parse the final text."""
        accumulator = StreamAccumulator(on_delta=on_delta)
        async for event in self.stream(snapshot):
            accumulator.feed(event)
            if accumulator.finished:
                break
        if accumulator.error is not None:
            return AnalysisResult.failure(
                accumulator.error,
                accumulator.error_kind or ErrorKind.NETWORK,
                source=self.provider,
            )
        return AnalysisResult(ok=True, source=self.provider, analysis=parse_narrative(accumulator.text))


def _as_payload(snapshot: Snapshot | dict[str, Any]) -> dict[str, Any]:
    return snapshot.to_payload() if isinstance(snapshot, Snapshot) else snapshot
