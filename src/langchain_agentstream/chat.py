from __future__ import annotations

from typing import Any, AsyncIterator, Iterator

from langchain_core.callbacks import AsyncCallbackManagerForLLMRun, CallbackManagerForLLMRun
from langchain_core.language_models.chat_models import BaseChatModel, generate_from_stream
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage, HumanMessage
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult
from pydantic import ConfigDict, Field, PrivateAttr

from langchain_agentstream._client import DEFAULT_BASE_URL
from langchain_agentstream.streaming import AgentStreamClient


def _text_from_any_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        out: list[str] = []
        for b in content:
            if isinstance(b, str):
                out.append(b)
            elif isinstance(b, dict) and b.get("type") == "text" and isinstance(b.get("text"), str):
                out.append(b["text"])
        return "".join(out)
    return ""


def _message_from_messages(messages: list[BaseMessage]) -> str:
    """
    The chat endpoint takes a single user message and keeps conversation state server-side,
    so only the last human message is sent.
    """
    for m in reversed(messages):
        if isinstance(m, HumanMessage):
            text = _text_from_any_content(m.content)
            if text.strip():
                return text
    raise ValueError("ChatAgentStream needs at least one non-empty HumanMessage.")


def _empty_result() -> ChatResult:
    # Un stream sin payloads (solo centinelas) sigue siendo una respuesta valida.
    return ChatResult(generations=[ChatGeneration(message=AIMessage(content=""))])


class ChatAgentStream(BaseChatModel):
    """
    LangChain ChatModel over the agent service chat stream: POST /api/stream/chat

    Streaming contract:
    - .stream/.astream emit one AIMessageChunk per decoded payload, in arrival order
    - .invoke/.ainvoke consume the same stream and aggregate it
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    token: str | None = Field(default=None, exclude=True, repr=False)
    base_url: str = DEFAULT_BASE_URL
    timeout_s: float = 60.0

    _client: AgentStreamClient = PrivateAttr()

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._client = AgentStreamClient(token=self.token, base_url=self.base_url, timeout_s=self.timeout_s)

    @property
    def _llm_type(self) -> str:
        return "agentstream-chat"

    @property
    def _identifying_params(self) -> dict[str, Any]:
        return {"base_url": self.base_url, "timeout_s": self.timeout_s}

    def _generate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        chunks = list(self._stream(messages, stop, run_manager, **kwargs))
        if not chunks:
            return _empty_result()
        return generate_from_stream(iter(chunks))

    async def _agenerate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: AsyncCallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        chunks = [c async for c in self._astream(messages, stop, run_manager, **kwargs)]
        if not chunks:
            return _empty_result()
        return generate_from_stream(iter(chunks))

    def _stream(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> Iterator[ChatGenerationChunk]:
        message = _message_from_messages(messages)
        for text in self._client.iter_chat(message):
            chunk = ChatGenerationChunk(message=AIMessageChunk(content=text))
            if run_manager is not None:
                run_manager.on_llm_new_token(text, chunk=chunk)
            yield chunk

    async def _astream(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: AsyncCallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ChatGenerationChunk]:
        message = _message_from_messages(messages)
        async for text in self._client.aiter_chat(message):
            chunk = ChatGenerationChunk(message=AIMessageChunk(content=text))
            if run_manager is not None:
                await run_manager.on_llm_new_token(text, chunk=chunk)
            yield chunk
