from __future__ import annotations

from langchain_agentstream._decoder import StreamDecoder, adecode_stream, decode_stream
from langchain_agentstream._errors import AgentStreamAPIError, AgentStreamError, StreamTransportError
from langchain_agentstream._push import CompletionReason, EventSourceConnection, consume_push_events
from langchain_agentstream._sse import FrameBuffer, iter_frame_payloads, iter_payloads_from_text
from langchain_agentstream.chat import ChatAgentStream
from langchain_agentstream.streaming import AgentStreamClient

__all__ = [
    "AgentStreamAPIError",
    "AgentStreamClient",
    "AgentStreamError",
    "ChatAgentStream",
    "CompletionReason",
    "EventSourceConnection",
    "FrameBuffer",
    "StreamDecoder",
    "StreamTransportError",
    "adecode_stream",
    "consume_push_events",
    "decode_stream",
    "iter_frame_payloads",
    "iter_payloads_from_text",
]

__version__ = "0.1.0"
