"""LLM integration for sandagent."""

from .client import LLMClient, create_llm_client
from .payload import PayloadBuilder, create_payload_builder
from .parsers import (
    parse_plan,
    parse_llm_thought,
    strip_thoughts,
    strip_code_fences,
    extract_object_text,
    decode_object,
    extract_response_content
)

__all__ = [
    "LLMClient",
    "create_llm_client",
    "PayloadBuilder",
    "create_payload_builder",
    "parse_plan",
    "parse_llm_thought",
    "strip_thoughts",
    "strip_code_fences",
    "extract_object_text",
    "decode_object",
    "extract_response_content",
]
