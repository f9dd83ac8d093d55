"""LLM response parsing utilities for sandagent."""

import json
import re
from typing import Any, Dict, Optional, Tuple

import yaml

from ..core.models import Plan
from ..utils.logging import logger


def parse_llm_thought(llm_output: str) -> str:
    """Extract the LLM's thought process from <think> tags."""
    match = re.search(r"<think>(.*?)</think>", llm_output, re.DOTALL)
    return match.group(1).strip() if match else ""


def strip_thoughts(llm_output: str) -> str:
    """Remove <think> blocks so braces inside reasoning never reach the decoder."""
    return re.sub(r"<think>.*?</think>", "", llm_output, flags=re.DOTALL)


def strip_code_fences(llm_output: str) -> str:
    """Remove markdown code-fence markers (```json, ```yaml, ```) but keep their content."""
    return re.sub(r"```[A-Za-z0-9_-]*", "", llm_output)


def extract_object_text(llm_output: str) -> Optional[str]:
    """Greedy match from the first '{' to the last '}'."""
    match = re.search(r"\{[\s\S]*\}", llm_output)
    return match.group(0) if match else None


def decode_object(text: str) -> Tuple[Optional[Dict[str, Any]], str]:
    """Decode an object with strict JSON first, then permissive YAML flow syntax.

    Returns:
        Tuple of (decoded_dict, error). ``error`` is empty on success.
    """
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data, ""
        strict_error = f"decoded JSON is a {type(data).__name__}, not an object"
    except json.JSONDecodeError as e:
        strict_error = f"JSON decode failed: {e}"

    logger.debug(f"Strict decode failed ({strict_error}); trying permissive decode")

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        first_line = str(e).splitlines()[0] if str(e) else type(e).__name__
        return None, f"{strict_error}; permissive decode failed: {first_line}"

    if isinstance(data, dict):
        return data, ""
    return None, f"{strict_error}; permissive decode produced {type(data).__name__}"


def parse_plan(llm_output: str) -> Tuple[Optional[Plan], str]:
    """Turn raw model text into a candidate plan.

    Never raises for malformed text: every failure comes back as an error string
    the caller records in the iteration's ActionLog.

    Args:
        llm_output: Raw model response

    Returns:
        Tuple of (plan, error). ``plan`` is None when ``error`` is non-empty.
    """
    if not llm_output or not llm_output.strip():
        return None, "empty response from model"

    cleaned = strip_code_fences(strip_thoughts(llm_output))
    object_text = extract_object_text(cleaned)
    if object_text is None:
        return None, "no JSON object found in response"

    data, error = decode_object(object_text)
    if data is None:
        return None, error

    try:
        return Plan.from_dict(data), ""
    except Exception as e:
        return None, f"could not interpret decoded object as a plan: {e}"


_PATH_TOKEN = re.compile(r"([^.\[\]]+)|\[(\d+)\]")


def extract_response_content(response_data: dict, response_path: str) -> Optional[str]:
    """Walk a jq-like path through the endpoint's JSON response.

    Args:
        response_data: Decoded response body
        response_path: Path such as ".message.content" or ".choices[0].message.content"

    Returns:
        The value at the path, or None if any step is missing
    """
    if not response_path.startswith('.'):
        logger.warning(f"Response path should start with '.': {response_path}")
        return None

    current: Any = response_data
    for key, index in _PATH_TOKEN.findall(response_path[1:]):
        if key:
            if not isinstance(current, dict) or key not in current:
                return None
            current = current[key]
        else:
            position = int(index)
            if not isinstance(current, list) or position >= len(current):
                return None
            current = current[position]
    return current
