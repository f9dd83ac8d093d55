"""LLM client for API communication in sandagent."""

from typing import Dict, Any, Optional
from pathlib import Path

import requests

from ..utils.logging import logger
from .parsers import extract_response_content
from .payload import PayloadBuilder


class LLMClient:
    """Implements ``generate(prompt, system_prompt) -> text`` over an HTTP model endpoint.

    Every failure (transport, HTTP status, undecodable body, missing response path)
    degrades to an empty string; the caller treats that like malformed output.
    """

    def __init__(self, config: Dict[str, Any], payload_builder: PayloadBuilder, response_path_file: Path):
        """Initialize LLM client.

        Args:
            config: Application configuration
            payload_builder: Builder that renders the request payload template
            response_path_file: Path to response path template file
        """
        self.config = config
        self.payload_builder = payload_builder
        self.response_path_file = response_path_file
        self.endpoint = config.get("endpoint", "")
        self.api_key = config.get("api_key")
        self.timeout = config.get("llm_timeout", 300)

    def generate(self, prompt: str, system_prompt: str) -> str:
        """Send one prompt to the model and return its text.

        Args:
            prompt: User prompt content
            system_prompt: System prompt content

        Returns:
            The model's text, or "" on any failure
        """
        if not self.endpoint:
            logger.error("No LLM endpoint configured")
            return ""

        payload = self.payload_builder.build_payload(system_prompt, prompt)
        if not payload:
            return ""

        response_data = self._make_api_call(payload)
        if response_data is None:
            return ""

        response_path = self._get_response_path()
        if not response_path:
            return ""

        content = extract_response_content(response_data, response_path)
        if content is None:
            logger.warning(f"Response path '{response_path}' not found in LLM response")
            return ""
        return content if isinstance(content, str) else str(content)

    def _make_api_call(self, payload: str) -> Optional[Any]:
        """POST the payload and decode the JSON body."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        logger.debug(f"Making LLM API call to {self.endpoint}")

        try:
            response = requests.post(
                self.endpoint,
                headers=headers,
                data=payload.encode('utf-8'),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.error(f"LLM API call timed out after {self.timeout} seconds")
            return None
        except requests.exceptions.RequestException as e:
            logger.error(f"Error during LLM API call: {e}")
            return None

        if response.status_code >= 400:
            logger.error(f"LLM API call failed with status {response.status_code}")
            logger.debug(f"Response body: {response.text[:500]}")
            return None

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Failed to parse LLM response as JSON: {e}")
            logger.debug(f"Raw response: {response.text[:500]}")
            return None

    def _get_response_path(self) -> Optional[str]:
        """Get the first non-comment line of the response path file."""
        try:
            if not self.response_path_file.exists():
                logger.error(f"Response path file not found: {self.response_path_file}")
                return None

            for line in self.response_path_file.read_text(encoding='utf-8').splitlines():
                line = line.strip()
                if line and not line.startswith('#'):
                    logger.debug(f"Using response path: {line}")
                    return line

            logger.error(f"Response path file is empty: {self.response_path_file}")
            return None

        except OSError as e:
            logger.error(f"Error reading response path file {self.response_path_file}: {e}")
            return None


def create_llm_client(config: Dict[str, Any], payload_builder: PayloadBuilder,
                      response_path_file: Path) -> LLMClient:
    """Create a configured LLM client instance."""
    return LLMClient(config, payload_builder, response_path_file)
