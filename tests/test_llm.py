import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from sandagent.llm import create_llm_client, create_payload_builder


@pytest.fixture
def builder(config, config_files):
    payload_file, _ = config_files
    builder = create_payload_builder(config, payload_file)
    builder.set_allowed_commands({"ls": "List directory contents."})
    return builder


@pytest.fixture
def client(config, builder, config_files):
    _, response_path_file = config_files
    return create_llm_client(config, builder, response_path_file)


def ok_response(payload):
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = payload
    return response


def test_generate_extracts_content(client, config):
    with patch("sandagent.llm.client.requests.post") as mock_post:
        mock_post.return_value = ok_response({"message": {"content": '{"type": "observe"}'}})
        text = client.generate("what next?", "you speak JSON")

    assert text == '{"type": "observe"}'
    sent = json.loads(mock_post.call_args.kwargs["data"].decode("utf-8"))
    assert sent["model"] == config["model"]
    assert sent["messages"][0] == {"role": "system", "content": "you speak JSON"}
    assert sent["messages"][1]["content"] == "what next?"
    assert mock_post.call_args.kwargs["timeout"] == config["llm_timeout"]


def test_generate_sends_api_key(client):
    client.api_key = "secret"
    with patch("sandagent.llm.client.requests.post") as mock_post:
        mock_post.return_value = ok_response({"message": {"content": "x"}})
        client.generate("p", "s")
    assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer secret"


def test_generate_returns_empty_on_http_error(client):
    response = MagicMock()
    response.status_code = 500
    response.text = "internal error"
    with patch("sandagent.llm.client.requests.post", return_value=response):
        assert client.generate("p", "s") == ""


def test_generate_returns_empty_on_transport_error(client):
    with patch("sandagent.llm.client.requests.post", side_effect=requests.exceptions.ConnectionError("down")):
        assert client.generate("p", "s") == ""


def test_generate_returns_empty_when_path_missing(client):
    with patch("sandagent.llm.client.requests.post", return_value=ok_response({"response": "x"})):
        assert client.generate("p", "s") == ""


def test_prompts_with_quotes_stay_valid_json(builder):
    payload = builder.build_payload('say "hi"\n', 'line one\nline "two"')
    data = json.loads(payload)
    assert data["messages"][1]["content"] == 'line one\nline "two"'


def test_render_repair_prompt(builder):
    prompt = builder.render_prompt("repair", raw_response="{not json", error="no JSON object found in response")
    assert "{not json" in prompt
    assert "Emit valid JSON only" in prompt


def test_render_unknown_prompt(builder):
    assert builder.render_prompt("nonexistent") is None


def test_command_instructions_list_allowed_commands(builder):
    text = builder.get_command_instructions()
    assert "ls: List directory contents." in text
    assert "Redirects" in text
