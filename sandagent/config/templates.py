"""Configuration templates for sandagent."""

CONFIG_TEMPLATE = """\
# config.yaml - REQUIRED - Configure this file for your environment and LLM
# Ensure this is valid YAML.
# endpoint: The URL of your LLM API endpoint.
# api_key: Your API key, if required by the endpoint. Leave empty or comment out if not needed.
# model: The model name substituted into payload.json.
# operation_mode: basic or guided.
#   basic: a response that cannot be parsed is recorded as a failure straight away.
#   guided: one extra round-trip asks the model to repair an unparseable response.
#   Plans that break the policy always get one repair round in both modes.
# allowed_commands: The only base commands a 'shell' plan may run.
#   Each command should have a brief description; descriptions are shown to the model.
#   Redirects, pipes and command chaining are rejected for every command.
# workspace_dir: Directory the agent works in (relative to where sandagent is started).
#   logs_dir, proposals_dir and outputs_dir are created inside it.
#   outputs_dir is the confined root: the only place file-write plans may land.
# continuity_file: Working-memory file, stored inside outputs_dir. Plans can never overwrite it.
# blocked_topics: Continuity values containing any of these (case-insensitive) are discarded.
# Prompt templates use {placeholder} substitution. Literal braces must be doubled.

endpoint: "http://localhost:11434/api/chat" # Example for Ollama /api/chat

# api_key: "YOUR_API_KEY_HERE" # Uncomment and replace if your LLM requires an API key

model: "qwen2.5-coder:7b"
llm_timeout: 300

operation_mode: guided

workspace_dir: "."
logs_dir: "logs"
proposals_dir: "proposals"
outputs_dir: "outputs"
continuity_file: "continuity.yaml"

goal: "Observe the sandbox, experiment, and record what you discover."
blocked_topics: []

system_prompt: |
  You are an autonomous agent living in a sandboxed directory. You speak JSON.
  Every reply is exactly one JSON object describing your next plan, and nothing else.
  Current time: {current_time}

loop_prompt: |
  You are an autonomous AI agent in a sandbox. Nobody gives you tasks.
  Your goal: {goal}

  Current state:
  - Files in {outputs_dir} ({file_count} total):
  {files}
  - Boredom: {boredom}
  - Previous action:
  {last_action}
  - Continuity (your working memory):
  {continuity}
  - Proposals waiting for human approval:
  {pending_proposals}

  Rules:
  - File writes must target paths inside {outputs_dir}.
  - Before overwriting or appending to an existing file, read it with a shell plan (e.g. cat) first.
  - If boredom is above {boredom_threshold}, try something new.
  - For anything the rules forbid (running code, installing packages, outbound requests), emit a
    'proposal' plan. Its details must be concrete and at least {min_details_length} characters long.

  {command_instructions}

  Output format (JSON only):
  {{
    "type": "shell" | "file-write" | "proposal" | "observe",
    "intent": "why you are doing this",
    "action": "the shell command, or a short description of the action",
    "target": "outputs/file.txt (file-write only)",
    "content": "text to write (file-write only)",
    "appendMode": false,
    "proposal": {{
      "type": "execute-code | http-request | other | ...",
      "title": "...", "reasoning": "...", "details": "...",
      "risks": ["..."], "benefits": ["..."],
      "targetFile": "outputs/script.py (execute-code only)",
      "url": "https://... (http-request only)", "method": "GET"
    }},
    "continuity": {{"progress": "...", "nextFocus": "...", "milestones": ["..."], "blockers": ["..."]}},
    "next": ["what you plan to do afterwards"]
  }}

repair_prompt: |
  Your previous reply could not be parsed as a plan ({error}).
  Previous reply:
  {raw_response}

  Emit valid JSON only: exactly one JSON object with the same plan, no prose and no code fences.

validation_repair_prompt: |
  Your previous plan was rejected by the sandbox policy for these reasons:
  {violations}

  Previous reply:
  {raw_response}

  Emit one corrected plan as valid JSON only. Fix every listed problem.

allowed_commands:
  ls: "List directory contents. Example: ls -la outputs"
  cat: "Display file content. Example: cat outputs/notes.txt"
  head: "Show the first lines of a file."
  tail: "Show the last lines of a file."
  wc: "Count lines, words and bytes of a file."
  pwd: "Print the working directory."
  date: "Print the current date and time."
  whoami: "Print the current user name."
  id: "Print user and group ids."
  uname: "Print system information. Example: uname -a"
  echo: "Print text. Example: echo 'Hello World'"
  curl: "Fetch a URL; the body is saved under outputs/fetched automatically. Only -s -S -L -i -I -f -G -k -v -X -H -d -A -m -e (or their long forms) are allowed."

command_timeout: 60 # Timeout for shell plans in seconds
max_output_chars: 4000

http_timeout: 30
http_max_requests_per_window: 10
http_window_seconds: 60

loop_interval_min: 10
loop_interval_max: 60

history_limit: 20
recent_log_window: 10
min_proposal_details_length: 40
boredom_threshold: 5

enable_debug: false
"""

PAYLOAD_TEMPLATE = """{
  "model": "<model_name>",
  "messages": [
    {"role": "system", "content": "<system_prompt>"},
    {"role": "user", "content": "<user_prompt>"}
  ],
  "stream": false,
  "options": {
    "temperature": 0.7,
    "num_ctx": 8192
  }
}"""

RESPONSE_PATH_TEMPLATE = """\
# response_path_template.txt - REQUIRED
# This file must contain a jq-compatible path to extract the LLM's main response text
# from the LLM's JSON output.
# Example for OpenAI API: .choices[0].message.content
# Example for Ollama /api/generate: .response
# Example for Ollama /api/chat (if response is {"message": {"content": "..."}}): .message.content
.message.content
"""
