# daybreak/lib/llm_utils.py
"""
LLM Utilities

Generative-text backends used by the narrative generator.
- System API key discovery
- Robust JSON extraction from model output
- OpenAI and Anthropic (Claude) backends behind one interface

Every backend call is bounded by a request timeout; callers add their own
hard deadline on top.
"""
import os
import re
import json
import logging
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are a warm, professional executive assistant writing a short morning briefing. "
    "Always answer with a single JSON object and nothing else."
)


# =============================================================================
# API KEYS & JSON PARSING
# =============================================================================

def get_system_api_key() -> Tuple[Optional[str], str]:
    """Get system-level API key for briefing generation."""
    openai_key = os.environ.get('OPENAI_API_KEY')
    if openai_key:
        return openai_key, 'openai'

    anthropic_key = os.environ.get('ANTHROPIC_API_KEY')
    if anthropic_key:
        return anthropic_key, 'anthropic'

    return None, ''


def extract_json(text: str) -> Any:
    """
    Robustly extract JSON from LLM response.
    Handles markdown code blocks, trailing text, and other artifacts.
    """
    if not text:
        raise ValueError("Empty response from LLM")

    text = text.strip()

    code_block_match = re.search(r'```(?:json)?\s*([\s\S]*?)```', text)
    if code_block_match:
        text = code_block_match.group(1).strip()

    if not text.startswith('{'):
        brace_pos = text.find('{')
        if brace_pos == -1:
            raise ValueError("No JSON object found in LLM response")
        text = text[brace_pos:]

    brace_count = 0
    end_pos = 0
    in_string = False
    escaped = False
    for i, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == '{':
            brace_count += 1
        elif char == '}':
            brace_count -= 1
            if brace_count == 0:
                end_pos = i + 1
                break
    if end_pos > 0:
        text = text[:end_pos]

    return json.loads(text)


# =============================================================================
# BACKENDS
# =============================================================================

class GenerativeBackend:
    """
    Interface for generative-text backends.

    generate() returns the parsed JSON object produced for `prompt`. `schema`
    describes the expected shape and is passed to the model as guidance;
    validation is the caller's job.
    """

    name = 'base'

    def generate(self, prompt: str, schema: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        raise NotImplementedError


def _schema_instructions(prompt: str, schema: Dict[str, Any]) -> str:
    return f"{prompt}\n\nRespond with JSON matching this shape:\n{json.dumps(schema, indent=2)}"


class OpenAIBackend(GenerativeBackend):
    """OpenAI chat completions in JSON mode. Uses gpt-4o-mini by default for cost-effectiveness."""

    name = 'openai'

    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        self.api_key = api_key
        self.model = model

    def generate(self, prompt: str, schema: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        import openai

        client = openai.OpenAI(api_key=self.api_key, timeout=timeout, max_retries=0)

        response = client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _schema_instructions(prompt, schema)}
            ],
            response_format={"type": "json_object"},
            max_tokens=800,
            temperature=0.7
        )

        return extract_json(response.choices[0].message.content)


class AnthropicBackend(GenerativeBackend):
    """Anthropic Claude messages API. Uses Haiku by default for cost-effectiveness."""

    name = 'anthropic'

    def __init__(self, api_key: str, model: str = "claude-3-5-haiku-latest"):
        self.api_key = api_key
        self.model = model

    def generate(self, prompt: str, schema: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        import anthropic

        client = anthropic.Anthropic(api_key=self.api_key, timeout=timeout, max_retries=0)

        message = client.messages.create(
            model=self.model,
            max_tokens=800,
            system=SYSTEM_PROMPT,
            messages=[
                {"role": "user", "content": _schema_instructions(prompt, schema)}
            ]
        )

        return extract_json(message.content[0].text)


def get_generative_backend(config=None) -> Optional[GenerativeBackend]:
    """
    Build the system generative backend from environment API keys.

    Returns None when no key is configured; the narrative generator then
    always uses its deterministic fallback.
    """
    config = config or {}
    api_key, provider = get_system_api_key()

    if provider == 'openai':
        return OpenAIBackend(api_key, model=config.get('OPENAI_MODEL') or "gpt-4o-mini")
    if provider == 'anthropic':
        return AnthropicBackend(api_key, model=config.get('ANTHROPIC_MODEL') or "claude-3-5-haiku-latest")

    logger.warning("No LLM API key found. Briefings will use fallback narrative generation.")
    return None
