# policy_monitor/services/openai_client.py
from typing import Any, Dict, List, Optional

from openai import OpenAI

from ..settings import Settings

PROMPT_TEMPLATE = (
    "Rewrite the following {context} to be under {max_length} characters, "
    "keep it natural, relevant, and readable. Reply with the rewritten text only:\n"
    '"{text}"'
)


def _to_responses_input(prompt: str, system: Optional[str]) -> List[Dict[str, str]]:
    """Build Responses API input items from a single user prompt."""
    items: List[Dict[str, str]] = []
    if system:
        items.append({"role": "system", "content": system})
    items.append({"role": "user", "content": prompt})
    return items


def _extract_text(resp: Any) -> str:
    # The SDK returns a structured Output; iterate defensively
    text_chunks: List[str] = []
    for item in getattr(resp, "output", []) or []:
        if getattr(item, "type", "") == "message":
            for content in getattr(item, "content", []) or []:
                if getattr(content, "type", "") == "output_text":
                    text_chunks.append(getattr(content, "text", ""))
    return "".join(text_chunks)


def _clean(text: str) -> str:
    return text.strip().strip("\"'").strip()


class OpenAIRewriter:
    """Callable rewrite service: (text, max_length, context) -> shorter text.

    Raises whatever the SDK raises; the TextRewriter treats any failure as a
    signal to fall back to truncation.
    """

    def __init__(self, api_key: str, model: str, client: Any | None = None, max_output_tokens: int = 60):
        self.model = model
        self.max_output_tokens = max_output_tokens
        self._client = client or OpenAI(api_key=api_key)

    def __call__(self, text: str, max_length: int, context: str = "ad headline") -> str:
        prompt = PROMPT_TEMPLATE.format(
            context=context, max_length=max_length, text=text)
        resp = self._client.responses.create(
            model=self.model,
            input=_to_responses_input(prompt, system=None),
            max_output_tokens=self.max_output_tokens,
        )
        return _clean(_extract_text(resp))


def build_rewrite_service(cfg: Settings) -> Optional[OpenAIRewriter]:
    """Return the OpenAI-backed rewriter, or None when no API key is configured."""
    if not cfg.OPENAI_API_KEY:
        return None
    return OpenAIRewriter(api_key=cfg.OPENAI_API_KEY, model=cfg.OPENAI_MODEL)
