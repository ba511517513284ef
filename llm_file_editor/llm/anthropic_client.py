"""
Anthropic Claude LLM client — calls the Anthropic Messages API directly.
"""

from .base import CompletionRequest, LLMClient


class AnthropicClient(LLMClient):

    label = "Anthropic"
    ANTHROPIC_VERSION = "2023-06-01"

    def _endpoint(self) -> str:
        return f"{self.base_url}/messages"

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.config.auth_token,
            "anthropic-version": self.ANTHROPIC_VERSION,
        }

    def _build_payload(self, request: CompletionRequest) -> dict:
        payload = {
            "model": request.model_id,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [
                {"role": "user", "content": self.format_user_content(request)},
            ],
        }
        # System prompt is a top-level field, not a message role
        if request.system_prompt:
            payload["system"] = request.system_prompt
        return payload

    def _extract_text(self, data: dict) -> str:
        content_blocks = data["content"]
        return "".join(
            block.get("text", "") for block in content_blocks if block.get("type") == "text"
        )

    def _usage(self, data: dict) -> tuple:
        usage = data.get("usage") or {}
        return usage.get("input_tokens"), usage.get("output_tokens")
