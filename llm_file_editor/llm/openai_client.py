"""
OpenAI-compatible LLM client — works with Hyperbolic, OpenRouter, OpenAI
and any other provider that implements the OpenAI chat/completions API.
"""

from .base import CompletionRequest, LLMClient


class OpenAIClient(LLMClient):

    label = "OpenAI"

    def _endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.auth_token}",
        }

    def _build_payload(self, request: CompletionRequest) -> dict:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": self.format_user_content(request)})
        return {
            "model": request.model_id,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "stream": False,
        }

    def _extract_text(self, data: dict) -> str:
        return data["choices"][0]["message"]["content"]

    def _usage(self, data: dict) -> tuple:
        usage = data.get("usage") or {}
        return usage.get("prompt_tokens"), usage.get("completion_tokens")
