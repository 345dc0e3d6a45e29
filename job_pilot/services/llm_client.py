import asyncio
import json
import logging
from enum import Enum
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

JSON_ONLY_INSTRUCTION = "Respond with valid JSON only. No markdown, no explanation."


class LLMProvider(str, Enum):
    CLAUDE = "claude"
    OPENAI = "openai"
    GROQ = "groq"
    OLLAMA = "ollama"


DEFAULT_MODELS = {
    LLMProvider.CLAUDE: "claude-sonnet-4-20250514",
    LLMProvider.OPENAI: "gpt-4o-mini",
    LLMProvider.GROQ: "llama-3.3-70b-versatile",
    LLMProvider.OLLAMA: "qwen2.5:7b",
}


class LLMClient:
    """Thin async wrapper over the supported chat providers.

    Only plain text in and text (or parsed JSON) out; prompt design lives with
    the callers. Transient failures are retried with exponential backoff.
    """

    def __init__(
        self,
        provider: LLMProvider,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        max_attempts: int = 2,
        client=None,
    ):
        self.provider = LLMProvider(provider)
        self.api_key = api_key
        self.model = model or DEFAULT_MODELS[self.provider]
        self.base_url = base_url
        self.max_attempts = max(1, max_attempts)
        self._client = client

    def _sdk(self):
        if self._client is not None:
            return self._client
        if self.provider == LLMProvider.CLAUDE:
            import anthropic

            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        elif self.provider == LLMProvider.OLLAMA:
            self._client = httpx.AsyncClient(base_url=self.base_url or "http://localhost:11434", timeout=120.0)
        else:
            import openai

            self._client = openai.AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    @staticmethod
    def _chat_messages(prompt: str, system: Optional[str]) -> list[dict]:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        return messages

    async def _call_claude(self, prompt, system, max_tokens, temperature) -> str:
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        response = await self._sdk().messages.create(**kwargs)
        return response.content[0].text

    async def _call_openai_compatible(self, prompt, system, max_tokens, temperature) -> str:
        response = await self._sdk().chat.completions.create(
            model=self.model,
            messages=self._chat_messages(prompt, system),
            max_tokens=max_tokens,
            temperature=temperature,
        )
        return response.choices[0].message.content

    async def _call_ollama(self, prompt, system, max_tokens, temperature) -> str:
        response = await self._sdk().post(
            "/api/chat",
            json={
                "model": self.model,
                "messages": self._chat_messages(prompt, system),
                "stream": False,
                "options": {"temperature": temperature, "num_predict": max_tokens},
            },
        )
        response.raise_for_status()
        return response.json()["message"]["content"]

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 1500,
        temperature: float = 0.4,
    ) -> str:
        """Send one completion request and return the reply text."""
        if self.provider == LLMProvider.CLAUDE:
            call = self._call_claude
        elif self.provider == LLMProvider.OLLAMA:
            call = self._call_ollama
        else:
            call = self._call_openai_compatible

        attempt = 0
        while True:
            attempt += 1
            try:
                return await call(prompt, system, max_tokens, temperature)
            except Exception as e:
                if attempt >= self.max_attempts:
                    raise
                logger.warning(f"{self.provider.value} request failed (attempt {attempt}): {e}")
                await asyncio.sleep(2 ** (attempt - 1))

    async def complete_json(self, prompt: str, system: Optional[str] = None) -> dict:
        """Complete and parse the reply as a JSON object, asking once more on bad JSON."""
        json_system = f"{system}\n\n{JSON_ONLY_INSTRUCTION}" if system else JSON_ONLY_INSTRUCTION
        text = await self.complete(prompt, system=json_system)
        try:
            return json.loads(strip_code_fences(text))
        except json.JSONDecodeError:
            logger.warning("LLM reply was not valid JSON; asking again")
        text = await self.complete(f"{prompt}\n\nIMPORTANT: Return ONLY valid JSON.", system=json_system)
        return json.loads(strip_code_fences(text))


def strip_code_fences(text: str) -> str:
    """Drop a surrounding markdown code fence if the model added one."""
    text = (text or "").strip()
    if not text.startswith("```"):
        return text
    lines = text.split("\n")[1:]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    return "\n".join(lines)


def get_llm_client() -> Optional[LLMClient]:
    """Build the configured client, or None when its API key is missing."""
    from job_pilot.config import settings

    try:
        provider = LLMProvider(settings.llm_provider.lower())
    except ValueError:
        logger.warning(f"Unknown LLM provider: {settings.llm_provider}")
        return None

    if provider == LLMProvider.OLLAMA:
        return LLMClient(provider, model=settings.llm_model, base_url=settings.ollama_base_url)

    api_key = {
        LLMProvider.CLAUDE: settings.anthropic_api_key,
        LLMProvider.OPENAI: settings.openai_api_key,
        LLMProvider.GROQ: settings.groq_api_key,
    }[provider]
    if not api_key:
        logger.warning(f"No API key found for LLM provider: {provider.value}")
        return None

    return LLMClient(
        provider,
        api_key=api_key,
        model=settings.llm_model,
        base_url=settings.groq_base_url if provider == LLMProvider.GROQ else None,
    )
