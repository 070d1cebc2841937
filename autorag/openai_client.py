from typing import Optional

from openai import AsyncOpenAI

from .interfaces import Generation

DEFAULT_MODEL = "gpt-4o-mini"


class OpenAIGenerator:
    """Generation provider backed by OpenAI chat completions."""

    def __init__(self, api_key: Optional[str], model: str = DEFAULT_MODEL, temperature: float = 0.2):
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not set. Put it in env or .env (server-side only).")
        self.model = model
        self.temperature = temperature
        self._client = AsyncOpenAI(api_key=api_key)

    async def generate(self, prompt: str) -> Generation:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
        )
        text = response.choices[0].message.content or ""
        return Generation(text=text, model=self.model)
