import aiohttp

from .interfaces import Generation

DEFAULT_OLLAMA_URL = "http://ollama:11434"


class OllamaGenerator:
    """Generation provider backed by a local Ollama server (/api/chat)."""

    def __init__(self, model: str, base_url: str = DEFAULT_OLLAMA_URL, temperature: float = 0.2):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature

    async def generate(self, prompt: str) -> Generation:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                f"{self.base_url}/api/chat",
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "stream": False,
                    "options": {"temperature": self.temperature},
                },
            ) as resp:
                resp.raise_for_status()
                data = await resp.json()
        text = (data.get("message") or {}).get("content") or ""
        return Generation(text=text, model=self.model)
