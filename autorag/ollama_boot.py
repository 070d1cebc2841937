# autorag/ollama_boot.py
import time
import asyncio
import aiohttp

from .logging_config import logger


async def _ollama_up(base_url: str, timeout_sec: int = 60) -> bool:
    """Wait until Ollama /api/tags is reachable (up to timeout_sec)."""
    deadline = time.time() + timeout_sec
    async with aiohttp.ClientSession() as session:
        while time.time() < deadline:
            try:
                async with session.get(f"{base_url}/api/tags", timeout=aiohttp.ClientTimeout(total=3)) as r:
                    if r.ok:
                        return True
            except (aiohttp.ClientError, asyncio.TimeoutError):
                pass
            await asyncio.sleep(1.0)
    return False


async def _has_model(base_url: str, name: str) -> bool:
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(f"{base_url}/api/tags", timeout=aiohttp.ClientTimeout(total=5)) as r:
                r.raise_for_status()
                data = await r.json()
                tags = data.get("models", [])
                return any((m.get("name") or "").startswith(name) for m in tags)
    except (aiohttp.ClientError, asyncio.TimeoutError):
        return False


async def _pull_model(base_url: str, name: str):
    """
    Ask Ollama to pull the model. Use non-streaming to avoid fiddly timeouts.
    Blocks until Ollama reports success (for the pull request itself).
    """
    async with aiohttp.ClientSession() as session:
        async with session.post(
            f"{base_url}/api/pull",
            json={"name": name, "stream": False},
            timeout=aiohttp.ClientTimeout(total=600)  # 10 min
        ) as r:
            r.raise_for_status()


async def ensure_ollama_model(base_url: str, model: str, wait_sec: int = 90):
    """Make sure the generation model is present on the Ollama server."""
    base_url = base_url.rstrip("/")
    # Don't crash the app if Ollama is not reachable
    if not await _ollama_up(base_url, timeout_sec=wait_sec):
        logger.warning("Ollama not reachable; skipping model pre-pull", url=base_url)
        return

    if await _has_model(base_url, model):
        return

    logger.info("Pulling missing Ollama model", model=model)
    try:
        await _pull_model(base_url, model)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        # First use can still trigger auto-pull by Ollama
        logger.warning("Failed to pull Ollama model", model=model, error=str(e))
