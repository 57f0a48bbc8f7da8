"""OpenAI client wrapper.

Constructed explicitly and handed to whatever needs it, so tests can pass a fake.
"""

from typing import Optional

import openai
from openai import AsyncOpenAI
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
from ..config import get_settings


class LLMClient:
    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        if client is None:
            client = AsyncOpenAI(api_key=api_key or get_settings().OPENAI_API_KEY)
        self.client = client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=20),
        retry=retry_if_exception_type((openai.APIConnectionError, openai.RateLimitError)),
        reraise=True,
    )
    async def run_json(self, prompt: str, model: str = "gpt-4o", max_tokens: int = 2048) -> str:
        """
        Runs a single-turn completion in JSON mode and returns the raw message text.
        Parsing is left to the caller; the text may still be malformed.
        """
        completion = await self.client.chat.completions.create(
            model=model,
            messages=[
                {"role": "user", "content": prompt}
            ],
            response_format={"type": "json_object"},
            max_tokens=max_tokens,
        )
        return completion.choices[0].message.content or ""
