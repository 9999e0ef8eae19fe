import asyncio
import logging
from typing import Optional

import requests
from yarl import URL

from sheetgen.env import (
    GEMINI_API_BASE_URL,
    GEMINI_API_KEY,
    GEMINI_MODEL,
    GEMINI_TEMPERATURE,
    GEMINI_TIMEOUT_SECONDS,
    SRC_LOG_LEVELS,
)

log = logging.getLogger(__name__)
log.setLevel(SRC_LOG_LEVELS["PROVIDERS"])


class TextGenerationError(Exception):
    """The text generation service could not produce a response."""


def build_generate_content_url(base_url: str, model: str, api_key: str) -> str:
    url = URL(base_url.rstrip("/")) / "models" / f"{model}:generateContent"
    return str(url.with_query({"key": api_key}))


def extract_candidate_text(data: dict) -> str:
    """
    Return the concatenated text parts of the first candidate.

    Raises:
        TextGenerationError: if the payload has no candidate text
    """
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as e:
        raise TextGenerationError(f"Unexpected generateContent payload: {e}") from e

    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    if not text:
        raise TextGenerationError("generateContent returned an empty candidate")
    return text


class GeminiTextGenerator:
    """
    Text generation collaborator backed by the Gemini generateContent REST API.

    Instances are awaitable callables: ``await generator(prompt) -> str``.
    """

    def __init__(
        self,
        api_key: str = GEMINI_API_KEY,
        model: str = GEMINI_MODEL,
        base_url: str = GEMINI_API_BASE_URL,
        temperature: float = GEMINI_TEMPERATURE,
        timeout: int = GEMINI_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("A Gemini API key is required")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.temperature = temperature
        self.timeout = timeout
        self.session = session

    async def __call__(self, prompt: str) -> str:
        return await asyncio.to_thread(self.generate, prompt)

    def generate(self, prompt: str) -> str:
        url = build_generate_content_url(self.base_url, self.model, self.api_key)
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "temperature": self.temperature,
            },
        }
        post = self.session.post if self.session is not None else requests.post

        try:
            response = post(
                url,
                headers={"Content-Type": "application/json"},
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            log.error(f"Gemini request failed with status {status_code}")
            raise TextGenerationError(f"Gemini returned HTTP {status_code}") from e
        except requests.exceptions.RequestException as e:
            log.error(f"Gemini request failed: {e.__class__.__name__}")
            raise TextGenerationError("Gemini request failed") from e
        except ValueError as e:
            raise TextGenerationError("Gemini returned a non-JSON body") from e

        text = extract_candidate_text(data)
        log.debug(f"Gemini returned {len(text)} characters")
        return text
