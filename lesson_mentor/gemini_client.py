from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from google import genai
from google.genai import types

from lesson_mentor.config import env
from lesson_mentor.errors import ConfigError, MalformedResponseError, UpstreamServiceError
from lesson_mentor.schemas import ChatMessage
from lesson_mentor.text import strip_code_fences

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
FALLBACK_MODELS = ["gemini-2.5-flash", "gemini-2.0-flash", "gemini-1.5-flash"]


def _is_model_not_found(msg: str) -> bool:
    return (
        "NOT_FOUND" in msg
        and ("was not found" in msg or "not found" in msg or "is not found" in msg)
        and ("Publisher Model" in msg or "models/" in msg or "Call ListModels" in msg)
    )


class ChatSession:
    """One multi-turn conversation; each send() continues the same history."""

    def __init__(self, chat: Any) -> None:
        self._chat = chat

    async def send(self, message: str) -> str:
        try:
            resp = await self._chat.send_message(message)
        except Exception as e:
            raise UpstreamServiceError(f"Chat turn failed: {e}", service="gemini") from e
        return (resp.text or "").strip()


class GeminiClient:
    """
    Supports two modes:
    - API key mode (local/dev): GEMINI_API_KEY or GOOGLE_API_KEY
    - Vertex AI mode (Cloud Run): GOOGLE_CLOUD_PROJECT + GOOGLE_CLOUD_LOCATION
    """

    def __init__(self) -> None:
        self.model = env("GEMINI_MODEL", DEFAULT_MODEL)

        api_key = env("GEMINI_API_KEY") or env("GOOGLE_API_KEY")
        project = env("GOOGLE_CLOUD_PROJECT")
        location = env("GOOGLE_CLOUD_LOCATION", "us-central1")

        if api_key:
            self._api_key = api_key
            self._mode = "api_key"
            self.client = genai.Client(api_key=api_key)
        elif project:
            self._api_key = None
            self._mode = "vertex"
            # Uses ADC (service account) on Cloud Run
            self.client = genai.Client(vertexai=True, project=project, location=location)
        else:
            raise ConfigError(
                "Missing config: set GEMINI_API_KEY (local) or GOOGLE_CLOUD_PROJECT (+ optional GOOGLE_CLOUD_LOCATION) (Vertex/Cloud Run)."
            )

    async def _list_models_api_key(self) -> list[dict[str, Any]]:
        if not self._api_key:
            return []
        async with httpx.AsyncClient(timeout=10) as client:
            r = await client.get(
                "https://generativelanguage.googleapis.com/v1beta/models",
                params={"key": self._api_key},
            )
            r.raise_for_status()
            data = r.json()
        return list(data.get("models", []) or [])

    @staticmethod
    def _pick_working_models_from_list(models: list[dict[str, Any]]) -> list[str]:
        names: list[str] = []
        for m in models:
            if "generateContent" not in (m.get("supportedGenerationMethods") or []):
                continue
            name = (m.get("name") or "").strip()
            if name.startswith("models/"):
                name = name[len("models/") :]
            if name:
                names.append(name)

        # Prefer flash variants for latency/cost, then pro for quality.
        preferred: list[str] = []
        for kw in ["flash", "pro"]:
            for n in names:
                if kw in n and n not in preferred:
                    preferred.append(n)
        for n in names:
            if n not in preferred:
                preferred.append(n)
        return preferred

    async def _generate(self, *, user: str, config: types.GenerateContentConfig) -> Any:
        candidates: list[str] = [self.model, *FALLBACK_MODELS]
        tried: set[str] = set()
        last_err: Exception | None = None

        i = 0
        while i < len(candidates):
            m = candidates[i]
            i += 1
            if m in tried:
                continue
            tried.add(m)
            try:
                return await self.client.aio.models.generate_content(
                    model=m,
                    contents=[types.Content(role="user", parts=[types.Part(text=user)])],
                    config=config,
                )
            except Exception as e:
                last_err = e
                if not _is_model_not_found(str(e)):
                    raise UpstreamServiceError(f"Gemini call failed: {e}", service="gemini") from e
                logger.warning("Model %s unavailable, trying next candidate", m)
                if self._mode == "api_key":
                    try:
                        models = await self._list_models_api_key()
                        candidates.extend(self._pick_working_models_from_list(models)[:10])
                    except httpx.HTTPError as list_err:
                        logger.warning("Could not list models: %s", list_err)

        raise UpstreamServiceError(f"All model candidates failed. Last error: {last_err}", service="gemini")

    async def generate_text(self, *, user: str, system: str | None = None, temperature: float = 0.4) -> str:
        resp = await self._generate(
            user=user,
            config=types.GenerateContentConfig(system_instruction=system, temperature=temperature),
        )
        return (resp.text or "").strip()

    async def generate_json(self, *, system: str, user: str, schema: dict[str, Any] | None = None) -> Any:
        """
        Requests application/json output; a schema, when given, biases toward well-formed JSON.
        Raises MalformedResponseError when the reply cannot be decoded.
        """
        resp = await self._generate(
            user=user,
            config=types.GenerateContentConfig(
                system_instruction=system,
                response_mime_type="application/json",
                response_schema=schema,
                temperature=0.4,
            ),
        )

        parsed = getattr(resp, "parsed", None)
        if isinstance(parsed, (dict, list)):
            return parsed

        text = strip_code_fences(resp.text)
        try:
            return json.loads(text)
        except (TypeError, ValueError) as e:
            raise MalformedResponseError("Model did not return parseable JSON", raw=text[:500]) from e

    def start_chat(self, *, system: str, history: list[ChatMessage], max_output_tokens: int = 1000) -> ChatSession:
        contents = [
            types.Content(
                role="user" if msg.role == "user" else "model",
                parts=[types.Part(text=msg.content)],
            )
            for msg in history
        ]
        chat = self.client.aio.chats.create(
            model=self.model,
            config=types.GenerateContentConfig(
                system_instruction=system,
                max_output_tokens=max_output_tokens,
            ),
            history=contents,
        )
        return ChatSession(chat)
