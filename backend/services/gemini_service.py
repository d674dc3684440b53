# ========================================
# services/gemini_service.py - Gemini integration
# ========================================

import json
from typing import Any, Dict, Optional, Protocol

import google.generativeai as genai

from config import Settings, get_settings
from utils.errors import ConfigurationError, GenerationError, SchemaMismatchError
from utils.logger import get_logger

logger = get_logger("GeminiService")


class LanguageModel(Protocol):
    """What the coordinators need from a language-generation service.

    Implementations raise ``GenerationError`` for failed calls and for empty
    text; an empty reply is never a valid result.
    """

    def start_persona_conversation(self, persona_instruction: str) -> Any: ...

    async def send_message(self, handle: Any, text: str) -> str: ...

    async def generate_text(self, prompt: str) -> str: ...

    async def generate_structured(self, prompt: str, schema: Dict[str, Any]) -> Any: ...


class GeminiService:
    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        if not settings.llm_api_key:
            logger.error("Gemini API key not configured")
            raise ConfigurationError(
                "Gemini API key not configured. Set LLM_API_KEY (or GEMINI_API_KEY) before starting an interview."
            )

        genai.configure(api_key=settings.llm_api_key)
        self.model_name = settings.llm_model
        self.generation_config = {
            "temperature": settings.llm_temperature,
            "max_output_tokens": settings.llm_max_tokens,
        }
        self.model = genai.GenerativeModel(self.model_name, generation_config=self.generation_config)
        logger.info(f"Gemini service initialized (model={self.model_name})")

    def start_persona_conversation(self, persona_instruction: str) -> genai.ChatSession:
        """Open a stateful chat whose system instruction is the interviewer persona."""
        model = genai.GenerativeModel(
            self.model_name,
            system_instruction=persona_instruction,
            generation_config=self.generation_config,
        )
        return model.start_chat(history=[])

    async def send_message(self, handle: genai.ChatSession, text: str) -> str:
        try:
            response = await handle.send_message_async(text)
        except Exception as e:
            logger.error(f"Gemini chat error: {e}", exc_info=True)
            raise GenerationError("Failed to get a response from the AI.", detail=str(e)) from e
        return self._require_text(response, "AI did not provide a response.")

    async def generate_text(self, prompt: str) -> str:
        """Generate a one-shot text response"""
        try:
            response = await self.model.generate_content_async(prompt)
        except Exception as e:
            logger.error(f"Gemini generation error: {e}", exc_info=True)
            raise GenerationError("Failed to generate a response from the AI.", detail=str(e)) from e
        return self._require_text(response, "AI did not provide a response.")

    async def generate_structured(self, prompt: str, schema: Dict[str, Any]) -> Any:
        """Generate JSON constrained to ``schema`` and return it decoded."""
        config = genai.GenerationConfig(
            temperature=self.generation_config["temperature"],
            max_output_tokens=self.generation_config["max_output_tokens"],
            response_mime_type="application/json",
            response_schema=schema,
        )
        try:
            response = await self.model.generate_content_async(prompt, generation_config=config)
        except Exception as e:
            logger.error(f"Gemini structured generation error: {e}", exc_info=True)
            raise GenerationError("Failed to generate a response from the AI.", detail=str(e)) from e

        text = self._require_text(response, "AI did not provide a response.")
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"Gemini returned malformed JSON: {text[:200]!r}")
            raise SchemaMismatchError("AI response did not match expected format.", detail=str(e)) from e

    @staticmethod
    def _require_text(response: Any, message: str) -> str:
        # response.text raises ValueError when the candidate carries no parts
        try:
            text = response.text
        except ValueError:
            text = None

        if not text or not text.strip():
            finish = None
            candidates = getattr(response, "candidates", None) or []
            if candidates:
                finish = getattr(candidates[0], "finish_reason", None)
            logger.warning(f"Gemini returned no text. candidates={len(candidates)} finish_reason={finish}")
            raise GenerationError(message)
        return text
