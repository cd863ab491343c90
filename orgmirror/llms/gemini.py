import os

from google import genai

from orgmirror.core.exceptions import ProviderError
from orgmirror.llms.llm_interface import LLMInterface
from orgmirror.utils.logger import logger


class Gemini(LLMInterface):
    def __init__(self):
        """Initializes the Gemini client and model configuration."""
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            logger.error("GEMINI_API_KEY environment variable not set.")
            raise ValueError("GEMINI_API_KEY environment variable not set.")

        self.client = genai.Client(api_key=api_key)
        self.model_name = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

    def complete(self, system_prompt: str, user_prompt: str, json_mode: bool = True) -> str:
        config = genai.types.GenerateContentConfig(
            system_instruction=system_prompt,
            response_mime_type="application/json" if json_mode else "text/plain",
        )
        try:
            logger.info(f"Requesting completion from Gemini model: {self.model_name}...")
            response = self.client.models.generate_content(
                model=f"models/{self.model_name}",
                contents=user_prompt,
                config=config,
            )
        except Exception as e:
            logger.error(f"An unexpected error occurred while calling Gemini: {e}")
            raise ProviderError(f"Gemini request failed: {e}") from e

        if not response.text:
            raise ProviderError("Empty completion from Gemini")
        return response.text
