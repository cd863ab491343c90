import litellm

from orgmirror.core.exceptions import ProviderError
from orgmirror.llms.llm_interface import LLMInterface
from orgmirror.utils.logger import logger


class LiteLLMProvider(LLMInterface):
    def __init__(self, model: str):
        self.model = model

    def complete(self, system_prompt: str, user_prompt: str, json_mode: bool = True) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            logger.info(f"Requesting completion from model: {self.model}...")
            response = litellm.completion(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                **kwargs,
            )
        except Exception as e:
            logger.error(f"Completion request to {self.model} failed: {e}")
            raise ProviderError(f"Completion request to {self.model} failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.error("No response from AI")
            raise ProviderError(f"Empty completion from {self.model}")
        return content
