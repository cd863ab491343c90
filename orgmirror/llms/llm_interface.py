from abc import ABC, abstractmethod


class LLMInterface(ABC):
    @abstractmethod
    def complete(self, system_prompt: str, user_prompt: str, json_mode: bool = True) -> str:
        """Returns the raw completion text.

        Raises:
            ProviderError: If the provider call fails or returns no text.
        """
        pass
