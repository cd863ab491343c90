from orgmirror.llms.gemini import Gemini
from orgmirror.llms.litellm_provider import LiteLLMProvider
from orgmirror.llms.llm_interface import LLMInterface
from functools import lru_cache
from orgmirror.config.settings import LLM, LLM_MODEL
from orgmirror.utils.logger import logger


@lru_cache(maxsize=None)
def llm() -> LLMInterface:
    """
    Factory function to get the language model instance.
    Uses lru_cache to ensure a single instance is created (singleton pattern).
    """
    if LLM == "litellm":
        logger.info(f"Using LiteLLM with model {LLM_MODEL}.")
        return LiteLLMProvider(model=LLM_MODEL)
    elif LLM == "gemini":
        logger.info("Using Gemini LLM.")
        return Gemini()
    else:
        raise NotImplementedError(f"LLM '{LLM}' not implemented.")
