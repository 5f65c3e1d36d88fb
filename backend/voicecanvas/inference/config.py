from voicecanvas.config import LLM_API_KEY, LLM_BASE_URL, LLM_MODEL
from voicecanvas.inference.chat_completions_client import ChatCompletionsClient


def get_llm_client() -> ChatCompletionsClient:
    return ChatCompletionsClient(
        base_url=LLM_BASE_URL,
        model=LLM_MODEL,
        api_key=LLM_API_KEY,
    )
