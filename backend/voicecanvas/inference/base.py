from abc import ABC, abstractmethod
from typing import Dict, List


class LLMClient(ABC):
    @abstractmethod
    async def complete(self, messages: List[Dict], newer_transcript: bool = False) -> str:
        """Return assistant text for chat messages.

        ``newer_transcript`` marks a call made for fresher user input; it
        cancels every other call still outstanding on this client.
        """
        pass


class DiagramGenerator(ABC):
    """Proposes diagram text for a request and revises it on feedback."""

    @abstractmethod
    async def generate(self, request) -> str:
        pass

    @abstractmethod
    async def revise(self, request, candidate: str, feedback: str) -> str:
        pass
