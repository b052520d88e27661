"""Abstract AI responder interface.

The consensus engine asks personas for text exclusively through this
interface; it never calls a provider SDK directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from quorum.schemas.discussion import Persona


class AIResponder(ABC):
    """Produces a persona's reply to a prompt."""

    @abstractmethod
    async def respond(
        self,
        persona: Persona,
        prompt: str,
        max_tokens: int | None = None,
    ) -> str:
        """Return the persona's reply to ``prompt``.

        Args:
            persona: The persona voicing the reply.
            prompt: Fully rendered prompt text.
            max_tokens: Optional completion cap.

        Raises:
            TimeoutError: If the call exceeds the timeout.
            RuntimeError: If the call fails after all retries.
        """
