"""
Prompt Architect Analysis Client Base

Contract for one outbound analysis call: media + role instructions +
accumulated context in, generated text out.
"""

from abc import ABC, abstractmethod

from prompt_architect.core.constants import DEFAULT_DIRECTIVE, ModelTier, OPERATIONAL_CONSTRAINTS
from prompt_architect.media.preprocessor import MediaPayload


def compose_prompt(instructions: str, context: str = "") -> str:
    """Build the text part sent alongside the media for one stage."""
    constraints = "\n".join(OPERATIONAL_CONSTRAINTS)
    return (
        "--- NEURAL ARCHITECT PROTOCOL ---\n"
        f"Directive: {context or DEFAULT_DIRECTIVE}\n"
        "\n"
        "--- AGENT ASSIGNMENT ---\n"
        f"{instructions.strip()}\n"
        "\n"
        "--- OPERATIONAL CONSTRAINTS ---\n"
        f"{constraints}\n"
    )


class BaseAnalysisClient(ABC):
    """Abstract base class for external analysis clients."""

    @abstractmethod
    async def analyze(
        self,
        media: MediaPayload,
        instructions: str,
        context: str,
        tier: ModelTier = ModelTier.FAST
    ) -> str:
        """
        Run one analysis call.

        Returns the generated text, or the NODE_SILENT sentinel when the
        service answered with nothing. Raises an AnalysisError subclass on
        failure.
        """
        pass

    async def aclose(self) -> None:
        """Release any connection resources."""
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False
