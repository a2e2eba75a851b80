from abc import ABC, abstractmethod


class BaseAnalysisClient(ABC):
    """Contract for provider-specific analysis AI clients."""

    @abstractmethod
    def create_chat_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        user_prompt: str,
    ) -> str:
        """Return the provider response as plain text.

        Raises:
            AnalysisNetworkError: on transport or provider API failures.
            AnalysisError: when the provider returns no usable content.
        """
