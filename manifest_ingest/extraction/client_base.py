from abc import ABC, abstractmethod


class BaseExtractionClient(ABC):
    """Sends one manifest prompt to an AI provider and returns its raw answer."""

    @abstractmethod
    def create_chat_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        user_prompt: str,
        json_schema: dict[str, object],
    ) -> str:
        """Return the provider's reply text, expected to be JSON matching json_schema.

        Raises:
            ExtractionNetworkError: if the provider cannot be reached.
            ExtractionError: if the provider answers with no content.
        """
