"""Base model provider interface."""

from abc import ABC, abstractmethod


def build_messages(system_prompt: str, user_prompt: str) -> list[dict[str, str]]:
    """Chat message list shared by every provider."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


class ModelProvider(ABC):
    """A language-model backend able to answer a system/user prompt pair."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used in logs and status output."""
        pass

    @property
    @abstractmethod
    def is_local(self) -> bool:
        """Whether this provider runs on the local machine."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Probe the provider. Must not raise."""
        pass

    @abstractmethod
    def try_query(self, model: str, system_prompt: str, user_prompt: str) -> str:
        """Send one prompt pair and return the raw response text.

        Args:
            model: Model identifier resolved for the query purpose. Remote
                providers may ignore it in favour of their configured model.
            system_prompt: System prompt.
            user_prompt: User prompt.

        Returns:
            Raw text content of the model's reply.

        Raises:
            QueryError: If the call fails for any reason.
        """
        pass

    def close(self) -> None:
        """Release any held resources."""
        return None
