"""Abstract interface for remote analysis providers."""

from typing import Protocol

from ..models.analysis import AnalysisResult
from ..models.error import CapturedError


class AnalysisProvider(Protocol):
    """Contract for adapters that diagnose an error remotely."""

    async def analyze_error(
        self,
        error: CapturedError,
        source_code: str | None = None,
    ) -> AnalysisResult:
        """
        Request a diagnosis (and possibly a patch) for an error.

        Args:
            error: The captured error to analyze
            source_code: Full source or an excerpt of the referenced file

        Returns:
            A fully validated analysis result

        Raises:
            ConfigurationError: If no API key is configured
            RateLimitError: If the rate limit is still exceeded after retries
            AuthenticationError: If the API key is rejected
            ApiError: On any other HTTP failure
            NetworkError: On transport failures or timeouts
            MalformedResponseError: If the response cannot be interpreted
        """
        ...

    async def test_credential(self, api_key: str) -> tuple[bool, str]:
        """
        Validate an API key with one minimal, non-retried call.

        Returns:
            (valid, human-readable message)
        """
        ...

    def set_api_key(self, api_key: str | None) -> None:
        """Replace the credential used for subsequent calls."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...

    @property
    def model_name(self) -> str:
        """Return the model identifier being used."""
        ...
