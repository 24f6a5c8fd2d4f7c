"""OpenAI completion client used to draft docstrings.

To configure:
1. Set OPENAI_API_KEY in the environment or a .env file
2. Optionally point INSPECTOR_OPENAI_BASE_URL at an OpenAI-compatible endpoint

A key containing "test" short-circuits every request with a canned completion,
so the lint can be exercised without network access.
"""
from dataclasses import asdict, dataclass, field
from typing import List, Optional
import openai
from openai import OpenAI
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from ..config import get_config, is_testing_key
from ..utils.logger import debug


MOCK_COMPLETION = '"""A docstring generated by OpenAI."""\n'


class CompletionError(Exception):
    """The completion service did not produce a usable response."""


@dataclass
class CompletionRequest:
    """Parameters of one completions call."""
    prompt: str
    model: str
    max_tokens: int
    temperature: float
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stop: List[str] = field(default_factory=list)

    def to_params(self) -> dict:
        """Request parameters; unset optional values are left to the service defaults."""
        return {key: value for key, value in asdict(self).items() if value is not None}


class CompletionClient:
    """Thin wrapper over the OpenAI completions endpoint."""

    def __init__(self, api_key: str = None, base_url: str = None):
        """Initialize the client.

        Args:
            api_key: API key (loads OPENAI_API_KEY from config if not provided)
            base_url: Endpoint override (loads INSPECTOR_OPENAI_BASE_URL if not provided)

        Raises:
            ValueError: If no API key is available
        """
        config = get_config()

        if api_key is None:
            api_key = config.openai_api_key

        if not api_key:
            raise ValueError(
                "OPENAI_API_KEY not found. "
                "Set it in the environment or a .env file."
            )

        self.testing = is_testing_key(api_key)
        # Retries are handled below, only for rate limits
        self.client = OpenAI(
            api_key=api_key,
            base_url=base_url or config.openai_base_url,
            max_retries=0,
        )

    def complete(self, request: CompletionRequest) -> List[str]:
        """Send a completion request.

        Args:
            request: Completion parameters

        Returns:
            Text of every returned choice, in choice order

        Raises:
            CompletionError: On a non-success status (after rate-limit retries)
                or a transport failure
        """
        if self.testing:
            return [MOCK_COMPLETION]

        params = request.to_params()
        debug("request", params)

        try:
            response = self._create(params)
        except openai.APIStatusError as e:
            raise CompletionError(f"{e.status_code}: {e.message}") from e
        except openai.APIError as e:
            raise CompletionError(str(e)) from e

        debug("response", response.model_dump_json())
        return [choice.text for choice in sorted(response.choices, key=lambda c: c.index)]

    @retry(
        retry=retry_if_exception_type(openai.RateLimitError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    def _create(self, params: dict):
        return self.client.completions.create(**params)
