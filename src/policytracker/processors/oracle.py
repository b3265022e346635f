"""
Language-model oracle used for extraction, screening and verification.

The rest of the system treats the model as a fallible oracle: it sends a
system prompt plus user text and gets back a pydantic model, or an exception
from the project's error taxonomy. Nothing downstream ever sees raw JSON.

The module provides:
    - Oracle: the abstract capability (tests inject a scripted fake)
    - OpenAIOracle: chat completions in JSON mode with timeout and retries
    - parse_response(): JSON decoding plus schema validation

Retry policy:
    Timeouts, connection errors, rate limits and 5xx responses are retried
    with exponential backoff (backoff_base * 2**attempt, i.e. 2s, 4s, 8s by
    default). When retries run out a TransientIOFailure is raised. A timeout
    is never reported as a negative answer.

Python Learning Notes:
    - ABC + @abstractmethod define an interface subclasses must implement
    - TypeVar lets complete() return the same model type it was given
    - `raise ... from e` keeps the original exception as __cause__
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Optional, Type, TypeVar

import httpx
from openai import (
    APIConnectionError,
    APIStatusError,
    AuthenticationError,
    OpenAI,
    PermissionDeniedError,
    RateLimitError,
)
from pydantic import BaseModel, ValidationError

from ..errors import ConfigurationError, MalformedOracleResponse, TransientIOFailure
from ..utils import get_logger
from ..utils.config import get_openai_api_key, get_openai_base_url

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


def parse_response(content: Optional[str], schema: Type[T]) -> T:
    """
    Decode a JSON oracle answer and validate it against ``schema``.

    Args:
        content: Raw message content returned by the model.
        schema: Pydantic model the answer must satisfy.

    Returns:
        An instance of ``schema``.

    Raises:
        MalformedOracleResponse: If the content is empty, not JSON, not a
            JSON object, or fails validation.
    """
    if not content or not content.strip():
        raise MalformedOracleResponse("Empty response from oracle")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.debug("Response content: %s", content[:500])
        raise MalformedOracleResponse(f"Oracle returned invalid JSON: {e}", content) from e

    if not isinstance(data, dict):
        raise MalformedOracleResponse("Oracle response is not a JSON object", content)

    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise MalformedOracleResponse(
            f"Oracle response does not match {schema.__name__}: "
            f"{e.error_count()} validation error(s)",
            content,
        ) from e


class Oracle(ABC):
    """Abstract structured-answer capability backed by a language model."""

    @abstractmethod
    def complete(self, system_prompt: str, user_text: str, schema: Type[T]) -> T:
        """
        Ask the oracle and return a validated answer.

        Raises:
            TransientIOFailure: The call could not be completed.
            MalformedOracleResponse: The answer was not in the expected shape.
        """


class OpenAIOracle(Oracle):
    """
    Oracle backed by OpenAI chat completions in JSON mode.

    Attributes:
        model (str): Chat model name, gpt-4o-mini by default.
        max_retries (int): Retries after the first attempt for transient errors.
        backoff_base (float): First retry delay in seconds.
        client (OpenAI): Underlying SDK client (its own retries are disabled so
            the backoff schedule here is the only one in effect).

    Example:
        oracle = OpenAIOracle()
        answer = oracle.complete(SYSTEM_PROMPT, text, ExtractionResponse)
        for item in answer.commitments:
            print(item.title)
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: int = 3,
        backoff_base: float = 2.0,
        client: Optional[OpenAI] = None,
    ):
        self.model = model
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.client = client or OpenAI(
            api_key=api_key or get_openai_api_key(),
            base_url=base_url or get_openai_base_url(),
            timeout=httpx.Timeout(timeout, connect=10.0),
            max_retries=0,
        )

    @classmethod
    def from_config(cls, config) -> "OpenAIOracle":
        """Build an oracle from a TrackerConfig."""
        return cls(
            model=config.model,
            timeout=config.oracle_timeout,
            max_retries=config.max_retries,
            backoff_base=config.backoff_base,
        )

    def complete(self, system_prompt: str, user_text: str, schema: Type[T]) -> T:
        content = self._chat(system_prompt, user_text)
        return parse_response(content, schema)

    def _chat(self, system_prompt: str, user_text: str) -> Optional[str]:
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            try:
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_text},
                    ],
                    response_format={"type": "json_object"},
                    temperature=0,
                )
                if not response.choices:
                    return None
                return response.choices[0].message.content

            except (AuthenticationError, PermissionDeniedError) as e:
                raise ConfigurationError(f"OpenAI rejected the credentials: {e}") from e
            except RateLimitError as e:
                reason = f"rate limited: {e}"
            except APIConnectionError as e:
                # Includes APITimeoutError
                reason = f"connection error: {e}"
            except APIStatusError as e:
                if e.status_code < 500:
                    raise MalformedOracleResponse(
                        f"Oracle rejected the request ({e.status_code}): {e}"
                    ) from e
                reason = f"API error {e.status_code}: {e}"

            if attempt < attempts - 1:
                wait_time = self.backoff_base * 2**attempt
                logger.warning(
                    "Oracle call failed on attempt %d/%d (%s), waiting %.0fs",
                    attempt + 1,
                    attempts,
                    reason,
                    wait_time,
                )
                time.sleep(wait_time)
            else:
                logger.error("Oracle call failed after %d attempts: %s", attempts, reason)
                raise TransientIOFailure(
                    f"Oracle call failed after {attempts} attempts: {reason}"
                )
        # Unreachable: the loop either returns or raises
        raise TransientIOFailure("Oracle call did not complete")
