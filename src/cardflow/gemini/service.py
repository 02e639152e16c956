"""Gemini implementation of the understanding service using the google-genai SDK."""
from typing import Optional

from google import genai
from google.genai import errors, types

from cardflow.parsers.models import WholeDocument
from cardflow.utils.logger import get_logger
from cardflow.utils.retry import retry_with_backoff
from cardflow.utils.exceptions import LLMError, RetryableLLMError

logger = get_logger()

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class GeminiService:
    """Sends prompts (and optionally a PDF) to Gemini and returns the raw text."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-2.5-flash",
        timeout_seconds: int = 120,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
        client: Optional[genai.Client] = None,
    ):
        """
        Initialize Gemini service.

        Args:
            api_key: Google AI API key
            model_name: Gemini model to call
            timeout_seconds: Per-request timeout
            max_retries: Attempts per request for transient errors
            backoff_factor: Exponential backoff base between attempts
            client: Pre-built client (tests)
        """
        self.client = client or genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=timeout_seconds * 1000),
        )
        self.model_name = model_name
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.generation_config = types.GenerateContentConfig(temperature=0.1, max_output_tokens=8192)

        logger.info(f"Gemini service initialized with {self.model_name}")

    def generate(self, prompt: str, document: Optional[WholeDocument] = None) -> str:
        """
        Generate a response for the prompt.

        Args:
            prompt: Instruction text
            document: Whole document sent inline before the prompt

        Returns:
            Raw response text

        Raises:
            LLMError: If the request fails after retries or the response is empty
        """
        contents = [prompt]
        if document is not None:
            logger.debug(f"Attaching {document.file_name} ({len(document.data)} bytes)")
            contents = [types.Part.from_bytes(data=document.data, mime_type=document.mime_type), prompt]

        call = retry_with_backoff(
            max_retries=self.max_retries,
            backoff_factor=self.backoff_factor,
            retryable_exceptions=(RetryableLLMError,),
        )(self._generate_content)
        return call(contents)

    def _generate_content(self, contents) -> str:
        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=contents,
                config=self.generation_config,
            )
        except errors.APIError as e:
            if e.code in RETRYABLE_STATUS_CODES:
                raise RetryableLLMError(f"Gemini API error {e.code}: {e.message}")
            raise LLMError(f"Gemini API error {e.code}: {e.message}")
        except Exception as e:
            # Network failures and timeouts surface as httpx exceptions
            raise RetryableLLMError(f"Gemini request failed: {e}")

        if not response.text:
            raise LLMError("Gemini returned an empty response")

        logger.debug(f"Gemini response: {response.text[:500]}")
        return response.text
