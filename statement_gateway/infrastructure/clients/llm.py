"""Language model HTTP client used as the bank statement extraction oracle"""

import logging
from typing import List, Optional

import httpx

from statement_gateway.config import settings
from statement_gateway.domain.exceptions import NoValidRecordsError, UpstreamServiceError
from statement_gateway.domain.models import ExtractedRecord
from statement_gateway.domain.records import (
    SYSTEM_INSTRUCTION,
    build_extraction_prompt,
    parse_extraction_response,
    validate_records,
)
from statement_gateway.infrastructure.clients.retry import RetryPolicy
from statement_gateway.infrastructure.observability.metrics import (
    llm_failure_counter,
    llm_latency_histogram,
    records_dropped_counter,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "Language model API"


def default_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.llm_max_retries + 1,
        base_delay=settings.llm_backoff_base,
        multiplier=settings.llm_backoff_multiplier,
        jitter_ratio=settings.llm_backoff_jitter,
    )


class LanguageModelClient:
    """Client for an OpenAI-compatible chat completions API"""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.llm_api_base).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.llm_api_key
        self.model = model or settings.llm_model
        self.timeout = timeout or settings.llm_timeout_seconds
        self.retry_policy = retry_policy or default_retry_policy()
        self.transport = transport

    async def complete(self, system: str, prompt: str) -> str:
        """
        Request a single JSON-object completion and return the message content.

        Raises:
            UpstreamServiceError: Missing API key, HTTP failure after retries,
                or a response without ``choices[0].message.content``
        """
        if not self.api_key:
            raise UpstreamServiceError(
                "Language model API key not configured. Please set LLM_API_KEY in the environment."
            )

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": settings.llm_temperature,
            "max_tokens": settings.llm_max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:

            async def send() -> httpx.Response:
                with llm_latency_histogram.time():
                    return await client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)

            try:
                response = await self.retry_policy.execute(send, service=SERVICE_NAME)
            except UpstreamServiceError:
                llm_failure_counter.inc()
                raise

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise UpstreamServiceError(f"Invalid response from {SERVICE_NAME}") from e

        if not isinstance(content, str):
            raise UpstreamServiceError(f"Invalid response from {SERVICE_NAME}")
        return content


class TransactionExtractionClient:
    """Turns free-form statement text into validated bank records via the language model"""

    def __init__(self, llm: Optional[LanguageModelClient] = None):
        self.llm = llm or LanguageModelClient()

    async def extract(self, statement_text: str) -> List[ExtractedRecord]:
        """
        Extract structured records from statement text.

        The model's output is untrusted: the answer must match the
        ``{"records": [...]}`` contract and each record is validated, with
        invalid records dropped.

        Raises:
            UpstreamServiceError: Model call failed or answer broke the contract
            NoValidRecordsError: No record survived validation
        """
        content = await self.llm.complete(SYSTEM_INSTRUCTION, build_extraction_prompt(statement_text))

        raw_records = parse_extraction_response(content)
        records = validate_records(raw_records)

        dropped = len(raw_records) - len(records)
        if dropped:
            records_dropped_counter.inc(dropped)
            logger.warning(f"Dropped {dropped} of {len(raw_records)} extracted records")

        if not records:
            raise NoValidRecordsError("No valid bank records found in the uploaded file")

        return records
