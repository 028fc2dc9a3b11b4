"""HTTP relation extraction engine client."""
from __future__ import annotations

from typing import List, Optional, Sequence

import httpx
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from anchorscan.core.errors import ExternalExtractionError
from anchorscan.core.logging import LogEvent, get_logger
from anchorscan.models.relations import ExtractedRelation, ExtractionEntity, RelationExtractionResponse

logger = get_logger(__name__)


class HttpRelationExtractor:
    """Relation extraction over a JSON HTTP endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        max_attempts: int = 3,
        retry_wait_min: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Engine root; requests go to ``{base_url}/relations``
            api_key: Sent as a bearer token when set
            timeout: Per-request timeout in seconds
            max_attempts: Attempts for transport failures
            retry_wait_min: Initial backoff between attempts
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``
        """
        self.base_url = base_url.rstrip('/')
        self.endpoint = f"{self.base_url}/relations"
        self.max_attempts = max_attempts
        self.retry_wait_min = retry_wait_min

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers=headers,
            transport=transport,
        )

    async def extract_relations(
        self, content: str, entities: Sequence[ExtractionEntity]
    ) -> List[ExtractedRelation]:
        payload = {
            "content": content,
            "entities": [entity.model_dump(by_alias=True) for entity in entities],
        }
        logger.info(
            LogEvent.EXTRACTION_CALL,
            endpoint=self.endpoint,
            content_preview=content[:50] + "..." if len(content) > 50 else content,
            entities=len(entities),
        )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.retry_wait_min, min=self.retry_wait_min, max=10),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt:
                    response = await self.client.post(self.endpoint, json=payload)
            response.raise_for_status()
            parsed = RelationExtractionResponse.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            logger.error(
                LogEvent.EXTRACTION_ERROR,
                status_code=e.response.status_code,
                detail=e.response.text,
            )
            raise ExternalExtractionError(f"HTTP {e.response.status_code}", e) from e
        except httpx.HTTPError as e:
            logger.error(LogEvent.EXTRACTION_ERROR, error=str(e))
            raise ExternalExtractionError(str(e) or type(e).__name__, e) from e
        except (ValueError, ValidationError) as e:
            logger.error(LogEvent.EXTRACTION_ERROR, error="malformed response", detail=str(e))
            raise ExternalExtractionError("malformed response", e) from e

        logger.info("Extraction request completed", relations=len(parsed.relations))
        return parsed.relations

    async def aclose(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
