"""
HTTP client for the classification service

The service takes the collected TODO lines plus the groups already in the
output note and answers with `{"classifiedContent": "..."}`. The content is
either JSON with a `groups` mapping or Markdown; decoding it is the job of
reconcile.decode_classification.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from ..errors import ClassificationError, ConfigurationError
from .models import ClassificationRequest, ClassificationResponse, ConnectionTestResult

logger = logging.getLogger(__name__)

TEST_CONTENT = "- [ ] connectivity check (todo-collector)"


class ClassificationClient:
    """Posts classification requests with aiohttp

    Usage:
        client = ClassificationClient(url, api_key)
        content = await client.classify(new_lines, existing_groups)
    """

    def __init__(self, url: str, api_key: str = "", timeout: float = 60.0):
        if not url:
            raise ConfigurationError("Classification endpoint URL is not set")
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    async def classify(self, new_lines: List[str], existing_groups: Optional[Dict[str, List[str]]] = None) -> Optional[str]:
        """Ask the service to group `new_lines`.

        Returns:
            The raw `classifiedContent` string, or None when the service
            answered without one.

        Raises:
            ClassificationError: connection failure, timeout or non-2xx status
        """
        request = ClassificationRequest(
            content='\n'.join(new_lines),
            existing_groups={name: list(lines) for name, lines in (existing_groups or {}).items()},
            api_key=self.api_key,
        )
        logger.info(f"Classifying {len(new_lines)} TODOs via {self.url}")
        data = await self._post(request.model_dump(by_alias=True))

        try:
            response = ClassificationResponse.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Unexpected classification response shape: {e}")
            return None
        return response.classified_content

    async def test_connection(self) -> ConnectionTestResult:
        """Send an `action: test` request and return the service's diagnostics"""
        data = await self._post({"action": "test", "content": TEST_CONTENT})
        try:
            return ConnectionTestResult.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Unexpected test response shape: {e}")
            return ConnectionTestResult()

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.post(self.url, json=payload) as response:
                    if not 200 <= response.status < 300:
                        body = await response.text()
                        raise ClassificationError(
                            f"Classification request failed: {response.status} {response.reason}",
                            status=response.status,
                            body=body,
                        )
                    try:
                        data = await response.json(content_type=None)
                    except (json.JSONDecodeError, aiohttp.ContentTypeError) as e:
                        logger.warning(f"Classification service returned a non-JSON body: {e}")
                        return {}
        except aiohttp.ClientError as e:
            raise ClassificationError(f"Could not reach classification service: {e}") from e
        except asyncio.TimeoutError as e:
            raise ClassificationError(f"Classification service timed out after {self.timeout}s") from e

        if not isinstance(data, dict):
            logger.warning("Classification service returned a non-object JSON body")
            return {}
        return data
