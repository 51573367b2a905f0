"""Search and document-extraction capabilities exposed by the relay server."""

from __future__ import annotations

import logging

from pydantic import ValidationError as SchemaError

from upkeep.errors import EmptyDocument, MalformedOutput, ValidationError
from upkeep.models import SearchResult, Settings
from upkeep.transport import TransportClient

logger = logging.getLogger(__name__)

SEARCH_PATH = "/api/yandex/search"
EXTRACT_PATH = "/api/pdf/extract"


class RelayClient:
    """Calls the relay's search and PDF text endpoints through a transport."""

    def __init__(self, transport: TransportClient, base_url: str):
        self.transport = transport
        self.base_url = base_url.rstrip("/")

    def search(self, query: str, settings: Settings) -> list[SearchResult]:
        """Search for manuals matching an equipment model name.

        Raises:
            ValidationError: Search credentials are missing
            UpstreamError: The relay or search API failed
            MalformedOutput: The relay did not return a list of results
        """
        if not settings.search_api_key:
            raise ValidationError("Search API key missing: set search_api_key")

        body = {
            "query": query,
            "apiKey": settings.search_api_key,
            "folderId": settings.folder_id,
        }
        data = self.transport.request(
            self.base_url + SEARCH_PATH, "POST", body=body, capability="search"
        )
        if not isinstance(data, list):
            raise MalformedOutput("search", f"expected a list, got {type(data).__name__}")

        results = []
        for item in data:
            try:
                results.append(SearchResult.model_validate(item))
            except SchemaError:
                logger.debug(f"Dropping malformed search result: {item!r}")
        logger.info(f"Search for '{query}' returned {len(results)} results")
        return results

    def extract_text(self, url: str) -> str:
        """Fetch a remote PDF through the relay and return its text.

        Raises:
            UpstreamError: The relay could not fetch or read the document
            EmptyDocument: The document has no extractable text layer
        """
        data = self.transport.request(
            self.base_url + EXTRACT_PATH, "POST", body={"url": url}, capability="extraction"
        )
        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise EmptyDocument(f"No extractable text in {url}", {"url": url})
        logger.info(f"Extracted {len(text)} characters from {url}")
        return text
