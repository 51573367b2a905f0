"""Tests for the relay search and extraction client."""

from unittest.mock import MagicMock

import pytest

from upkeep.errors import EmptyDocument, MalformedOutput, UpstreamError, ValidationError
from upkeep.models import SearchResult, Settings
from upkeep.relay import EXTRACT_PATH, SEARCH_PATH, RelayClient


@pytest.fixture
def transport():
    return MagicMock()


@pytest.fixture
def relay(transport):
    return RelayClient(transport, "http://relay:3000/")


@pytest.fixture
def settings():
    return Settings(api_key="gpt-key", folder_id="folder-1", search_api_key="search-key")


class TestSearch:

    def test_returns_results(self, relay, transport, settings):
        transport.request.return_value = [
            {"title": "Ariston ABS VLS EVO 80 - инструкция", "url": "https://example.com/abs80.pdf"},
            {"title": "Руководство по эксплуатации", "url": "https://example.com/manual.pdf"},
        ]

        results = relay.search("Ariston ABS VLS EVO 80", settings)

        assert results == [
            SearchResult(title="Ariston ABS VLS EVO 80 - инструкция", url="https://example.com/abs80.pdf"),
            SearchResult(title="Руководство по эксплуатации", url="https://example.com/manual.pdf"),
        ]
        transport.request.assert_called_once_with(
            "http://relay:3000" + SEARCH_PATH,
            "POST",
            body={"query": "Ariston ABS VLS EVO 80", "apiKey": "search-key", "folderId": "folder-1"},
            capability="search",
        )

    def test_empty_results(self, relay, transport, settings):
        transport.request.return_value = []
        assert relay.search("unknown model", settings) == []

    def test_malformed_items_dropped(self, relay, transport, settings):
        transport.request.return_value = [{"title": "no url"}, "junk", {"url": "https://example.com/a.pdf"}]
        results = relay.search("model", settings)
        assert [r.url for r in results] == ["https://example.com/a.pdf"]

    def test_non_list_is_malformed(self, relay, transport, settings):
        transport.request.return_value = {"error": "quota"}
        with pytest.raises(MalformedOutput):
            relay.search("model", settings)

    def test_missing_search_key(self, relay, transport):
        with pytest.raises(ValidationError):
            relay.search("model", Settings(api_key="gpt-key", folder_id="folder-1"))
        transport.request.assert_not_called()

    def test_upstream_error_propagates(self, relay, transport, settings):
        transport.request.side_effect = UpstreamError("search", 500, "Search failed")
        with pytest.raises(UpstreamError):
            relay.search("model", settings)


class TestExtractText:

    def test_returns_text(self, relay, transport):
        transport.request.return_value = {"text": "Раздел 7. Техническое обслуживание"}

        text = relay.extract_text("https://example.com/abs80.pdf")

        assert text == "Раздел 7. Техническое обслуживание"
        transport.request.assert_called_once_with(
            "http://relay:3000" + EXTRACT_PATH,
            "POST",
            body={"url": "https://example.com/abs80.pdf"},
            capability="extraction",
        )

    @pytest.mark.parametrize("data", [{"text": ""}, {"text": "  \n "}, {}, None, {"text": 5}])
    def test_empty_document(self, relay, transport, data):
        transport.request.return_value = data
        with pytest.raises(EmptyDocument):
            relay.extract_text("https://example.com/scan.pdf")
