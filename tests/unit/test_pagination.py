"""
Unit tests for the pagination walker
"""

import pytest
from unittest.mock import AsyncMock

from core.exceptions import DataFormatError, RetriesExhaustedError, ServerError
from ingestion.pagination import fetch_all_pages, normalize_next_reference


def page(records, next_url=None):
    urls = {"next": next_url} if next_url else {}
    return {"pagination": {"urls": urls}, "releases": records}


class TestNormalizeNextReference:

    def test_absolute_url_keeps_path_and_query(self):
        ref = "https://api.example.com/users/me/collection/folders/0/releases?page=2&per_page=100"

        assert normalize_next_reference(ref) == "/users/me/collection/folders/0/releases?page=2&per_page=100"

    def test_host_variance_is_dropped(self):
        a = normalize_next_reference("https://api.example.com/x?page=3")
        b = normalize_next_reference("http://redirected.example.com:8080/x?page=3")

        assert a == b == "/x?page=3"

    def test_relative_reference(self):
        assert normalize_next_reference("/x?page=2") == "/x?page=2"

    @pytest.mark.parametrize("ref", [None, "", 42, "https://[bad", "https://api.example.com"])
    def test_unusable_references(self, ref):
        assert normalize_next_reference(ref) is None


class TestFetchAllPages:

    @pytest.mark.asyncio
    async def test_follows_references_in_order(self):
        client = AsyncMock()
        client.request.side_effect = [
            page([{"id": 1}, {"id": 2}], "https://api.example.com/list?page=2"),
            page([{"id": 3}], "https://api.example.com/list?page=3"),
            page([{"id": 4}]),
        ]

        records = await fetch_all_pages(client, "/list?per_page=2")

        assert [r["id"] for r in records] == [1, 2, 3, 4]
        assert [c.args[0] for c in client.request.await_args_list] == [
            "/list?per_page=2", "/list?page=2", "/list?page=3"
        ]

    @pytest.mark.asyncio
    async def test_single_page(self):
        client = AsyncMock()
        client.request.return_value = page([{"id": 1}])

        assert len(await fetch_all_pages(client, "/list")) == 1
        assert client.request.await_count == 1

    @pytest.mark.asyncio
    async def test_unparseable_reference_stops_the_walk(self):
        client = AsyncMock()
        client.request.side_effect = [page([{"id": 1}], "https://[broken")]

        records = await fetch_all_pages(client, "/list")

        assert len(records) == 1
        assert client.request.await_count == 1

    @pytest.mark.asyncio
    async def test_self_reference_stops_the_walk(self):
        client = AsyncMock()
        client.request.return_value = page([{"id": 1}], "https://api.example.com/list?page=1")

        records = await fetch_all_pages(client, "/list?page=1")

        assert len(records) == 1
        assert client.request.await_count == 1

    @pytest.mark.asyncio
    async def test_page_failure_propagates(self):
        client = AsyncMock()
        client.request.side_effect = [
            page([{"id": 1}], "/list?page=2"),
            RetriesExhaustedError("gave up", attempts=3, last_error=ServerError("503")),
        ]

        with pytest.raises(RetriesExhaustedError):
            await fetch_all_pages(client, "/list")

    @pytest.mark.asyncio
    async def test_non_object_page_is_rejected(self):
        client = AsyncMock()
        client.request.return_value = ["not", "a", "page"]

        with pytest.raises(DataFormatError):
            await fetch_all_pages(client, "/list")
