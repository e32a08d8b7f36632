"""Tests for the pagination helper."""

import pytest

from connectors.errors import ValidationError
from connectors.pagination import Page, paginate, take

DATASET = list(range(23))


def offset_source(calls):
    """A list endpoint paged by offset, recording (offset, size) per call."""
    async def fetch_page(offset, size):
        calls.append((offset, size))
        items = DATASET[offset:offset + size]
        next_offset = offset + len(items)
        return Page(items, next_offset if next_offset < len(DATASET) else None)
    return fetch_page


class TestPaginate:
    """Tests for paginate."""

    @pytest.mark.asyncio
    async def test_return_all_collects_everything(self):
        calls = []
        result = await paginate(offset_source(calls), return_all=True, page_size=10, start=0)
        assert result == DATASET
        assert calls == [(0, 10), (10, 10), (20, 10)]

    @pytest.mark.asyncio
    async def test_limit_truncates_and_shrinks_last_page(self):
        calls = []
        result = await paginate(offset_source(calls), return_all=False, limit=15, page_size=10, start=0)
        assert result == DATASET[:15]
        assert calls == [(0, 10), (10, 5)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [1, 10, 23, 50])
    async def test_limit_yields_min_of_limit_and_total(self, limit):
        result = await paginate(offset_source([]), return_all=False, limit=limit, page_size=10, start=0)
        assert len(result) == min(limit, len(DATASET))

    @pytest.mark.asyncio
    async def test_repeated_calls_match_single_unpaginated_call(self):
        first = await paginate(offset_source([]), return_all=True, page_size=7, start=0)
        second = await paginate(offset_source([]), return_all=True, page_size=7, start=0)
        single = await paginate(offset_source([]), return_all=False, limit=len(DATASET), page_size=len(DATASET), start=0)
        assert first == second == single

    @pytest.mark.asyncio
    async def test_fixed_page_size_fetches_then_truncates(self):
        calls = []
        result = await paginate(
            offset_source(calls), return_all=False, limit=15, page_size=10, start=0, shrink_last_page=False
        )
        assert result == DATASET[:15]
        assert calls == [(0, 10), (10, 10)]

    @pytest.mark.asyncio
    async def test_unchanged_pointer_stops(self):
        calls = []

        async def stuck(pointer, size):
            calls.append(pointer)
            return Page([1, 2], "same")

        result = await paginate(stuck, return_all=True, start="same")
        assert result == [1, 2]
        assert calls == ["same"]

    @pytest.mark.asyncio
    async def test_empty_page_stops(self):
        async def empty(pointer, size):
            return Page([], "next")

        assert await paginate(empty, return_all=True) == []

    @pytest.mark.asyncio
    async def test_limit_required_without_return_all(self):
        with pytest.raises(ValidationError, match="positive limit"):
            await paginate(offset_source([]), return_all=False, limit=0)


class TestTake:
    """Tests for take."""

    def test_take_truncates(self):
        assert take(DATASET, False, 5) == DATASET[:5]

    def test_take_return_all(self):
        assert take(DATASET, True, 5) == DATASET

    def test_take_more_than_available(self):
        assert take([1, 2], False, 10) == [1, 2]
