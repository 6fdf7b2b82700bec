"""Tests for loading generated images."""

import pytest

from thumbgen.artifacts.fetcher import ArtifactFetcher


@pytest.fixture
def fetcher(store):
    return ArtifactFetcher(store)


@pytest.mark.asyncio
async def test_load_for_job_newest_first(fetcher, store, make_image):
    store.results.extend(
        [
            make_image("req-1", minutes=1),
            make_image("req-1", minutes=3),
            make_image("req-2", minutes=2),
            make_image("req-1", minutes=2),
        ]
    )

    images = await fetcher.load_for_job("req-1")

    assert [image.image_url for image in images] == [
        "https://cdn.test/req-1/3.png",
        "https://cdn.test/req-1/2.png",
        "https://cdn.test/req-1/1.png",
    ]


@pytest.mark.asyncio
async def test_load_for_job_without_rows(fetcher):
    assert await fetcher.load_for_job("unknown") == []


@pytest.mark.asyncio
async def test_not_found_is_an_empty_list(fetcher, store):
    store.raise_not_found = True

    assert await fetcher.load_for_job("req-1") == []
    assert await fetcher.load_for_user("user-1") == []


@pytest.mark.asyncio
async def test_load_for_user_spans_jobs(fetcher, store, make_image):
    store.results.extend(
        [
            make_image("req-1", minutes=1),
            make_image("req-2", minutes=5),
            make_image("req-3", user_id="user-2", minutes=9),
        ]
    )

    images = await fetcher.load_for_user("user-1")

    assert [image.request_id for image in images] == ["req-2", "req-1"]


@pytest.mark.asyncio
async def test_each_call_requeries(fetcher, store, make_image):
    assert await fetcher.load_for_job("req-1") == []

    store.results.append(make_image("req-1"))

    assert len(await fetcher.load_for_job("req-1")) == 1
