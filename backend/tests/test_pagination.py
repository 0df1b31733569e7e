"""
Tests for page/limit normalization and page metadata.
"""

import math

import pytest
from sqlmodel import Session

from vidhub.models.video import Video
from vidhub.services import query_composer
from vidhub.services.pagination import MAX_PAGE_SIZE, normalize_limit, normalize_page, paginate
from vidhub.services.query_composer import ASC, Eq, Filter, Pipeline, Sort, owner_enrichment

from tests.helpers import make_identity, make_video


@pytest.fixture
def twenty_five_videos(session: Session):
    owner = make_identity(session, "owner")
    return [make_video(session, owner.id, f"v{i:02d}") for i in range(25)]


def _pipeline():
    return Pipeline("videos", (Sort("id", ASC),) + owner_enrichment())


def test_first_page(session: Session, twenty_five_videos):
    page = paginate(session, _pipeline(), page=1, limit=10)

    assert [v["title"] for v in page.items] == [f"v{i:02d}" for i in range(10)]
    assert page.total_items == 25
    assert page.total_pages == 3
    assert page.has_next is True
    assert page.has_prev is False


def test_last_partial_page(session: Session, twenty_five_videos):
    page = paginate(session, _pipeline(), page=3, limit=10)

    assert len(page.items) == 5
    assert page.has_next is False
    assert page.has_prev is True
    assert page.items[0]["owner"]["username"] == "owner"


def test_page_past_the_end_is_empty_not_an_error(session: Session, twenty_five_videos):
    page = paginate(session, _pipeline(), page=4, limit=10)

    assert page.items == []
    assert page.total_pages == 3
    assert page.has_next is False


def test_empty_collection(session: Session):
    page = paginate(session, _pipeline())

    assert page.to_dict() == {
        "items": [],
        "page": 1,
        "limit": 10,
        "total_items": 0,
        "total_pages": 1,
        "has_next": False,
        "has_prev": False,
    }
    assert page.page == page.total_pages


def test_total_counts_only_filtered_documents(session: Session, twenty_five_videos):
    one_title = Pipeline("videos", (Filter(Eq("title", "v07")),))

    page = paginate(session, one_title)

    assert page.total_items == 1
    assert page.total_pages == 1


@pytest.mark.parametrize("limit", [1, 3, 10])
@pytest.mark.parametrize("total", [0, 1, 9, 10, 11, 25])
def test_pages_tile_the_result(session: Session, total, limit):
    """Walking every page yields each item exactly once, in order"""
    session.add_all(
        [Video(title=f"t{i}", description="d", video_file="f", thumbnail="t", owner_id=1) for i in range(total)]
    )
    session.commit()
    pipeline = Pipeline("videos", (Sort("id", ASC),))
    expected_ids = [doc["id"] for doc in query_composer.run(session, pipeline)]

    first = paginate(session, pipeline, page=1, limit=limit)
    assert first.total_pages == max(1, math.ceil(total / limit))
    seen = []
    for number in range(1, first.total_pages + 1):
        page = paginate(session, pipeline, page=number, limit=limit)
        assert page.total_items == total
        assert page.total_pages == first.total_pages
        assert page.has_next is (number != first.total_pages)
        assert page.has_prev is (number > 1)
        seen.extend(doc["id"] for doc in page.items)

    assert seen == expected_ids
    assert len(set(seen)) == total

    last = paginate(session, pipeline, page=first.total_pages, limit=limit)
    if total == 0:
        assert last.items == []
    else:
        assert len(last.items) == (total % limit or limit)

    beyond = paginate(session, pipeline, page=first.total_pages + 1, limit=limit)
    assert beyond.items == []
    assert beyond.has_next is False
    assert beyond.total_items == total


@pytest.mark.parametrize(
    "raw,expected",
    [(None, 1), ("", 1), ("abc", 1), ("0", 1), (-3, 1), ("2", 2), (5, 5), (True, 1)],
)
def test_normalize_page(raw, expected):
    assert normalize_page(raw) == expected


@pytest.mark.parametrize(
    "raw,expected",
    [(None, 10), ("junk", 10), ("0", 1), (-5, 1), ("25", 25), (10_000, MAX_PAGE_SIZE)],
)
def test_normalize_limit(raw, expected):
    assert normalize_limit(raw) == expected
