"""
Listing helpers: search filters, pagination and the paged find + count.
"""

import asyncio
import math
import re
from typing import List, Mapping, Optional, Sequence, Tuple

from pydantic.alias_generators import to_snake
from pymongo import ASCENDING, DESCENDING

MAX_TEXT_LENGTH = 100
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
# keeps skip within a signed 64-bit int
MAX_PAGE = (2 ** 63 - 1) // MAX_LIMIT

DEFAULT_SEARCH_FIELDS = ("title", "author", "brand")
# query parameter -> document field
FIELD_FILTERS = {
    "category": "category",
    "brand": "brand",
    "author": "author",
    "name": "title",
}

DEFAULT_SORT = [("created_at", DESCENDING)]
SORTABLE_FIELDS = {"created_at", "price", "release_date", "title"}

OWNER_FIELDS = {"username": 1, "profile_picture": 1}


def clean_text(value) -> Optional[str]:
    """Trim and cap user text; None when nothing usable is left."""
    if value is None:
        return None
    text = str(value).strip()[:MAX_TEXT_LENGTH]
    return text or None


def escape_regex(text: str) -> str:
    return re.escape(text)


def _contains(text: str) -> dict:
    return {"$regex": escape_regex(text), "$options": "i"}


def build_filter(params: Mapping, search_fields: Sequence[str] = DEFAULT_SEARCH_FIELDS) -> dict:
    """
    Build a MongoDB predicate from raw query parameters.

    `q` is matched against every field in `search_fields` (any may match);
    `status` and the FIELD_FILTERS parameters each add their own
    case-insensitive substring constraint.
    """
    predicate = {}

    q = clean_text(params.get("q"))
    if q and search_fields:
        predicate["$or"] = [{field: _contains(q)} for field in search_fields]

    status = clean_text(params.get("status"))
    if status:
        predicate["status"] = _contains(status)

    for param, field in FIELD_FILTERS.items():
        value = clean_text(params.get(param))
        if value:
            predicate[field] = _contains(value)

    return predicate


def _to_int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def get_pagination(page=None, limit=None) -> Tuple[int, int, int]:
    """Return (page, limit, skip), always bounded no matter what came in."""
    page_number = _to_int(page)
    if page_number is None or page_number < 1:
        page_number = DEFAULT_PAGE
    page_number = min(page_number, MAX_PAGE)

    page_size = _to_int(limit)
    if page_size is None or page_size < 1:
        page_size = DEFAULT_LIMIT
    page_size = min(page_size, MAX_LIMIT)

    return page_number, page_size, (page_number - 1) * page_size


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def parse_sort(value) -> List[Tuple[str, int]]:
    """Sort by `field` ascending or `-field` descending (snake_case or camelCase); unknown fields fall back to newest first."""
    text = clean_text(value)
    if not text:
        return list(DEFAULT_SORT)
    direction = ASCENDING
    if text.startswith("-"):
        direction = DESCENDING
        text = text[1:]
    if "_" not in text:
        text = to_snake(text)
    if text not in SORTABLE_FIELDS:
        return list(DEFAULT_SORT)
    return [(text, direction)]


def _find_page(collection, users, filter_dict: dict, sort, skip: int, limit: int) -> list:
    documents = list(collection.find(filter_dict).sort(sort).skip(skip).limit(limit))
    populate_owners(users, documents)
    return documents


def populate_owners(users, documents: list) -> list:
    """Replace each document's `user` id with the owner's public fields."""
    owner_ids = {doc["user"] for doc in documents if doc.get("user") is not None}
    if not owner_ids:
        return documents
    owners = {
        owner["_id"]: owner
        for owner in users.find({"_id": {"$in": list(owner_ids)}}, OWNER_FIELDS)
    }
    for doc in documents:
        owner = owners.get(doc.get("user"))
        if owner is not None:
            doc["user"] = {
                "_id": owner["_id"],
                "username": owner.get("username"),
                "profile_picture": owner.get("profile_picture", ""),
            }
    return documents


async def query_with_count(collection, users, filter_dict: dict, sort=None, skip: int = 0, limit: int = DEFAULT_LIMIT) -> dict:
    """
    Run the page read and the count read concurrently against the same filter.

    The count ignores skip/limit. If either read raises, the exception
    propagates and no partial result is returned.
    """
    results, total = await asyncio.gather(
        asyncio.to_thread(_find_page, collection, users, filter_dict, sort or DEFAULT_SORT, skip, limit),
        asyncio.to_thread(collection.count_documents, filter_dict),
    )
    return {"results": results, "total": total}
