"""
Collection records: create, list, get, update and delete.

Uploads always finish before the record is written, and an owner check
guards every mutation. Image cleanup on delete is best-effort.
"""

import logging
from typing import List, Mapping, Sequence

from pydantic import ValidationError
from pymongo.errors import PyMongoError

from database import create_document, to_object_id, utcnow
from errors import (
    AuthorizationError,
    ExternalServiceError,
    ImageUploadError,
    InvalidPayloadError,
    NotFoundError,
)
from query import (
    DEFAULT_SEARCH_FIELDS,
    build_filter,
    get_pagination,
    parse_sort,
    populate_owners,
    query_with_count,
    total_pages,
)
from schemas import Collection, CollectionCreate, CollectionUpdate
from uploads import ImagePayload, ImageUploader, UploadedImage, get_public_id_from_url

logger = logging.getLogger(__name__)


def _validation_message(exc: ValidationError) -> str:
    missing = [str(err["loc"][0]) for err in exc.errors() if err["type"] == "missing"]
    if missing:
        return "All fields are required: " + ", ".join(missing)
    err = exc.errors()[0]
    field = ".".join(str(part) for part in err["loc"])
    return f"Invalid value for {field}: {err['msg']}"


def _image_fields(uploaded: List[UploadedImage]) -> dict:
    return {
        "image": uploaded[0].secure_url,
        "image_public_id": uploaded[0].public_id,
        "images": [image.secure_url for image in uploaded],
        "image_public_ids": [image.public_id for image in uploaded],
    }


class CollectionService:
    def __init__(self, db, uploader: ImageUploader, search_fields: Sequence[str] = DEFAULT_SEARCH_FIELDS):
        self.collections = db["collections"]
        self.users = db["users"]
        self.uploader = uploader
        self.search_fields = tuple(search_fields)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _upload_all(self, images: Sequence[ImagePayload]) -> List[UploadedImage]:
        uploaded = []
        try:
            for payload in images:
                uploaded.append(self.uploader.upload(payload))
        except ImageUploadError as exc:
            logger.exception("Image upload failed after %d of %d images", len(uploaded), len(images))
            raise ExternalServiceError() from exc
        return uploaded

    def _fetch(self, collection_id) -> dict:
        object_id = to_object_id(collection_id)
        if object_id is None:
            raise NotFoundError()
        try:
            document = self.collections.find_one({"_id": object_id})
        except PyMongoError as exc:
            logger.exception("Error fetching collection %s", collection_id)
            raise ExternalServiceError() from exc
        if document is None:
            raise NotFoundError()
        return document

    def _fetch_owned(self, collection_id, owner_id, action: str) -> dict:
        document = self._fetch(collection_id)
        if str(document.get("user")) != str(owner_id):
            raise AuthorizationError(f"You are not authorized to {action} this collection")
        return document

    def _public_ids(self, document: dict) -> List[str]:
        public_ids = [pid for pid in document.get("image_public_ids") or [] if pid]
        if public_ids:
            return public_ids
        legacy_id = document.get("image_public_id") or get_public_id_from_url(document.get("image"))
        return [legacy_id] if legacy_id else []

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, owner_id, fields: Mapping, images: Sequence[ImagePayload]) -> dict:
        try:
            payload = CollectionCreate(**fields)
        except ValidationError as exc:
            raise InvalidPayloadError(_validation_message(exc)) from exc
        images = [image for image in images if image]
        if not images:
            raise InvalidPayloadError("At least one image is required")

        owner = to_object_id(owner_id)
        uploaded = self._upload_all(images)

        record = Collection(
            **payload.model_dump(),
            **_image_fields(uploaded),
            user=str(owner),
        ).model_dump()
        record["user"] = owner

        try:
            document = create_document(self.collections, record)
        except PyMongoError as exc:
            logger.exception("Error creating collection for user %s", owner_id)
            raise ExternalServiceError() from exc

        logger.info("Created collection %s for user %s", document["_id"], owner_id)
        return document

    def update(self, collection_id, owner_id, fields: Mapping, images: Sequence[ImagePayload] = ()) -> dict:
        try:
            payload = CollectionUpdate(**fields)
        except ValidationError as exc:
            raise InvalidPayloadError(_validation_message(exc)) from exc

        document = self._fetch_owned(collection_id, owner_id, "update")

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        images = [image for image in images if image]
        if images:
            # Previous images stay in Cloudinary; only deleting the record removes them
            changes.update(_image_fields(self._upload_all(images)))
        changes["updated_at"] = utcnow()

        try:
            self.collections.update_one({"_id": document["_id"]}, {"$set": changes})
        except PyMongoError as exc:
            logger.exception("Error updating collection %s", collection_id)
            raise ExternalServiceError() from exc

        document.update(changes)
        return document

    def delete(self, collection_id, owner_id) -> None:
        document = self._fetch_owned(collection_id, owner_id, "delete")

        # destroy() logs and swallows its own failures
        for public_id in self._public_ids(document):
            self.uploader.destroy(public_id)

        try:
            self.collections.delete_one({"_id": document["_id"]})
        except PyMongoError as exc:
            logger.exception("Error deleting collection %s", collection_id)
            raise ExternalServiceError() from exc

        logger.info("Deleted collection %s", collection_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list(self, params: Mapping, owner_id=None) -> dict:
        filter_dict = build_filter(params, self.search_fields)
        if owner_id is not None:
            filter_dict["user"] = to_object_id(owner_id)
        page, limit, skip = get_pagination(params.get("page"), params.get("limit"))
        sort = parse_sort(params.get("sort"))

        try:
            result = await query_with_count(self.collections, self.users, filter_dict, sort, skip, limit)
        except PyMongoError as exc:
            logger.exception("Error fetching collections (filter=%s)", filter_dict)
            raise ExternalServiceError() from exc

        return {
            "collections": result["results"],
            "page": page,
            "limit": limit,
            "total": result["total"],
            "totalPages": total_pages(result["total"], limit),
        }

    def get(self, collection_id) -> dict:
        document = self._fetch(collection_id)
        try:
            populate_owners(self.users, [document])
        except PyMongoError as exc:
            logger.exception("Error fetching owner of collection %s", collection_id)
            raise ExternalServiceError() from exc
        return document
