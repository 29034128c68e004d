from typing import List, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic.alias_generators import to_camel
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from auth import auth_current_user
from collection_service import CollectionService
from database import get_db, serialize_document
from errors import ServiceError
from uploads import ImageUploader


router = APIRouter()

COLLECTION_FIELDS = (
    "title", "caption", "brand", "author", "price", "currency",
    "category", "status", "release_date", "shopping_link",
)
IMAGE_FIELDS = ("image", "images")

_uploader = ImageUploader()


def get_uploader() -> ImageUploader:
    return _uploader


def get_collection_service(db=Depends(get_db), uploader: ImageUploader = Depends(get_uploader)) -> CollectionService:
    return CollectionService(db, uploader)


def http_error(exc: ServiceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def _pick_fields(source) -> dict:
    """Collection fields from a body or form; each may come snake_case or camelCase."""
    fields = {}
    for key in COLLECTION_FIELDS:
        for name in (key, to_camel(key)):
            value = source.get(name)
            if value not in (None, ""):
                fields[key] = value
                break
    return fields


async def read_payload(request: Request) -> Tuple[dict, List]:
    """
    Split a JSON or multipart body into collection fields and image payloads.

    JSON bodies carry base64 strings in `image`/`images`; multipart bodies carry
    files (or base64 strings) under the same names.
    """
    content_type = request.headers.get("content-type", "")
    images = []

    if content_type.startswith("multipart/form-data") or content_type.startswith("application/x-www-form-urlencoded"):
        async with request.form() as form:
            fields = _pick_fields(form)
            for key in IMAGE_FIELDS:
                for item in form.getlist(key):
                    if isinstance(item, UploadFile):
                        images.append(await item.read())
                    elif item:
                        images.append(item)
        return fields, images

    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON or multipart form data")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")

    fields = _pick_fields(body)
    image = body.get("image")
    if isinstance(image, str) and image:
        images.append(image)
    extra = body.get("images")
    if isinstance(extra, list):
        images.extend(item for item in extra if isinstance(item, str) and item)
    return fields, images


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_collection(
    request: Request,
    current_user=Depends(auth_current_user),
    service: CollectionService = Depends(get_collection_service),
):
    fields, images = await read_payload(request)
    try:
        document = await run_in_threadpool(service.create, current_user["_id"], fields, images)
    except ServiceError as exc:
        raise http_error(exc)
    return serialize_document(document)


@router.get("")
async def list_collections(
    request: Request,
    current_user=Depends(auth_current_user),
    service: CollectionService = Depends(get_collection_service),
):
    try:
        result = await service.list(request.query_params)
    except ServiceError as exc:
        raise http_error(exc)
    return serialize_document(result)


@router.get("/user")
async def list_user_collections(
    request: Request,
    current_user=Depends(auth_current_user),
    service: CollectionService = Depends(get_collection_service),
):
    try:
        result = await service.list(request.query_params, owner_id=current_user["_id"])
    except ServiceError as exc:
        raise http_error(exc)
    return serialize_document(result)


@router.get("/{collection_id}")
def get_collection(
    collection_id: str,
    current_user=Depends(auth_current_user),
    service: CollectionService = Depends(get_collection_service),
):
    try:
        document = service.get(collection_id)
    except ServiceError as exc:
        raise http_error(exc)
    return serialize_document(document)


@router.put("/{collection_id}")
async def update_collection(
    collection_id: str,
    request: Request,
    current_user=Depends(auth_current_user),
    service: CollectionService = Depends(get_collection_service),
):
    fields, images = await read_payload(request)
    try:
        document = await run_in_threadpool(service.update, collection_id, current_user["_id"], fields, images)
    except ServiceError as exc:
        raise http_error(exc)
    return serialize_document(document)


@router.delete("/{collection_id}")
def delete_collection(
    collection_id: str,
    current_user=Depends(auth_current_user),
    service: CollectionService = Depends(get_collection_service),
):
    try:
        service.delete(collection_id, current_user["_id"])
    except ServiceError as exc:
        raise http_error(exc)
    return {"message": "Collection deleted successfully"}
