"""Shared fixtures: in-memory MongoDB, a fake Cloudinary uploader and an API client."""

from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from collection_service import CollectionService
from errors import ImageUploadError
from uploads import UploadedImage


class FakeUploader:
    """Stands in for ImageUploader; records every call."""

    def __init__(self):
        self.uploads = []
        self.destroyed = []
        self.fail_upload = False
        self.fail_destroy = False

    def upload(self, payload, folder=None):
        if self.fail_upload:
            raise ImageUploadError("upload failed")
        self.uploads.append(payload)
        n = len(self.uploads)
        return UploadedImage(
            secure_url=f"https://res.cloudinary.com/demo/image/upload/v1700000000/collections/img{n}.jpg",
            public_id=f"collections/img{n}",
        )

    def destroy(self, public_id):
        # ImageUploader.destroy reports failure instead of raising
        if self.fail_destroy:
            return False
        self.destroyed.append(public_id)
        return True


@pytest.fixture
def mongo_db():
    return mongomock.MongoClient()["collections_test"]


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def service(mongo_db, uploader):
    return CollectionService(mongo_db, uploader)


@pytest.fixture
def owner(mongo_db):
    user = {
        "_id": ObjectId(),
        "username": "kaori",
        "email": "kaori@mail.com",
        "password_hash": "not-a-real-hash",
        "profile_picture": "https://avatars.local/kaori.svg",
    }
    mongo_db["users"].insert_one(user)
    return user


@pytest.fixture
def other_user(mongo_db):
    user = {
        "_id": ObjectId(),
        "username": "tomas",
        "email": "tomas@mail.com",
        "password_hash": "not-a-real-hash",
        "profile_picture": "",
    }
    mongo_db["users"].insert_one(user)
    return user


@pytest.fixture
def collection_fields():
    return {
        "title": "Naruto Vol. 1",
        "caption": "First printing",
        "brand": "Panini",
        "author": "Masashi Kishimoto",
        "price": 4500,
        "currency": "ARS",
        "category": "manga",
        "status": "owned",
        "release_date": "03-2015",
    }


@pytest.fixture
def make_records(mongo_db, owner):
    """Insert `count` collection documents, newest last, and return them."""

    def _make(count, **overrides):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        docs = []
        for i in range(count):
            doc = {
                "_id": ObjectId(),
                "title": f"Item {i}",
                "caption": "caption",
                "brand": "Ivrea",
                "author": "Someone",
                "price": float(i),
                "currency": "ARS",
                "category": "manga",
                "status": "owned",
                "release_date": datetime(2020, 1, 1),
                "shopping_link": "",
                "image": f"https://res.cloudinary.com/demo/image/upload/v1/collections/item{i}.jpg",
                "image_public_id": f"collections/item{i}",
                "images": [f"https://res.cloudinary.com/demo/image/upload/v1/collections/item{i}.jpg"],
                "image_public_ids": [f"collections/item{i}"],
                "user": owner["_id"],
                "created_at": base + timedelta(minutes=i),
                "updated_at": base + timedelta(minutes=i),
            }
            doc.update(overrides)
            docs.append(doc)
        if docs:
            mongo_db["collections"].insert_many(docs)
        return docs

    return _make


@pytest.fixture
def client(mongo_db, uploader):
    from main import app
    from database import get_db
    from collection_routes import get_uploader

    app.dependency_overrides[get_db] = lambda: mongo_db
    app.dependency_overrides[get_uploader] = lambda: uploader
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register a user through the API and return (auth headers, user json)."""

    def _register(username="kaori", email=None, password="Secret1!"):
        response = client.post(
            "/api/auth/register",
            json={"username": username, "email": email or f"{username}@mail.com", "password": password},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return {"Authorization": f"Bearer {body['token']}"}, body["user"]

    return _register
