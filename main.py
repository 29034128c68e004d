import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import database
from auth import router as auth_router
from collection_routes import router as collection_router
from config import CORS_ORIGINS, DATABASE_NAME, DATABASE_URL, LOG_LEVEL, PORT
from uploads import configure_cloudinary

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

cloudinary_configured = configure_cloudinary()
if not cloudinary_configured:
    logger.warning("Cloudinary credentials are not set; image uploads will fail")

app = FastAPI(title="Collections API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
app.include_router(collection_router, prefix="/api/collections", tags=["Collections"])


@app.get("/")
def read_root():
    return {"message": "Collections API is running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
        "cloudinary": "✅ Configured" if cloudinary_configured else "❌ Not Configured",
    }
    db = database.db
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["database_name"] = db.name
            response["connection_status"] = "Connected"
            try:
                response["collections"] = db.list_collection_names()[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if DATABASE_URL else "❌ Not Set"
    if response["database_name"] is None:
        response["database_name"] = "✅ Set" if DATABASE_NAME else "❌ Not Set"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
