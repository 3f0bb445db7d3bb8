import logging
import os
from contextlib import asynccontextmanager

import boto3
import firebase_admin
from botocore.config import Config
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from firebase_admin import credentials
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from routes.posts import router as posts_router
from services.firestore import FirestoreDB
from services.s3 import S3Service

load_dotenv()

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"),
                    format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# S3 client
s3_client = boto3.client(
    's3',
    aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID"),
    aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY"),
    region_name=os.environ.get("AWS_REGION", "us-east-2"),
    config=Config(signature_version="s3v4")
)

BUCKET_NAME = os.environ.get("S3_BUCKET_NAME")
S3_PUBLIC_BASE_URL = os.environ.get("S3_PUBLIC_BASE_URL")
FIREBASE_CREDENTIALS = os.environ.get("FIREBASE_CREDENTIALS", "./firebase.json")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize Firebase Admin SDK
    cred = credentials.Certificate(FIREBASE_CREDENTIALS)
    firebase_app = firebase_admin.initialize_app(cred)

    app.state.s3_service = S3Service(BUCKET_NAME, s3_client, S3_PUBLIC_BASE_URL)
    app.state.firestore = FirestoreDB(firebase_app)
    logger.info("Feed service started, images go to bucket %s", BUCKET_NAME)

    yield

    firebase_admin.delete_app(firebase_app)


app = FastAPI(
    title="Feed Service",
    description="Posts, likes, comments and the friend feed",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Every error body carries a message field"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid {location}: {first.get('msg')}" if location else "Invalid request"
    logger.info("Rejected request to %s: %s", request.url.path, message)
    return JSONResponse(
        status_code=400,
        content={"message": message, "errors": jsonable_encoder(errors)},
    )


@app.get("/")
async def root():
    return {"message": "Feed Service running"}


@app.get("/health")
async def health_check():
    return {"message": "healthy", "service": "feed"}


# Include routers
app.include_router(posts_router, prefix="/posts", tags=["posts"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
