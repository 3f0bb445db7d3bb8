import io

import pytest
from botocore.stub import ANY
from fastapi import HTTPException, UploadFile
from starlette.datastructures import Headers

from services.s3 import S3Service


def make_upload(content: bytes, filename: str, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.mark.asyncio
async def test_upload_image(s3_service, s3_stubber):
    s3_stubber.add_response(
        "put_object",
        {},
        {
            "Bucket": "feed-images",
            "Key": ANY,
            "Body": b"jpeg-bytes",
            "ContentType": "image/jpeg",
            "Metadata": {"user_id": "bob"},
        },
    )

    url = await s3_service.upload_image(make_upload(b"jpeg-bytes", "Photo.JPG", "image/jpeg"), "bob")

    assert url.startswith("https://feed-images.s3.us-east-2.amazonaws.com/posts/bob/")
    assert url.endswith(".jpg")
    s3_stubber.assert_no_pending_responses()


@pytest.mark.asyncio
async def test_upload_image_too_large(s3_service):
    upload = make_upload(b"x" * (1024 * 1024 + 1), "big.png", "image/png")
    with pytest.raises(HTTPException) as exc:
        await s3_service.upload_image(upload, "bob", max_size_mb=1)
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_upload_rejects_other_content(s3_service):
    with pytest.raises(HTTPException) as exc:
        await s3_service.upload_image(make_upload(b"%PDF", "cv.pdf", "application/pdf"), "bob")
    assert exc.value.status_code == 400


def test_public_base_url_override(s3_client):
    service = S3Service("feed-images", s3_client, "https://cdn.example.com/")
    assert service.public_url("posts/a.png") == "https://cdn.example.com/posts/a.png"
