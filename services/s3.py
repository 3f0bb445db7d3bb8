import logging
import uuid
from datetime import datetime
from typing import Optional

import boto3
from botocore.exceptions import ClientError
from fastapi import UploadFile, HTTPException

logger = logging.getLogger(__name__)


class S3Service:
    def __init__(self, bucket_name: str, client: boto3.client, public_base_url: Optional[str] = None):
        """
        Initialize the S3 service with bucket name and client
        """
        self.bucket_name = bucket_name
        self.s3 = client
        if not public_base_url:
            region = client.meta.region_name
            public_base_url = f"https://{bucket_name}.s3.{region}.amazonaws.com"
        self.public_base_url = public_base_url.rstrip("/")

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    async def upload_image(self, file: UploadFile, user_id: str, max_size_mb: int = 5) -> str:
        """
        Upload a post image to S3 with user ownership metadata

        Args:
            file: The image to upload
            user_id: The ID of the user uploading the image
            max_size_mb: Maximum file size in MB

        Returns:
            The public URL of the uploaded image

        Raises:
            HTTPException: If the file is not an image, is too large or the upload fails
        """
        content_type = file.content_type or ""
        if not content_type.startswith("image/"):
            raise HTTPException(status_code=400, detail="Only image files are allowed")

        # Keep the original extension, images are served straight from the bucket
        extension = ""
        if file.filename and "." in file.filename:
            extension = "." + file.filename.rsplit(".", 1)[1].lower()

        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        key = f"posts/{user_id}/{timestamp}-{uuid.uuid4()}{extension}"

        file_content = await file.read()
        if len(file_content) > max_size_mb * 1024 * 1024:
            raise HTTPException(
                status_code=400,
                detail=f"File size exceeds {max_size_mb}MB limit"
            )

        try:
            self.s3.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=file_content,
                ContentType=content_type,
                Metadata={
                    'user_id': user_id
                }
            )
        except ClientError as e:
            logger.error("S3 upload error: %s", e)
            raise HTTPException(status_code=500, detail="Failed to upload image")

        url = self.public_url(key)
        logger.info("Uploaded image %s", url)
        return url
