import asyncio
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shotcache.config import (
    S3_BUCKET_NAME,
    S3_REGION,
    S3_ENDPOINT,
    S3_ACCESS_KEY,
    S3_SECRET_KEY,
    CONTENT_TYPE,
    CACHE_CONTROL,
)
from shotcache.models import ImageStream, RenderedImage
from shotcache.storage.storage import BlobStore, StoreError

# Error codes S3 (and compatible stores) use for an absent object
MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}

READ_CHUNK_SIZE = 64 * 1024


def create_s3_client():
    """Build a boto3 client from process configuration."""
    return boto3.client(
        "s3",
        region_name=S3_REGION,
        endpoint_url=S3_ENDPOINT,
        aws_access_key_id=S3_ACCESS_KEY or None,
        aws_secret_access_key=S3_SECRET_KEY or None,
        config=Config(retries={"max_attempts": 1, "mode": "standard"}),
    )


class S3BlobStore(BlobStore):
    """
    S3 implementation of BlobStore.
    boto3 is blocking, so each call runs on the default executor and the
    awaiting request task yields in the meantime.
    """

    def __init__(self, client, bucket: str = S3_BUCKET_NAME):
        self._client = client
        self._bucket = bucket

    async def get(self, key: str) -> Optional[ImageStream]:
        try:
            response = await asyncio.to_thread(
                self._client.get_object, Bucket=self._bucket, Key=key
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in MISSING_KEY_CODES:
                return None
            raise StoreError(f"get {key} failed: {code or e}") from e
        except BotoCoreError as e:
            raise StoreError(f"get {key} failed: {e}") from e

        body = response["Body"]
        return ImageStream(
            body.iter_chunks(READ_CHUNK_SIZE),
            content_length=response.get("ContentLength"),
            on_close=body.close,
        )

    async def put(self, key: str, image: RenderedImage) -> None:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=image.data,
                ContentType=CONTENT_TYPE,
                CacheControl=CACHE_CONTROL,
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"put {key} failed: {e}") from e
