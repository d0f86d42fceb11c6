import io
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from typing import Optional

from app.errors import InvalidInput, StoreUnavailable
from app.schemas import ImageRef
from app.utils.hash_utils import image_object_name
import logging

logger = logging.getLogger(__name__)

class ImageStore:
    """Uploads crop photos to an S3-compatible bucket and hands back a URL
    the inference service can fetch."""

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        *,
        max_bytes: int = 5 * 1024 * 1024,
        public_url: Optional[str] = None,
        url_expiry_seconds: int = 7 * 24 * 3600,
        timeout: float = 10.0,
        client=None,
    ):
        # Ensure endpoint starts with http:// if not present
        if not endpoint.startswith("http"):
            endpoint = f"http://{endpoint}"

        self.s3_client = client or boto3.client(
            's3',
            endpoint_url=endpoint,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=boto3.session.Config(
                signature_version='s3v4',
                connect_timeout=timeout,
                read_timeout=timeout,
                # Retries belong to the job queue
                retries={"max_attempts": 1, "mode": "standard"},
            ),
            region_name="us-east-1" # MinIO default region
        )
        self.bucket = bucket
        self.max_bytes = max_bytes
        self.public_url = public_url.rstrip("/") if public_url else None
        self.url_expiry_seconds = url_expiry_seconds
        self._bucket_ready = False

    def _ensure_bucket_exists(self):
        if self._bucket_ready:
            return
        try:
            self.s3_client.head_bucket(Bucket=self.bucket)
        except ClientError:
            try:
                self.s3_client.create_bucket(Bucket=self.bucket)
                logger.info(f"Created bucket: {self.bucket}")
            except (ClientError, BotoCoreError) as e:
                raise StoreUnavailable(f"Failed to create bucket {self.bucket}: {e}")
        except BotoCoreError as e:
            raise StoreUnavailable(f"Image store unreachable: {e}")
        self._bucket_ready = True

    def upload(self, image_bytes: bytes, mime_type: str) -> ImageRef:
        """Upload raw bytes and return a stable reference.

        The object key is the content hash, so uploading the same bytes again
        (a retried job) overwrites the same object instead of adding one.
        """
        if not image_bytes:
            raise InvalidInput("File buffer empty")
        if len(image_bytes) > self.max_bytes:
            raise InvalidInput(f"Image size must be less than {self.max_bytes // (1024 * 1024)}MB")

        self._ensure_bucket_exists()

        object_name = image_object_name(image_bytes, mime_type)
        try:
            self.s3_client.upload_fileobj(
                io.BytesIO(image_bytes),
                self.bucket,
                object_name,
                ExtraArgs={"ContentType": mime_type},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload file: {e}")
            raise StoreUnavailable(f"Failed to upload image: {e}")

        return ImageRef(
            url=self.url_for(object_name),
            public_id=object_name,
            size=len(image_bytes),
            mime_type=mime_type,
        )

    def url_for(self, object_name: str) -> str:
        if self.public_url:
            return f"{self.public_url}/{self.bucket}/{object_name}"
        try:
            return self.s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket, 'Key': object_name},
                ExpiresIn=self.url_expiry_seconds
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate presigned URL: {e}")
            raise StoreUnavailable(f"Failed to generate image URL: {e}")

    def ping(self) -> bool:
        try:
            self.s3_client.head_bucket(Bucket=self.bucket)
            return True
        except (ClientError, BotoCoreError):
            return False
