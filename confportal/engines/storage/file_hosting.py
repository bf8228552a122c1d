"""
File hosting on S3-compatible object storage.

Uploads are blocking boto3 calls run in a worker thread; they finish before
the caller touches the database. A failure after a successful upload leaves
an unreferenced object behind, which is acceptable.
"""

import asyncio
import io
from dataclasses import dataclass
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from confportal.config import Settings
from confportal.kernel.errors import StorageError, ValidationError
from confportal.logging_config import get_logger

logger = get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
DOCX_CONTENT_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)
IMAGE_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
}

# Folders inside the bucket
PAPERS_FOLDER = "conference/papers"
REVISIONS_FOLDER = "conference/full-papers/revisions"
ID_CARDS_FOLDER = "conference/id-cards"
PAYMENT_RECEIPTS_FOLDER = "conference/payment-receipts"


@dataclass
class UploadedFile:
    """A file received from the client, fully read into memory."""

    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return ""
        return self.filename.rsplit(".", 1)[-1].lower()


class FileHostingService(Protocol):
    """Stores a file and returns a stable public URL for it."""

    async def upload(
        self,
        data: bytes,
        folder: str,
        public_id: str,
        content_type: str,
    ) -> str:
        ...


class S3FileHosting:
    """FileHostingService backed by an S3-compatible bucket."""

    def __init__(self, settings: Settings, client=None):
        self.bucket = settings.s3_bucket
        self.public_base_url = settings.s3_public_base_url.rstrip("/")
        self._client = client or boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint,
            aws_access_key_id=settings.s3_access_key or None,
            aws_secret_access_key=settings.s3_secret_key or None,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    async def upload(
        self,
        data: bytes,
        folder: str,
        public_id: str,
        content_type: str,
    ) -> str:
        object_key = f"{folder.strip('/')}/{public_id}"
        try:
            await asyncio.to_thread(
                self._client.upload_fileobj,
                Fileobj=io.BytesIO(data),
                Bucket=self.bucket,
                Key=object_key,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error(
                "Object upload failed",
                extra={"object_key": object_key, "error": str(exc)},
            )
            raise StorageError() from exc

        logger.info(
            "Object uploaded",
            extra={"object_key": object_key, "size_bytes": len(data)},
        )
        return f"{self.public_base_url}/{object_key}"


def check_paper_file(
    upload: Optional[UploadedFile],
    max_bytes: int,
    allow_docx: bool = False,
) -> str:
    """
    Validate a paper upload and return the content type to store it under.

    PDF is accepted by content type or ``.pdf`` extension; abstracts may also
    be ``.docx``.
    """
    if upload is None or not upload.data:
        raise ValidationError("No file uploaded")
    if len(upload.data) > max_bytes:
        raise ValidationError(
            f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB"
        )
    if upload.content_type == PDF_CONTENT_TYPE or upload.extension == "pdf":
        return PDF_CONTENT_TYPE
    if allow_docx and (
        upload.content_type == DOCX_CONTENT_TYPE or upload.extension == "docx"
    ):
        return DOCX_CONTENT_TYPE
    if allow_docx:
        raise ValidationError("Only PDF or DOCX files are allowed")
    raise ValidationError("Only PDF files are allowed")


def check_image_file(upload: Optional[UploadedFile], max_bytes: int) -> str:
    """Validate a JPEG/PNG upload and return its file extension."""
    if upload is None or not upload.data:
        raise ValidationError("No file uploaded")
    if len(upload.data) > max_bytes:
        raise ValidationError(
            f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB"
        )
    if upload.content_type in IMAGE_CONTENT_TYPES:
        return IMAGE_CONTENT_TYPES[upload.content_type]
    if upload.extension in ("jpg", "jpeg", "png"):
        return "png" if upload.extension == "png" else "jpg"
    raise ValidationError("Only JPEG and PNG images are allowed")
