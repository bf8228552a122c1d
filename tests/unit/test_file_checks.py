"""Unit tests for upload validation and S3 file hosting."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from confportal.engines.storage.file_hosting import (
    DOCX_CONTENT_TYPE,
    PDF_CONTENT_TYPE,
    S3FileHosting,
    UploadedFile,
    check_image_file,
    check_paper_file,
)
from confportal.kernel.errors import StorageError, ValidationError

MB = 1024 * 1024


class TestPaperFile:

    def test_pdf_by_content_type(self):
        upload = UploadedFile("paper", PDF_CONTENT_TYPE, b"%PDF")
        assert check_paper_file(upload, 10 * MB) == PDF_CONTENT_TYPE

    def test_pdf_by_extension(self):
        upload = UploadedFile("paper.PDF", "application/octet-stream", b"%PDF")
        assert check_paper_file(upload, 10 * MB) == PDF_CONTENT_TYPE

    def test_missing_or_empty(self):
        with pytest.raises(ValidationError):
            check_paper_file(None, 10 * MB)
        with pytest.raises(ValidationError):
            check_paper_file(UploadedFile("paper.pdf", PDF_CONTENT_TYPE, b""), 10 * MB)

    def test_too_large(self):
        upload = UploadedFile("paper.pdf", PDF_CONTENT_TYPE, b"x" * (10 * MB + 1))
        with pytest.raises(ValidationError, match="10MB"):
            check_paper_file(upload, 10 * MB)

    def test_docx_only_when_allowed(self):
        upload = UploadedFile("abstract.docx", DOCX_CONTENT_TYPE, b"PK")
        assert check_paper_file(upload, 10 * MB, allow_docx=True) == DOCX_CONTENT_TYPE
        with pytest.raises(ValidationError, match="Only PDF"):
            check_paper_file(upload, 10 * MB)


class TestImageFile:

    def test_png(self):
        assert check_image_file(UploadedFile("id.png", "image/png", b"\x89PNG"), 5 * MB) == "png"

    def test_jpeg_by_extension(self):
        upload = UploadedFile("id.jpeg", "application/octet-stream", b"\xff\xd8")
        assert check_image_file(upload, 5 * MB) == "jpg"

    def test_pdf_rejected(self):
        with pytest.raises(ValidationError):
            check_image_file(UploadedFile("id.pdf", PDF_CONTENT_TYPE, b"%PDF"), 5 * MB)


class TestS3FileHosting:

    @pytest.mark.asyncio
    async def test_upload_returns_public_url(self, settings):
        client = MagicMock()
        host = S3FileHosting(settings, client=client)

        url = await host.upload(b"data", "conference/id-cards", "u1_1.png", "image/png")

        assert url == f"{settings.s3_public_base_url.rstrip('/')}/conference/id-cards/u1_1.png"
        kwargs = client.upload_fileobj.call_args.kwargs
        assert kwargs["Bucket"] == settings.s3_bucket
        assert kwargs["Key"] == "conference/id-cards/u1_1.png"
        assert kwargs["ExtraArgs"] == {"ContentType": "image/png"}

    @pytest.mark.asyncio
    async def test_client_error_becomes_storage_error(self, settings):
        client = MagicMock()
        client.upload_fileobj.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        host = S3FileHosting(settings, client=client)

        with pytest.raises(StorageError):
            await host.upload(b"data", "conference/papers", "x.pdf", PDF_CONTENT_TYPE)
