"""
Storage Engine - file hosting and upload rules.
"""

from confportal.engines.storage.file_hosting import (
    FileHostingService,
    S3FileHosting,
    UploadedFile,
    check_image_file,
    check_paper_file,
)

__all__ = [
    "FileHostingService",
    "S3FileHosting",
    "UploadedFile",
    "check_image_file",
    "check_paper_file",
]
