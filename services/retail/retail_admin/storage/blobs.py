"""
Blob storage for customer and product photos.

Each ``BlobStore`` instance manages one container (a namespace such as
``customer-photos``). Uploaded objects get a collision-resistant physical name
and are addressed afterwards by their public URL.
"""
import logging
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, NamedTuple, Optional
from urllib.parse import quote, unquote, urlparse
from botocore.exceptions import ClientError
from ..errors import StorageError

logger = logging.getLogger(__name__)

CUSTOMER_PHOTOS = "customer-photos"
PRODUCT_PHOTOS = "product-photos"

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class UploadedFile(NamedTuple):
    """A file received from a caller: its original name and its bytes."""
    filename: str
    content: bytes


def content_type_for(filename: str) -> str:
    """Map a file name's extension to the content type stored with the blob."""
    return CONTENT_TYPES.get(os.path.splitext(filename)[1].lower(), DEFAULT_CONTENT_TYPE)


def blob_name_from_url(url: Optional[str]) -> str:
    """
    Extract the physical blob name (last path segment) from a blob URL.

    Returns:
        The URL-decoded name, or an empty string if none can be parsed
    """
    if not url:
        return ""
    try:
        path = urlparse(url).path
    except ValueError:
        return ""
    name = unquote(path.rstrip("/").rsplit("/", 1)[-1]) if path else ""
    # A decoded name must still be a single path segment
    if not name or Path(name).name != name or name in (".", ".."):
        return ""
    return name


class BlobStore(ABC):
    """Abstract base class for a single blob container."""

    def __init__(self, container: str):
        self.container = container

    def unique_name(self, filename: str) -> str:
        """Physical name for an upload: a fresh UUID prefixed to the file's base name."""
        base = os.path.basename(filename.replace("\\", "/")) or "file"
        return f"{uuid.uuid4()}_{base}"

    @abstractmethod
    def create_if_not_exists(self) -> None:
        """Provision the container."""
        pass

    @abstractmethod
    def upload(self, filename: str, data: bytes) -> str:
        """
        Store ``data`` under a new unique name derived from ``filename``.

        Args:
            filename: Logical file name supplied by the caller
            data: File contents

        Returns:
            Public URL of the stored object
        """
        pass

    @abstractmethod
    def delete(self, url: str) -> bool:
        """
        Delete the object addressed by ``url``.

        Returns:
            True if an object was deleted, False if the URL could not be parsed
            or no such object exists
        """
        pass

    @abstractmethod
    def exists(self, url: str) -> bool:
        """Check whether the object addressed by ``url`` exists."""
        pass

    @abstractmethod
    def list_urls(self) -> List[str]:
        """Public URLs of every object in the container."""
        pass


class LocalBlobStore(BlobStore):
    """
    Blob container stored as a directory on the local filesystem.

    Objects are served by the application under ``public_base_url``.
    """

    def __init__(self, root: str, container: str, public_base_url: str):
        super().__init__(container)
        self.root = Path(root)
        self.directory = self.root / container
        self.public_base_url = public_base_url.rstrip("/")

    def create_if_not_exists(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def url_for(self, name: str) -> str:
        return f"{self.public_base_url}/{self.container}/{quote(name)}"

    def upload(self, filename: str, data: bytes) -> str:
        name = self.unique_name(filename)
        try:
            self.create_if_not_exists()
            (self.directory / name).write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to upload {filename} to '{self.container}'") from e
        logger.info(f"Stored blob {self.container}/{name} ({content_type_for(filename)}, {len(data)} bytes)")
        return self.url_for(name)

    def delete(self, url: str) -> bool:
        name = blob_name_from_url(url)
        if not name:
            return False
        path = self.directory / name
        if not path.is_file():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete {name} from '{self.container}'") from e
        logger.info(f"Deleted blob {self.container}/{name}")
        return True

    def exists(self, url: str) -> bool:
        name = blob_name_from_url(url)
        return bool(name) and (self.directory / name).is_file()

    def list_urls(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        return [self.url_for(p.name) for p in sorted(self.directory.iterdir()) if p.is_file()]


class S3BlobStore(BlobStore):
    """
    Blob container stored as an S3 bucket (or any S3-compatible endpoint).

    Args:
        client: boto3 S3 client
        container: Bucket name
        public_base_url: Base URL for public links; defaults to the client's endpoint
        region: Region used when the bucket has to be created
    """

    NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound", "NoSuchBucket")

    def __init__(self, client, container: str, public_base_url: Optional[str] = None, region: str = "us-east-1"):
        super().__init__(container)
        self.client = client
        self.region = region
        base = public_base_url or client.meta.endpoint_url
        self.public_base_url = base.rstrip("/")

    def create_if_not_exists(self) -> None:
        try:
            self.client.head_bucket(Bucket=self.container)
            return
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") not in self.NOT_FOUND_CODES:
                raise StorageError(f"Failed to check bucket '{self.container}'") from e
        kwargs = {"Bucket": self.container}
        if self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self.client.create_bucket(**kwargs)
        except ClientError as e:
            raise StorageError(f"Failed to create bucket '{self.container}'") from e
        logger.info(f"Created bucket '{self.container}'")

    def url_for(self, name: str) -> str:
        return f"{self.public_base_url}/{self.container}/{quote(name)}"

    def upload(self, filename: str, data: bytes) -> str:
        name = self.unique_name(filename)
        try:
            self.client.put_object(
                Bucket=self.container,
                Key=name,
                Body=data,
                ContentType=content_type_for(filename),
            )
        except ClientError as e:
            raise StorageError(f"Failed to upload {filename} to '{self.container}'") from e
        logger.info(f"Stored blob {self.container}/{name}")
        return self.url_for(name)

    def exists(self, url: str) -> bool:
        name = blob_name_from_url(url)
        if not name:
            return False
        try:
            self.client.head_object(Bucket=self.container, Key=name)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in self.NOT_FOUND_CODES:
                return False
            raise StorageError(f"Failed to look up {name} in '{self.container}'") from e

    def delete(self, url: str) -> bool:
        if not self.exists(url):
            return False
        name = blob_name_from_url(url)
        try:
            self.client.delete_object(Bucket=self.container, Key=name)
        except ClientError as e:
            raise StorageError(f"Failed to delete {name} from '{self.container}'") from e
        logger.info(f"Deleted blob {self.container}/{name}")
        return True

    def list_urls(self) -> List[str]:
        urls = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.container):
                for item in page.get("Contents", []):
                    urls.append(self.url_for(item["Key"]))
        except ClientError as e:
            raise StorageError(f"Failed to list '{self.container}'") from e
        return urls


def build_blob_store(settings, container: str) -> BlobStore:
    """
    Build the blob store for ``container`` from settings.

    Args:
        settings: Service settings (``blob_backend`` selects "local" or "s3")
        container: Container name

    Returns:
        A provisioned BlobStore
    """
    if settings.blob_backend == "s3":
        import boto3

        client = boto3.client("s3", region_name=settings.aws_region, endpoint_url=settings.s3_endpoint_url)
        store = S3BlobStore(client, container, region=settings.aws_region)
    else:
        store = LocalBlobStore(settings.blob_root, container, settings.public_base_url)
    store.create_if_not_exists()
    return store
