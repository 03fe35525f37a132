from __future__ import annotations
import io
import uuid
from functools import lru_cache
from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError as UrllibHTTPError
from challengers.config import settings
from challengers.errors import StorageFailure
from challengers.services.media import ext_for_mime

def _parse_endpoint(ep: str) -> tuple[str, bool]:
    # Return (host:port, secure)
    secure = ep.startswith("https://")
    host = ep.replace("http://", "").replace("https://", "")
    return host, secure

class AssetStore:
    """Binary object store for challenge images, example photos and check photos."""

    def store(self, data: bytes, content_type: str, prefix: str = "uploads") -> str:
        raise NotImplementedError

    def store_many(self, items: list[tuple[bytes, str]], prefix: str = "uploads") -> list[str]:
        urls: list[str] = []
        try:
            for data, content_type in items:
                urls.append(self.store(data, content_type, prefix))
        except StorageFailure:
            # all or nothing: drop what already landed
            self.delete_many(urls)
            raise
        return urls

    def delete(self, url: str) -> None:
        raise NotImplementedError

    def delete_many(self, urls: list[str]) -> None:
        for url in urls:
            self.delete(url)

class MinioAssetStore(AssetStore):
    def __init__(self, client: Minio, bucket: str, public_base_url: str):
        self._client = client
        self._bucket = bucket
        self._base = f"{public_base_url.rstrip('/')}/{bucket}/"
        self._bucket_checked = False

    @classmethod
    def from_settings(cls) -> "MinioAssetStore":
        host, secure = _parse_endpoint(settings.s3_endpoint)
        client = Minio(host, access_key=settings.s3_access_key, secret_key=settings.s3_secret_key, secure=secure)
        return cls(client, settings.s3_bucket_uploads, settings.s3_public_base_url)

    def _ensure_bucket(self) -> None:
        if self._bucket_checked:
            return
        try:
            if not self._client.bucket_exists(self._bucket):
                self._client.make_bucket(self._bucket)
        except S3Error as e:
            # concurrent creators race on make_bucket
            if e.code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                raise StorageFailure(f"Bucket check failed: {e.code}") from e
        self._bucket_checked = True

    def key_for(self, url: str) -> str | None:
        if not url.startswith(self._base):
            return None
        return url[len(self._base):]

    def store(self, data: bytes, content_type: str, prefix: str = "uploads") -> str:
        self._ensure_bucket()
        key = f"{prefix}/{uuid.uuid4().hex}.{ext_for_mime(content_type)}"
        try:
            self._client.put_object(
                self._bucket, key, io.BytesIO(data), length=len(data), content_type=content_type
            )
        except (S3Error, UrllibHTTPError) as e:
            raise StorageFailure(f"Upload failed for {key}") from e
        return self._base + key

    def delete(self, url: str) -> None:
        key = self.key_for(url)
        if key is None:
            # default images and foreign urls are not ours to delete
            return
        try:
            self._client.remove_object(self._bucket, key)
        except (S3Error, UrllibHTTPError) as e:
            raise StorageFailure(f"Delete failed for {key}") from e

@lru_cache(maxsize=1)
def get_asset_store() -> AssetStore:
    return MinioAssetStore.from_settings()
