"""S3-compatible storage backend for flatdav.

Proxies every operation to an upstream bucket via aiobotocore. Works
with AWS S3 and with S3-compatible services (Cloudflare R2, MinIO) by
setting ``endpoint_url``.

Key mapping:
    Objects:  {prefix}{key}

Listings use the upstream ``ListObjectsV2`` delimiter support directly
and follow continuation tokens until the listing is complete. Ranged
reads are served natively with the upstream ``Range`` header.

Credentials are resolved via the standard AWS credential chain
(env vars, ~/.aws/credentials, IAM role, etc.) unless given explicitly.
"""

import hashlib
import logging
from datetime import datetime, timezone

from aiobotocore.session import AioSession
from botocore.exceptions import ClientError

from flatdav.mime import resolve_content_type
from flatdav.storage.models import DIRECTORY_CONTENT_TYPE, SEPARATOR, Listing, StoredObject

logger = logging.getLogger(__name__)

_MISSING_CODES = ("NoSuchKey", "404", "NotFound")


def _strip_etag(etag: str) -> str:
    return etag.strip().strip('"')


class S3ObjectStore:
    """Object store backed by an upstream S3-compatible bucket.

    Attributes:
        bucket_name: The upstream bucket name.
        region: The region for the bucket.
        prefix: Key prefix namespacing all objects in the upstream bucket.
    """

    def __init__(
        self,
        bucket_name: str,
        region: str = "us-east-1",
        prefix: str = "",
        endpoint_url: str = "",
        use_path_style: bool = False,
        access_key_id: str = "",
        secret_access_key: str = "",
    ) -> None:
        self.bucket_name = bucket_name
        self.region = region
        self.prefix = prefix
        self.endpoint_url = endpoint_url
        self.use_path_style = use_path_style
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self._session = AioSession()
        self._client = None
        self._client_ctx = None

    def _s3_key(self, key: str) -> str:
        """Map a flatdav key to an upstream S3 key."""
        return f"{self.prefix}{key}"

    def _local_key(self, s3_key: str) -> str:
        """Map an upstream S3 key back to a flatdav key."""
        return s3_key[len(self.prefix):]

    async def init(self) -> None:
        """Create the aiobotocore S3 client and verify the upstream bucket exists.

        Raises:
            ValueError: If the upstream bucket does not exist or is inaccessible.
        """
        client_kwargs: dict = {"region_name": self.region}
        if self.endpoint_url:
            client_kwargs["endpoint_url"] = self.endpoint_url
        if self.use_path_style:
            from botocore.config import Config as BotoConfig

            client_kwargs["config"] = BotoConfig(s3={"addressing_style": "path"})

        # Use explicit credentials if provided, otherwise fall back to chain
        if self.access_key_id and self.secret_access_key:
            session = AioSession()
            session.set_credentials(self.access_key_id, self.secret_access_key)
            self._session = session
        self._client_ctx = self._session.create_client("s3", **client_kwargs)
        self._client = await self._client_ctx.__aenter__()

        try:
            await self._client.head_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None
            raise ValueError(
                f"Cannot access upstream S3 bucket '{self.bucket_name}': {code}"
            ) from e

        logger.info(
            "S3 object store initialized: bucket=%s region=%s prefix='%s' endpoint=%s",
            self.bucket_name,
            self.region,
            self.prefix,
            self.endpoint_url or "default",
        )

    async def close(self) -> None:
        """Close the aiobotocore client session."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None

    def _object_from_response(self, key: str, resp: dict, body: bytes = b"") -> StoredObject:
        """Build a StoredObject from a head_object/get_object response.

        For ranged reads the total size comes from ``ContentRange``
        (``bytes start-end/total``) rather than ``ContentLength``.
        """
        size = resp.get("ContentLength", 0)
        content_range = resp.get("ContentRange")
        if content_range and "/" in content_range:
            size = int(content_range.rsplit("/", 1)[1])
        return StoredObject(
            key=key,
            size=size,
            etag=_strip_etag(resp.get("ETag", "")),
            content_type=resp.get("ContentType") or resolve_content_type(key),
            uploaded_at=resp.get("LastModified") or datetime.now(timezone.utc),
            body=body,
        )

    async def head(self, key: str) -> StoredObject | None:
        try:
            resp = await self._client.head_object(
                Bucket=self.bucket_name, Key=self._s3_key(key)
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _MISSING_CODES:
                return None
            raise
        return self._object_from_response(key, resp)

    async def get(
        self, key: str, byte_range: tuple[int, int] | None = None
    ) -> StoredObject | None:
        """Download an object, asking upstream for just the slice when ranged."""
        kwargs: dict = {"Bucket": self.bucket_name, "Key": self._s3_key(key)}
        if byte_range is not None:
            start, end = byte_range
            kwargs["Range"] = f"bytes={start}-{end}"

        try:
            resp = await self._client.get_object(**kwargs)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _MISSING_CODES:
                return None
            raise

        async with resp["Body"] as stream:
            body = await stream.read()
        return self._object_from_response(key, resp, body=body)

    async def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        """Upload an object to the upstream bucket.

        Computes MD5 locally for a consistent ETag (upstream may differ with SSE).
        """
        await self._client.put_object(
            Bucket=self.bucket_name,
            Key=self._s3_key(key),
            Body=data,
            ContentType=content_type,
        )
        return StoredObject(
            key=key,
            size=len(data),
            etag=hashlib.md5(data).hexdigest(),
            content_type=content_type,
            uploaded_at=datetime.now(timezone.utc),
        )

    async def delete(self, key: str) -> None:
        """Delete an object from the upstream bucket.

        Idempotent: S3 delete_object does not error on missing keys.
        """
        await self._client.delete_object(Bucket=self.bucket_name, Key=self._s3_key(key))

    async def list(self, prefix: str, delimiter: str = "") -> Listing:
        """List objects via paginated ListObjectsV2.

        ListObjectsV2 does not return content types, so they are derived
        from each key's extension.
        """
        kwargs: dict = {"Bucket": self.bucket_name, "Prefix": self._s3_key(prefix)}
        if delimiter:
            kwargs["Delimiter"] = delimiter

        listing = Listing()
        paginator = self._client.get_paginator("list_objects_v2")
        async for page in paginator.paginate(**kwargs):
            for entry in page.get("Contents", []):
                key = self._local_key(entry["Key"])
                listing.objects.append(
                    StoredObject(
                        key=key,
                        size=entry.get("Size", 0),
                        etag=_strip_etag(entry.get("ETag", "")),
                        content_type=(
                            DIRECTORY_CONTENT_TYPE
                            if key.endswith(SEPARATOR)
                            else resolve_content_type(key)
                        ),
                        uploaded_at=entry.get("LastModified") or datetime.now(timezone.utc),
                    )
                )
            for cp in page.get("CommonPrefixes", []):
                listing.common_prefixes.append(self._local_key(cp["Prefix"]))

        listing.common_prefixes.sort()
        return listing
