"""
Blob stores for original documents and per-chunk text.

Keys look like "{document_id}/original.txt" and "{document_id}/chunk_{i}.txt".
Three backends: a Postgres table (default), an S3-compatible bucket (AWS S3,
Cloudflare R2, MinIO) and an in-process dict for local runs and tests.
"""
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import ClientError
from sqlalchemy import select, delete
from sqlalchemy.orm import sessionmaker

from ..models import BlobRecord
from ..utils.helpers import PendingCalls, collapse_keys


class MemoryBlobStore:
    def __init__(self):
        self._blobs: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    async def put(self, key: str, content: str) -> None:
        self._blobs[key] = content

    async def delete(self, key: str) -> None:
        self._blobs.pop(key, None)

    async def list(self, prefix: str = "", delimiter: Optional[str] = None) -> List[str]:
        return collapse_keys(list(self._blobs), prefix, delimiter)

    async def wait_pending(self) -> None:
        return None


class SqlBlobStore:
    """Blob store backed by the `blobs` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._calls = PendingCalls()

    def _get(self, key: str) -> Optional[str]:
        with self._session_factory() as db:
            return db.execute(
                select(BlobRecord.content).where(BlobRecord.key == key)
            ).scalar_one_or_none()

    def _put(self, key: str, content: str) -> None:
        with self._session_factory() as db, db.begin():
            db.merge(BlobRecord(key=key, content=content))

    def _delete(self, key: str) -> None:
        with self._session_factory() as db, db.begin():
            db.execute(delete(BlobRecord).where(BlobRecord.key == key))

    def _list(self, prefix: str, delimiter: Optional[str]) -> List[str]:
        stmt = select(BlobRecord.key)
        if prefix:
            stmt = stmt.where(BlobRecord.key.startswith(prefix, autoescape=True))
        with self._session_factory() as db:
            keys = db.execute(stmt).scalars().all()
        return collapse_keys(keys, prefix, delimiter)

    async def get(self, key: str) -> Optional[str]:
        return await self._calls.run(self._get, key)

    async def put(self, key: str, content: str) -> None:
        await self._calls.run(self._put, key, content)

    async def delete(self, key: str) -> None:
        await self._calls.run(self._delete, key)

    async def list(self, prefix: str = "", delimiter: Optional[str] = None) -> List[str]:
        return await self._calls.run(self._list, prefix, delimiter)

    async def wait_pending(self) -> None:
        await self._calls.wait()


class S3BlobStore:
    """Blob store backed by an S3-compatible bucket."""

    def __init__(self, bucket: str, region: str = "auto", endpoint_url: Optional[str] = None, client=None) -> None:
        """
        Args:
            bucket: Bucket name
            region: Region name ("auto" for Cloudflare R2)
            endpoint_url: Custom endpoint for S3-compatible services
            client: Pre-built boto3 S3 client (tests)
        """
        if not bucket:
            raise RuntimeError("S3_BUCKET is not set")
        self._bucket = bucket
        self._s3_client = client or boto3.client("s3", region_name=region, endpoint_url=endpoint_url)
        self._calls = PendingCalls()

    def _get(self, key: str) -> Optional[str]:
        try:
            obj = self._s3_client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            raise
        return obj["Body"].read().decode("utf-8")

    def _put(self, key: str, content: str) -> None:
        self._s3_client.put_object(
            Bucket=self._bucket,
            Key=key,
            Body=content.encode("utf-8"),
            ContentType="text/plain; charset=utf-8",
        )

    def _delete(self, key: str) -> None:
        self._s3_client.delete_object(Bucket=self._bucket, Key=key)

    def _list(self, prefix: str, delimiter: Optional[str]) -> List[str]:
        params = {"Bucket": self._bucket, "Prefix": prefix}
        if delimiter:
            params["Delimiter"] = delimiter

        keys = []
        paginator = self._s3_client.get_paginator("list_objects_v2")
        for page in paginator.paginate(**params):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
            keys.extend(p["Prefix"] for p in page.get("CommonPrefixes", []))
        return sorted(set(keys))

    async def get(self, key: str) -> Optional[str]:
        return await self._calls.run(self._get, key)

    async def put(self, key: str, content: str) -> None:
        await self._calls.run(self._put, key, content)

    async def delete(self, key: str) -> None:
        await self._calls.run(self._delete, key)

    async def list(self, prefix: str = "", delimiter: Optional[str] = None) -> List[str]:
        return await self._calls.run(self._list, prefix, delimiter)

    async def wait_pending(self) -> None:
        await self._calls.wait()
