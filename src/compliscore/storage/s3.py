"""
Snapshot store backed by Amazon S3.

Samples are never updated in place: each append writes a new object
under a unique key, so concurrent writers cannot clobber one another.

    <prefix>/snapshots/<framework_id>/<account_id>/<stamp>-<uuid>.json
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Iterator

try:
    import boto3
    from botocore.exceptions import ClientError

    BOTO3_AVAILABLE = True
except ImportError:
    BOTO3_AVAILABLE = False

from compliscore.storage.base import SnapshotStore, TrendSample, to_utc

logger = logging.getLogger(__name__)

_KEY_STAMP = "%Y%m%dT%H%M%S%fZ"


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


class S3SnapshotStore(SnapshotStore):
    """
    Append-only trend history in an S3 bucket.

    Attributes:
        bucket: Bucket holding the snapshot objects
        prefix: Key prefix shared by every object
        region: AWS region of the bucket
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "compliscore",
        region: str = "us-east-1",
    ) -> None:
        """
        Args:
            bucket: Bucket holding the snapshot objects
            prefix: Key prefix (default: "compliscore")
            region: AWS region (default: "us-east-1")

        Raises:
            ImportError: If boto3 is not installed
        """
        if not BOTO3_AVAILABLE:
            raise ImportError(
                "boto3 is required for S3SnapshotStore. Install with: pip install boto3"
            )

        self.bucket = bucket
        self.prefix = prefix.rstrip("/")
        self.region = region
        self._s3: Any = None

    @property
    def client(self) -> Any:
        """Lazily created boto3 S3 client."""
        if self._s3 is None:
            self._s3 = boto3.client("s3", region_name=self.region)
        return self._s3

    def series_prefix(self, framework_id: str, account_id: str) -> str:
        return f"{self.prefix}/snapshots/{framework_id}/{account_id}/"

    def append_assessment_snapshot(
        self,
        framework_id: str,
        account_id: str,
        date: datetime,
        score: float,
    ) -> None:
        sample = TrendSample(date=to_utc(date), score=float(score))
        key = (
            f"{self.series_prefix(framework_id, account_id)}"
            f"{sample.date.strftime(_KEY_STAMP)}-{uuid.uuid4().hex}.json"
        )
        document = {"frameworkId": framework_id, "accountId": account_id, **sample.to_dict()}

        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=json.dumps(document).encode("utf-8"),
                ContentType="application/json",
            )
        except ClientError as e:
            code = _error_code(e)
            if code == "NoSuchBucket":
                raise ValueError(f"Bucket does not exist: {self.bucket}") from e
            self._raise_for_access(e, "writing to", key)
            raise

        logger.debug(f"Wrote snapshot s3://{self.bucket}/{key}")

    def query_snapshots(
        self,
        framework_id: str,
        account_id: str,
        since: datetime | None = None,
    ) -> list[TrendSample]:
        cutoff = to_utc(since) if since else None
        found: list[tuple[datetime, str, TrendSample]] = []

        for key in self._keys_under(self.series_prefix(framework_id, account_id)):
            document = self._fetch(key)
            if document is None:
                continue
            sample = TrendSample.from_dict(document)
            if cutoff is not None and sample.date < cutoff:
                continue
            found.append((sample.date, key, sample))

        # Equal dates fall back to key order
        found.sort(key=lambda entry: entry[:2])
        return [sample for _, _, sample in found]

    def _keys_under(self, prefix: str) -> Iterator[str]:
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    yield obj["Key"]
        except ClientError as e:
            self._raise_for_access(e, "listing", prefix)
            raise

    def _fetch(self, key: str) -> Any | None:
        """Return the parsed object at `key`, or None if it has disappeared."""
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in ("NoSuchKey", "404"):
                return None
            self._raise_for_access(e, "reading", key)
            raise
        return json.loads(response["Body"].read().decode("utf-8"))

    def _raise_for_access(self, error: ClientError, action: str, key: str) -> None:
        if _error_code(error) == "AccessDenied":
            raise PermissionError(
                f"Access denied when {action} s3://{self.bucket}/{key}"
            ) from error
