import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol
from urllib.parse import quote

from google.api_core import exceptions as gapi_exceptions
from google.cloud import storage

from ..errors import ObjectNotFound, StoreError, StoreUnavailable

logger = logging.getLogger(__name__)

PUBLIC_BASE = "https://storage.googleapis.com"


@dataclass(frozen=True)
class StoredObject:
    key: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    content_type: Optional[str] = None
    size: Optional[int] = None


class ObjectStore(Protocol):
    def list_by_prefix(self, prefix: str) -> List[StoredObject]: ...

    def get_metadata(self, key: str) -> StoredObject: ...

    def delete(self, key: str) -> bool: ...

    def save(self, key: str, data: bytes, content_type: str) -> StoredObject: ...

    def make_public(self, key: str) -> str: ...

    def public_url(self, key: str) -> str: ...


def _to_stored(blob) -> StoredObject:
    return StoredObject(
        key=blob.name,
        created_at=blob.time_created,
        updated_at=blob.updated,
        content_type=blob.content_type,
        size=blob.size,
    )


# Errors that mean "could not talk to GCS" rather than "GCS said no".
_TRANSIENT = (
    gapi_exceptions.ServiceUnavailable,
    gapi_exceptions.InternalServerError,
    gapi_exceptions.GatewayTimeout,
    gapi_exceptions.TooManyRequests,
    gapi_exceptions.RetryError,
    ConnectionError,
    TimeoutError,
)


class GCSObjectStore:
    """ObjectStore backed by a single Google Cloud Storage bucket."""

    def __init__(self, bucket_name: str, client: Optional[storage.Client] = None):
        self.bucket_name = bucket_name
        self._client = client or storage.Client()
        self._bucket = self._client.bucket(bucket_name)

    def list_by_prefix(self, prefix: str) -> List[StoredObject]:
        try:
            return [_to_stored(b) for b in self._client.list_blobs(self._bucket, prefix=prefix)]
        except _TRANSIENT as e:
            raise StoreUnavailable(str(e)) from e
        except gapi_exceptions.GoogleAPICallError as e:
            raise StoreError(str(e)) from e

    def get_metadata(self, key: str) -> StoredObject:
        try:
            blob = self._bucket.get_blob(key)
        except _TRANSIENT as e:
            raise StoreUnavailable(str(e)) from e
        except gapi_exceptions.GoogleAPICallError as e:
            raise StoreError(str(e)) from e
        if blob is None:
            raise ObjectNotFound(key)
        return _to_stored(blob)

    def delete(self, key: str) -> bool:
        try:
            self._bucket.blob(key).delete()
        except gapi_exceptions.NotFound:
            logger.debug("gs://%s/%s already deleted", self.bucket_name, key)
            return False
        except _TRANSIENT as e:
            raise StoreUnavailable(str(e)) from e
        except gapi_exceptions.GoogleAPICallError as e:
            raise StoreError(str(e)) from e
        return True

    def save(self, key: str, data: bytes, content_type: str) -> StoredObject:
        blob = self._bucket.blob(key)
        try:
            blob.upload_from_string(data, content_type=content_type)
        except _TRANSIENT as e:
            raise StoreUnavailable(str(e)) from e
        except gapi_exceptions.GoogleAPICallError as e:
            raise StoreError(str(e)) from e
        logger.info("Uploaded to gs://%s/%s (%d bytes)", self.bucket_name, key, len(data))
        return _to_stored(blob)

    def make_public(self, key: str) -> str:
        try:
            self._bucket.blob(key).make_public()
        except gapi_exceptions.NotFound:
            raise ObjectNotFound(key)
        except gapi_exceptions.GoogleAPICallError as e:
            # uniform bucket-level access rejects object ACLs; the bucket
            # policy decides visibility in that case
            logger.warning("make_public failed for %s: %s", key, e)
        return self.public_url(key)

    def public_url(self, key: str) -> str:
        return f"{PUBLIC_BASE}/{self.bucket_name}/{quote(key)}"


def gcs_uri_to_url(uri: str) -> str:
    """gs://bucket/obj -> public https URL; anything else is returned unchanged."""
    if not uri.startswith("gs://"):
        return uri
    bucket, _, obj = uri[len("gs://"):].partition("/")
    if not bucket or not obj:
        return uri
    return f"{PUBLIC_BASE}/{bucket}/{quote(obj)}"
