"""
S3 storage backend.

Translates the generic Storage contract into boto3 calls. Works with AWS
and with any S3-compatible service (MinIO, R2, Ceph) through
``endpoint_url`` and ``force_path_style``.

The backend holds no mutable state after construction, so one instance
can be shared across threads. Retries and timeouts are botocore's job;
failures surface immediately as StorageError subclasses with the
botocore exception chained.
"""

import logging
from contextlib import closing, contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import islice
from typing import Any, Callable, Iterator, Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

import boto3
from boto3.exceptions import Boto3Error
from boto3.s3.transfer import TransferConfig
from botocore import UNSIGNED, xform_name
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
    PartialCredentialsError,
)

from ...core.content_disposition import content_disposition, encode_content_disposition
from ...core.errors import AccessDenied, InvalidKey, ObjectNotFound, StorageError, TransportError
from ...core.storage import PresignedPost, UploadedFile, UploadSource

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600

# S3 accepts up to 1000 keys per DeleteObjects request
DELETE_BATCH_SIZE = 1000

MULTIPART_THRESHOLD = {
    "upload": 15 * 1024 * 1024,
    "copy": 100 * 1024 * 1024,
}

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_ACCESS_DENIED_CODES = {
    "403",
    "AccessDenied",
    "Forbidden",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "InvalidToken",
}
_TRANSPORT_CODES = {"RequestTimeout", "SlowDown", "ServiceUnavailable", "InternalError"}

# Headers that CopyObject only applies with MetadataDirective=REPLACE
_OBJECT_HEADERS = (
    "CacheControl",
    "ContentDisposition",
    "ContentEncoding",
    "ContentLanguage",
    "ContentType",
    "Expires",
    "Metadata",
)

# Presigned POST form field names, keyed by upload option name
_POST_FIELDS = {
    "acl": "acl",
    "cache_control": "Cache-Control",
    "content_disposition": "Content-Disposition",
    "content_encoding": "Content-Encoding",
    "content_language": "Content-Language",
    "content_type": "Content-Type",
    "expires": "Expires",
    "server_side_encryption": "x-amz-server-side-encryption",
    "ssekms_key_id": "x-amz-server-side-encryption-aws-kms-key-id",
    "storage_class": "x-amz-storage-class",
    "success_action_redirect": "success_action_redirect",
    "success_action_status": "success_action_status",
    "tagging": "tagging",
    "website_redirect_location": "x-amz-website-redirect-location",
}


@dataclass(frozen=True)
class S3Config:
    """
    Configuration for S3-compatible storage.

    Credentials left as None fall through to boto3's default chain
    (environment, shared config, instance profile).
    """
    bucket: str
    region: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    prefix: Optional[str] = None
    endpoint_url: Optional[str] = None
    force_path_style: bool = False
    public: bool = False
    host: Optional[str] = None
    upload_options: Mapping[str, Any] = field(default_factory=dict)
    multipart_threshold: Mapping[str, int] = field(default_factory=dict)
    signer: Optional[Callable[..., str]] = None


def _error_class(code: str) -> type[StorageError]:
    if code in _NOT_FOUND_CODES:
        return ObjectNotFound
    if code in _ACCESS_DENIED_CODES:
        return AccessDenied
    if code in _TRANSPORT_CODES:
        return TransportError
    return StorageError


@contextmanager
def _translate_errors(operation: str, key: Optional[str] = None) -> Iterator[None]:
    """Re-raise botocore/boto3 failures as StorageError subclasses."""
    try:
        yield
    except ClientError as e:
        error = e.response.get("Error", {})
        code = str(error.get("Code", ""))
        message = error.get("Message") or str(e)
        error_class = _error_class(code)
        if error_class is not ObjectNotFound:
            logger.error(
                "S3 operation failed",
                extra={"operation": operation, "key": key, "code": code, "error": message},
            )
        raise error_class(f"{operation} failed: {message}", key=key, code=code) from e
    except (NoCredentialsError, PartialCredentialsError) as e:
        logger.error("S3 operation failed", extra={"operation": operation, "key": key, "error": str(e)})
        raise AccessDenied(f"{operation} failed: {e}", key=key) from e
    except (BotoConnectionError, HTTPClientError) as e:
        logger.error("S3 operation failed", extra={"operation": operation, "key": key, "error": str(e)})
        raise TransportError(f"{operation} failed: {e}", key=key) from e
    except (BotoCoreError, Boto3Error) as e:
        logger.error("S3 operation failed", extra={"operation": operation, "key": key, "error": str(e)})
        raise StorageError(f"{operation} failed: {e}", key=key) from e


def _batched(iterable, size: int) -> Iterator[list]:
    iterator = iter(iterable)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch


class S3Storage:
    """
    Storage backend for Amazon S3 and S3-compatible services.

    ``client``, ``bucket`` and ``prefix`` are exposed as-is for callers
    that need to go beyond the Storage contract.
    """

    def __init__(self, config: S3Config) -> None:
        self._config = config

        session = boto3.session.Session(
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            aws_session_token=config.session_token,
            region_name=config.region,
        )

        # Virtual-hosted addressing unless told otherwise, also for custom
        # endpoints, so presigned URLs target "<bucket>.<endpoint host>".
        boto_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": "path" if config.force_path_style else "virtual"},
        )

        resource = session.resource("s3", endpoint_url=config.endpoint_url, config=boto_config)
        self.client = resource.meta.client
        self.bucket = resource.Bucket(config.bucket)
        self.prefix = config.prefix

        self._unsigned_client = session.client(
            "s3",
            endpoint_url=config.endpoint_url,
            config=boto_config.merge(Config(signature_version=UNSIGNED)),
        )

        self.host = config.host
        self.public = config.public
        self.signer = config.signer
        self.upload_options = dict(config.upload_options)
        self.multipart_threshold = {**MULTIPART_THRESHOLD, **config.multipart_threshold}

        self._parameters = {
            operation: self._parameter_names(operation)
            for operation in ("PutObject", "CopyObject", "GetObject")
        }

        logger.info(
            "Initialized S3 storage",
            extra={
                "bucket": config.bucket,
                "prefix": config.prefix,
                "endpoint": config.endpoint_url,
            }
        )

    # -----------------------------------------------------------------------
    # Storage contract
    # -----------------------------------------------------------------------

    def upload(
        self,
        io: UploadSource,
        key: str,
        metadata: Optional[dict[str, Any]] = None,
        **upload_options: Any,
    ) -> None:
        """
        Upload ``io`` to ``key``.

        ``metadata`` hints (``mime_type``, ``filename``) become the object's
        Content-Type and Content-Disposition. Configured upload options
        override them, and ``upload_options`` passed here override both.
        Files already stored in this bucket are copied server-side.
        """
        if metadata is None and isinstance(io, UploadedFile):
            metadata = io.metadata
        metadata = metadata or {}

        options: dict[str, Any] = {}
        mime_type = metadata.get("mime_type") or metadata.get("content_type")
        if mime_type:
            options["content_type"] = mime_type
        if metadata.get("filename"):
            options["content_disposition"] = content_disposition("inline", metadata["filename"])
        if self.public:
            options["acl"] = "public-read"
        options.update(self.upload_options)
        options.update(upload_options)

        if options.get("content_disposition"):
            options["content_disposition"] = encode_content_disposition(options["content_disposition"])

        if self.copyable(io):
            self._copy(io, key, options)
        else:
            self._put(io, key, options)

    def download(self, key: str, **options: Any):
        """
        Open the object as a stream.

        Returns botocore's StreamingBody, which reads lazily; close it to
        release the connection. Options map to GetObject parameters
        (e.g. ``range="bytes=0-99"``).
        """
        params = self._boto_params("GetObject", options)
        with _translate_errors("download", key):
            response = self.client.get_object(
                Bucket=self.bucket.name,
                Key=self.object_key(key),
                **params,
            )
        return response["Body"]

    def exists(self, key: str) -> bool:
        try:
            with _translate_errors("exists", key):
                self.client.head_object(Bucket=self.bucket.name, Key=self.object_key(key))
        except ObjectNotFound:
            return False
        return True

    def delete(self, key: str) -> None:
        with _translate_errors("delete", key):
            self.client.delete_object(Bucket=self.bucket.name, Key=self.object_key(key))

        logger.debug("Deleted object", extra={"key": key})

    def clear(self, older_than: Optional[datetime] = None) -> None:
        """
        Delete all objects under the prefix.

        With ``older_than``, only objects last modified before that moment
        are deleted. Naive datetimes are taken as UTC.
        """
        if older_than is not None and older_than.tzinfo is None:
            older_than = older_than.replace(tzinfo=timezone.utc)

        keys = (
            obj["Key"]
            for obj in self._iter_objects()
            if older_than is None or obj["LastModified"] < older_than
        )

        count = 0
        for batch in _batched(keys, DELETE_BATCH_SIZE):
            with _translate_errors("clear"):
                response = self.client.delete_objects(
                    Bucket=self.bucket.name,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
                )

            errors = response.get("Errors") or []
            if errors:
                first = errors[0]
                logger.error(
                    "Failed to delete objects",
                    extra={"failed": len(errors), "key": first.get("Key"), "code": first.get("Code")}
                )
                raise _error_class(first.get("Code", ""))(
                    f"clear failed for {len(errors)} object(s): {first.get('Message')}",
                    key=first.get("Key"),
                    code=first.get("Code"),
                )

            count += len(batch)

        logger.info(
            "Cleared objects",
            extra={"bucket": self.bucket.name, "prefix": self.prefix, "count": count}
        )

    def iter_keys(self) -> Iterator[str]:
        """Lazily yield stored keys, with the prefix stripped."""
        for obj in self._iter_objects():
            yield self._strip_prefix(obj["Key"])

    def url(
        self,
        key: str,
        download: bool = False,
        public: Optional[bool] = None,
        host: Optional[str] = None,
        **options: Any,
    ) -> str:
        """
        Build a URL for the object.

        Signed (GetObject presign) by default; unsigned when ``public``.
        ``download`` forces an attachment Content-Disposition, ``host``
        swaps scheme and host (e.g. for a CDN). Remaining options are
        ``expires_in`` and GetObject parameters such as
        ``response_content_type``.
        """
        if download:
            options.setdefault("response_content_disposition", "attachment")
        if options.get("response_content_disposition"):
            options["response_content_disposition"] = encode_content_disposition(
                options["response_content_disposition"]
            )

        public = self.public if public is None else public
        host = host or self.host
        object_key = self.object_key(key)

        if self.signer is not None:
            url = self.signer(self._public_url(object_key), **options)
        elif public:
            options.pop("expires_in", None)
            url = self._public_url(object_key, options)
        else:
            expires_in = options.pop("expires_in", DEFAULT_EXPIRES_IN)
            params = self._boto_params("GetObject", options)
            with _translate_errors("url", key):
                url = self.client.generate_presigned_url(
                    "get_object",
                    Params={"Bucket": self.bucket.name, "Key": object_key, **params},
                    ExpiresIn=expires_in,
                )

        if host:
            url = self._rewrite_host(url, host)

        return url

    def presign(self, key: str, **options: Any) -> PresignedPost:
        """
        Generate a presigned POST for uploading directly to ``key``.

        Options are configured upload options overridden by the ones
        passed here; an explicit empty value still wins over a default.
        """
        options = {**({"acl": "public-read"} if self.public else {}), **self.upload_options, **options}
        expires_in = options.pop("expires_in", DEFAULT_EXPIRES_IN)
        content_length_range = options.pop("content_length_range", None)

        if options.get("content_disposition"):
            options["content_disposition"] = encode_content_disposition(options["content_disposition"])

        fields: dict[str, Any] = {}
        for name, value in options.items():
            if name == "metadata":
                for meta_name, meta_value in value.items():
                    fields[f"x-amz-meta-{meta_name}"] = meta_value
            else:
                fields[_POST_FIELDS.get(name, name)] = value

        conditions: list[Any] = [{name: value} for name, value in fields.items()]
        if content_length_range is not None:
            low, high = content_length_range
            conditions.append(["content-length-range", low, high])

        with _translate_errors("presign", key):
            post = self.client.generate_presigned_post(
                Bucket=self.bucket.name,
                Key=self.object_key(key),
                Fields=fields,
                Conditions=conditions,
                ExpiresIn=expires_in,
            )

        return PresignedPost(url=post["url"], fields=post["fields"])

    # -----------------------------------------------------------------------
    # Escape hatches
    # -----------------------------------------------------------------------

    def object(self, key: str):
        """Return the boto3 ``s3.Object`` resource for ``key`` (prefix applied)."""
        return self.bucket.Object(self.object_key(key))

    def object_key(self, key: str) -> str:
        if not key:
            raise InvalidKey("key must be a non-empty string", key=key)
        return f"{self.prefix}/{key}" if self.prefix else key

    def copyable(self, io: Any) -> bool:
        """True if ``io`` is a file stored in this same bucket."""
        return (
            isinstance(io, UploadedFile)
            and isinstance(io.storage, S3Storage)
            and io.storage.bucket.name == self.bucket.name
        )

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _put(self, io: UploadSource, key: str, options: dict[str, Any]) -> None:
        if isinstance(io, UploadedFile):
            with closing(io.open()) as stream:
                self._upload_stream(stream, key, options)
        else:
            self._upload_stream(io, key, options)

    def _upload_stream(self, stream, key: str, options: dict[str, Any]) -> None:
        # upload_fileobj streams in parts above the threshold, so the size
        # of the source never needs to be known up front
        transfer_config = TransferConfig(multipart_threshold=self.multipart_threshold["upload"])
        extra_args = self._boto_params("PutObject", options)

        with _translate_errors("upload", key):
            self.client.upload_fileobj(
                stream,
                self.bucket.name,
                self.object_key(key),
                ExtraArgs=extra_args or None,
                Config=transfer_config,
            )

        logger.debug("Uploaded object", extra={"key": key})

    def _copy(self, io: UploadedFile, key: str, options: dict[str, Any]) -> None:
        copy_source = {"Bucket": io.storage.bucket.name, "Key": io.storage.object_key(io.id)}
        extra_args = self._boto_params("CopyObject", options)

        # Replacing headers drops every header not given, so start from
        # the source's own headers.
        if any(name in extra_args for name in _OBJECT_HEADERS):
            extra_args = {
                **self._source_headers(copy_source),
                **extra_args,
                "MetadataDirective": "REPLACE",
            }

        transfer_config = TransferConfig(multipart_threshold=self.multipart_threshold["copy"])
        with _translate_errors("copy", key):
            self.client.copy(
                copy_source,
                self.bucket.name,
                self.object_key(key),
                ExtraArgs=extra_args or None,
                Config=transfer_config,
            )

        logger.debug("Copied object", extra={"source": copy_source["Key"], "key": key})

    def _source_headers(self, copy_source: dict[str, str]) -> dict[str, Any]:
        with _translate_errors("copy", copy_source["Key"]):
            response = self.client.head_object(**copy_source)
        return {name: response[name] for name in _OBJECT_HEADERS if response.get(name)}

    def _iter_objects(self) -> Iterator[dict[str, Any]]:
        params = {"Bucket": self.bucket.name}
        if self.prefix:
            params["Prefix"] = f"{self.prefix}/"

        paginator = self.client.get_paginator("list_objects_v2")
        with _translate_errors("list"):
            for page in paginator.paginate(**params):
                yield from page.get("Contents", [])

    def _strip_prefix(self, object_key: str) -> str:
        if self.prefix and object_key.startswith(f"{self.prefix}/"):
            return object_key[len(self.prefix) + 1:]
        return object_key

    def _public_url(self, object_key: str, options: Optional[dict[str, Any]] = None) -> str:
        params = self._boto_params("GetObject", options or {})
        with _translate_errors("url", object_key):
            return self._unsigned_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket.name, "Key": object_key, **params},
            )

    def _rewrite_host(self, url: str, host: str) -> str:
        parts = urlsplit(url)
        path = parts.path

        # Path-style URLs carry the bucket as the first path segment;
        # virtual-hosted ones carry it as the first label of the endpoint host.
        bucket = self.bucket.name
        endpoint_host = urlsplit(self.client.meta.endpoint_url).hostname or ""
        virtual_hosted = parts.hostname == f"{bucket}.{endpoint_host}"
        if not virtual_hosted and (path == f"/{bucket}" or path.startswith(f"/{bucket}/")):
            path = path[len(bucket) + 1:]

        host_parts = urlsplit(host)
        return urlunsplit((
            host_parts.scheme,
            host_parts.netloc,
            host_parts.path.rstrip("/") + path,
            parts.query,
            "",
        ))

    def _parameter_names(self, operation: str) -> dict[str, str]:
        shape = self.client.meta.service_model.operation_model(operation).input_shape
        return {xform_name(name): name for name in shape.members}

    def _boto_params(self, operation: str, options: Mapping[str, Any]) -> dict[str, Any]:
        """Map snake_case option names to boto3 parameter names."""
        names = self._parameters[operation]
        return {names.get(name, name): value for name, value in options.items()}
