"""
Direct-to-S3 upload of a local file into an OSS bucket.

Upload steps:

1. Calculate the number of parts of the file. Each part except the last one
   must be at least 5 MB.
2. Request up to 25 signed URLs at a time from
   GET buckets/:bucketKey/objects/:objectKey/signeds3upload?firstPart=<n>&parts=<count>.
   Part numbers start at 1. The first response carries an uploadKey that must
   be sent with every later URL request and with the completion call.
3. PUT each part to its URL. A 403 means the URLs have expired; request new
   ones for the remaining parts and carry on.
4. Complete the upload with POST buckets/:bucketKey/objects/:objectKey/signeds3upload
   within 24 hours, otherwise OSS discards the parts.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from pathlib import Path
from typing import BinaryIO

from forge_oss.config import Config
from forge_oss.errors import OSSError
from forge_oss.errors import ReadError
from forge_oss.errors import SignedUrlExpiredError
from forge_oss.errors import SizeMismatchError
from forge_oss.models import UploadResult
from forge_oss.planning.part_planner import DEFAULT_CHUNK_SIZE
from forge_oss.planning.part_planner import MAX_PARTS_PER_BATCH
from forge_oss.planning.part_planner import BatchPlan
from forge_oss.planning.part_planner import check_partitioning
from forge_oss.planning.part_planner import compute_number_of_batches
from forge_oss.planning.part_planner import compute_total_parts
from forge_oss.planning.part_planner import plan_batches
from forge_oss.retry import RetryPolicy
from forge_oss.services.chunk_transfer import ChunkTransfer
from forge_oss.services.job_id_service import generate_job_id
from forge_oss.services.job_id_service import job_id_context
from forge_oss.services.job_id_service import upload_target_context
from forge_oss.services.signed_url_service import MAX_MINUTES_EXPIRATION
from forge_oss.services.signed_url_service import SignedUrlBatch
from forge_oss.services.signed_url_service import SignedUrlProvider
from forge_oss.utils import redact_url


logger = logging.getLogger(__name__)

FINALIZE_DEADLINE_SECONDS = 24 * 60 * 60
DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclasses.dataclass
class UploadJob:
    """State of one file-to-object upload. Lives for a single upload call."""

    file_path: Path
    bucket_key: str
    object_key: str
    file_size: int
    chunk_size: int
    total_parts: int
    number_of_batches: int
    max_parts_per_batch: int = MAX_PARTS_PER_BATCH
    minutes_expiration: int = MAX_MINUTES_EXPIRATION
    content_type: str = DEFAULT_CONTENT_TYPE
    # Empty until the first signed URL request succeeds, then never changes
    upload_key: str = ""
    job_id: str = dataclasses.field(default_factory=generate_job_id)
    started_at: float = dataclasses.field(default_factory=time.monotonic)

    @classmethod
    def create(
        cls,
        file_path: str | Path,
        bucket_key: str,
        object_key: str,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_parts_per_batch: int = MAX_PARTS_PER_BATCH,
        minutes_expiration: int = MAX_MINUTES_EXPIRATION,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> "UploadJob":
        check_partitioning(chunk_size, max_parts_per_batch)
        path = Path(file_path)
        try:
            file_size = path.stat().st_size
        except OSError as e:
            raise ReadError(f"cannot stat the file to upload {path}: {e}") from e

        total_parts = compute_total_parts(file_size, chunk_size)
        return cls(
            file_path=path,
            bucket_key=bucket_key,
            object_key=object_key,
            file_size=file_size,
            chunk_size=chunk_size,
            total_parts=total_parts,
            number_of_batches=compute_number_of_batches(total_parts, max_parts_per_batch),
            max_parts_per_batch=max_parts_per_batch,
            minutes_expiration=minutes_expiration,
            content_type=content_type,
        )


class UploadJobOrchestrator:
    """Drives an UploadJob: URL batches, part transfers, then completion."""

    def __init__(
        self,
        signed_urls: SignedUrlProvider,
        chunk_transfer: ChunkTransfer,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_parts_per_batch: int = MAX_PARTS_PER_BATCH,
        minutes_expiration: int = MAX_MINUTES_EXPIRATION,
        retry_policy: RetryPolicy | None = None,
        renew_expired_urls: bool = True,
        max_url_renewals: int = 3,
    ) -> None:
        check_partitioning(chunk_size, max_parts_per_batch)

        self.signed_urls = signed_urls
        self.chunk_transfer = chunk_transfer
        self.chunk_size = chunk_size
        self.max_parts_per_batch = max_parts_per_batch
        self.minutes_expiration = minutes_expiration
        self.retry_policy = retry_policy or RetryPolicy()
        self.renew_expired_urls = renew_expired_urls
        self.max_url_renewals = max_url_renewals

    @classmethod
    def from_config(
        cls, signed_urls: SignedUrlProvider, chunk_transfer: ChunkTransfer, config: Config
    ) -> "UploadJobOrchestrator":
        return cls(
            signed_urls,
            chunk_transfer,
            chunk_size=config.chunk_size_bytes,
            max_parts_per_batch=config.max_parts_per_batch,
            minutes_expiration=config.minutes_expiration,
            retry_policy=RetryPolicy(attempts=config.retry_attempts, interval=config.retry_interval_seconds),
            renew_expired_urls=config.renew_expired_urls,
            max_url_renewals=config.max_url_renewals,
        )

    def new_job(
        self, file_path: str | Path, bucket_key: str, object_key: str, content_type: str = DEFAULT_CONTENT_TYPE
    ) -> UploadJob:
        return UploadJob.create(
            file_path,
            bucket_key,
            object_key,
            chunk_size=self.chunk_size,
            max_parts_per_batch=self.max_parts_per_batch,
            minutes_expiration=self.minutes_expiration,
            content_type=content_type,
        )

    async def upload(
        self, file_path: str | Path, bucket_key: str, object_key: str, content_type: str = DEFAULT_CONTENT_TYPE
    ) -> UploadResult:
        return await self.upload_file(self.new_job(file_path, bucket_key, object_key, content_type))

    async def upload_file(self, job: UploadJob) -> UploadResult:
        """
        Upload the job's file part by part and complete the object.

        Parts are read sequentially from one file handle, so part N always
        carries bytes [(N-1) * chunk_size, N * chunk_size) of the file.

        Raises:
            ReadError: If the file cannot be opened or read
            RemoteError: If an endpoint keeps failing after all retries
            SizeMismatchError: If OSS reports a different object size
            ValueError: If the job's chunk size or batch size is outside the protocol limits
        """
        check_partitioning(job.chunk_size, job.max_parts_per_batch)
        token = job_id_context.set(job.job_id)
        target_token = upload_target_context.set(f"{job.bucket_key}/{job.object_key}")
        try:
            start_time = time.time()
            logger.info(
                f"Uploading {job.file_path} to {job.bucket_key}/{job.object_key} "
                f"size={job.file_size} parts={job.total_parts} batches={job.number_of_batches}"
            )

            try:
                reader = job.file_path.open("rb")
            except OSError as e:
                raise ReadError(f"cannot open the file to upload {job.file_path}: {e}") from e

            with reader:
                for batch in plan_batches(job.total_parts, job.max_parts_per_batch):
                    if batch.part_count == 0:
                        logger.debug(f"Batch {batch.index} has no parts left, skipping")
                        continue
                    await self._upload_batch(job, reader, batch)

            result = await self._complete(job)
            logger.info(
                f"Upload complete object_id={result.object_id} size={job.file_size} "
                f"total={time.time() - start_time:.2f}s"
            )
            return result
        finally:
            upload_target_context.reset(target_token)
            job_id_context.reset(token)

    async def _upload_batch(self, job: UploadJob, reader: BinaryIO, batch: BatchPlan) -> None:
        urls = await self._request_urls(job, batch.first_part, batch.part_count)
        renewals = 0

        for part_number in batch.part_numbers():
            data = await self._read_part(job, reader, part_number)
            if not data:
                # End of file: the size was an exact multiple of the chunk size
                logger.debug(f"Part {part_number} is empty, nothing to upload")
                continue

            while True:
                if urls.is_expired():
                    if not self._can_renew(renewals):
                        raise SignedUrlExpiredError(403, "signed URL expiry window elapsed before use").add_context(
                            f"uploading part {part_number}"
                        )
                    logger.warning(f"Signed URLs expired before part {part_number} was sent, requesting new ones")
                    urls = await self._request_urls(job, part_number, batch.last_part - part_number + 1)
                    renewals += 1

                url = urls.take(part_number)
                try:
                    await self.retry_policy.run(
                        self.chunk_transfer.upload_chunk, url, data, giveup=self._is_renewable
                    )
                    break
                except SignedUrlExpiredError as e:
                    if not self._can_renew(renewals):
                        raise e.add_context(f"uploading part {part_number} to {redact_url(url)}")
                    logger.warning(f"Signed URL for part {part_number} was rejected ({e.status}), requesting new ones")
                    urls = await self._request_urls(job, part_number, batch.last_part - part_number + 1)
                    renewals += 1
                except OSSError as e:
                    raise e.add_context(f"uploading part {part_number} to {redact_url(url)}")

            logger.debug(f"Uploaded part {part_number}/{job.total_parts} ({len(data)} bytes)")

    async def _request_urls(self, job: UploadJob, first_part: int, parts: int) -> SignedUrlBatch:
        try:
            urls = await self.retry_policy.run(self.signed_urls.get_signed_upload_urls, job, first_part, parts)
        except OSSError as e:
            raise e.add_context(f"requesting signed URLs for parts {first_part}-{first_part + parts - 1}")

        if not job.upload_key:
            job.upload_key = urls.upload_key
            logger.info(f"Started upload session for {job.bucket_key}/{job.object_key}")
        elif urls.upload_key != job.upload_key:
            logger.warning(f"Ignoring a different upload key returned for parts {first_part}-{first_part + parts - 1}")
        return urls

    async def _read_part(self, job: UploadJob, reader: BinaryIO, part_number: int) -> bytes:
        try:
            return await asyncio.to_thread(reader.read, job.chunk_size)
        except OSError as e:
            raise ReadError(f"reading part {part_number} of {job.file_path} failed: {e}") from e

    async def _complete(self, job: UploadJob) -> UploadResult:
        elapsed = time.monotonic() - job.started_at
        if elapsed > FINALIZE_DEADLINE_SECONDS:
            logger.warning(f"Completing upload {elapsed:.0f}s after it started; OSS may have discarded the parts")

        try:
            result = await self.retry_policy.run(self.signed_urls.complete_upload, job)
        except OSSError as e:
            raise e.add_context("completing the upload")

        if result.size is not None and result.size != job.file_size:
            raise SizeMismatchError(expected=job.file_size, received=result.size).add_context(
                "completing the upload"
            )
        return result

    def _can_renew(self, renewals: int) -> bool:
        return self.renew_expired_urls and renewals < self.max_url_renewals

    def _is_renewable(self, error: Exception) -> bool:
        return self.renew_expired_urls and isinstance(error, SignedUrlExpiredError)
