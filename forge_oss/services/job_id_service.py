import contextvars
import uuid


job_id_context: contextvars.ContextVar[str] = contextvars.ContextVar("job_id", default="no-job-id")
# "<bucketKey>/<objectKey>" of the upload in progress
upload_target_context: contextvars.ContextVar[str] = contextvars.ContextVar("upload_target", default="-")


def generate_job_id() -> str:
    """Generate a 16-character hex job ID from UUID4.

    Returns:
        A 16-character lowercase hex string (first 64 bits of UUID4).
        Example: "a1b2c3d4e5f67890"
    """
    return uuid.uuid4().hex[:16]
