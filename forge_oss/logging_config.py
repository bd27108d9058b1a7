import logging
import os
import sys
from typing import Protocol

from loki_logger_handler.loki_logger_handler import LokiLoggerHandler

from forge_oss.config import Region
from forge_oss.services.job_id_service import job_id_context
from forge_oss.services.job_id_service import upload_target_context


JOB_LOG_FORMAT = "%(asctime)s - [%(job_id)s %(upload_target)s] - %(name)s - %(levelname)s - %(message)s"
PLAIN_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class LoggingConfig(Protocol):
    log_level: str
    loki_enabled: bool
    loki_url: str
    environment: str
    forge_region: Region


class JobIDFilter(logging.Filter):
    """Stamps every record with the upload it belongs to.

    ``job_id`` and ``upload_target`` ("<bucketKey>/<objectKey>") come from the
    contextvars the orchestrator sets for the duration of one upload, unless
    the record already carries them (``extra=``). Outside of an upload they
    default to 'no-job-id' and '-'.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "job_id"):
            record.job_id = job_id_context.get()
        if not hasattr(record, "upload_target"):
            record.upload_target = upload_target_context.get()
        return True


def setup_logging(config: LoggingConfig, service_name: str, include_job_id: bool = True) -> logging.Logger:
    """
    Configure stderr logging, optionally shipped to Loki as well.

    Records emitted during an upload carry its job id and bucket/object; the
    Loki stream is labelled with the OSS region the client talks to.

    Args:
        config: Client configuration
        service_name: Name of the service (e.g., "forge-oss-cli")
        include_job_id: Whether to include the upload job fields in the log format (default: True)

    Returns:
        Configured logger instance
    """
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    # stdout is reserved for command output
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if config.loki_enabled and config.loki_url:
        handlers.append(
            LokiLoggerHandler(
                url=config.loki_url,
                labels={
                    "service": service_name,
                    "environment": config.environment,
                    "region": Region(config.forge_region).value,
                    "host": os.getenv("HOSTNAME", "unknown"),
                },
                timeout=10,
                compressed=True,
            )
        )

    if include_job_id:
        job_id_filter = JobIDFilter()
        for handler in handlers:
            handler.addFilter(job_id_filter)

    logging.basicConfig(
        level=log_level,
        format=JOB_LOG_FORMAT if include_job_id else PLAIN_LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    # httpx logs every request at INFO, including signed URL query strings
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))

    return logging.getLogger(service_name)
