import asyncio
import dataclasses
import logging
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import TypeVar

from forge_oss.errors import NetworkError
from forge_oss.errors import OSSError
from forge_oss.errors import RemoteError


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_ON: tuple[type[Exception], ...] = (RemoteError, NetworkError)


@dataclasses.dataclass(frozen=True)
class RetryPolicy:
    """Fixed number of attempts with a fixed wait between them.

    Every exception listed in ``retry_on`` is retried the same way, whatever
    its status code. ``giveup`` lets a caller stop early on a specific error
    (e.g. an expired signed URL that will never succeed again).
    """

    attempts: int = 3
    interval: float = 3.0
    retry_on: tuple[type[Exception], ...] = DEFAULT_RETRY_ON

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {self.attempts}")
        if self.interval < 0:
            raise ValueError(f"interval must not be negative, got {self.interval}")

    async def run(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
        giveup: Callable[[Exception], bool] | None = None,
        **kwargs: Any,
    ) -> T:
        name = getattr(operation, "__name__", repr(operation))
        last_exception: Exception | None = None

        for attempt in range(1, self.attempts + 1):
            try:
                return await operation(*args, **kwargs)
            except self.retry_on as e:
                last_exception = e

                if giveup is not None and giveup(e):
                    logger.info(f"Not retrying {name}: {e}")
                    raise

                if attempt == self.attempts:
                    break

                logger.warning(
                    f"{name} failed (attempt {attempt}/{self.attempts}): {e}; retrying in {self.interval:.1f}s"
                )
                await asyncio.sleep(self.interval)

        if last_exception is not None:
            if isinstance(last_exception, OSSError):
                last_exception.add_context(f"{name} failed after {self.attempts} attempts")
            raise last_exception
        raise OSSError(f"{name} was never attempted (attempts={self.attempts})")


async def retry(attempts: int, interval: float, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
    """Run ``operation(*args, **kwargs)`` with a fixed-attempt, fixed-interval retry."""
    return await RetryPolicy(attempts=attempts, interval=interval).run(operation, *args, **kwargs)
