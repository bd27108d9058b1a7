"""Pure partitioning logic for signed S3 uploads.

No IO; deterministic mapping from a file size to parts and URL batches.

Protocol limits:
- every part except the last one must be at least 5 MiB,
- the signeds3upload endpoint hands out at most 25 URLs per request,
- part numbers start at 1.
"""

from __future__ import annotations

import dataclasses

from forge_oss.config import MEGABYTE


MIN_PART_SIZE = 5 * MEGABYTE
MAX_PARTS_PER_BATCH = 25
DEFAULT_CHUNK_SIZE = 100 * MEGABYTE


@dataclasses.dataclass(frozen=True)
class BatchPlan:
    index: int
    first_part: int
    part_count: int

    @property
    def last_part(self) -> int:
        return self.first_part + self.part_count - 1

    def part_numbers(self) -> range:
        return range(self.first_part, self.first_part + self.part_count)


def compute_total_parts(file_size: int, chunk_size: int) -> int:
    """Number of parts for a file; always at least 1, even for an empty file."""
    if chunk_size <= 0:
        raise ValueError(f"Invalid chunk_size={chunk_size}")
    if file_size < 0:
        raise ValueError(f"Invalid file_size={file_size}")
    return file_size // chunk_size + 1


def compute_number_of_batches(total_parts: int, max_parts_per_batch: int = MAX_PARTS_PER_BATCH) -> int:
    if max_parts_per_batch <= 0:
        raise ValueError(f"Invalid max_parts_per_batch={max_parts_per_batch}")
    return total_parts // max_parts_per_batch + 1


def parts_in_batch(total_parts: int, parts_allocated: int, max_parts_per_batch: int = MAX_PARTS_PER_BATCH) -> int:
    """Number of parts the next batch covers; never more than the nominal batch size.

    Say total_parts = 20: batch[0] = 20 parts starting at 1
    Say total_parts = 30: batch[0] = 25 parts starting at 1, batch[1] = 5 parts starting at 26
    Say total_parts = 50: batch[0] = 25 parts starting at 1, batch[1] = 25 parts starting at 26
    """
    return max(0, min(max_parts_per_batch, total_parts - parts_allocated))


def plan_batches(total_parts: int, max_parts_per_batch: int = MAX_PARTS_PER_BATCH) -> list[BatchPlan]:
    """Plan every URL batch of an upload.

    The batch count follows ``total_parts // max_parts_per_batch + 1``, so when
    ``total_parts`` is an exact multiple of the batch size the last plan has
    ``part_count == 0``; callers skip such a batch.
    """
    plans: list[BatchPlan] = []
    allocated = 0
    for index in range(compute_number_of_batches(total_parts, max_parts_per_batch)):
        count = parts_in_batch(total_parts, allocated, max_parts_per_batch)
        plans.append(BatchPlan(index=index, first_part=index * max_parts_per_batch + 1, part_count=count))
        allocated += count
    return plans


def check_partitioning(chunk_size: int, max_parts_per_batch: int) -> None:
    """Reject a chunk size or batch size the signeds3upload protocol cannot accept."""
    if chunk_size < MIN_PART_SIZE:
        raise ValueError(f"chunk_size={chunk_size} is below the minimum part size of {MIN_PART_SIZE} bytes")
    if not 1 <= max_parts_per_batch <= MAX_PARTS_PER_BATCH:
        raise ValueError(f"max_parts_per_batch must be within 1..{MAX_PARTS_PER_BATCH}, got {max_parts_per_batch}")
