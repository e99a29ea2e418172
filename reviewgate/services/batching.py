"""Greedy, order-preserving partitioning of a change-set into review batches."""

from __future__ import annotations

from collections.abc import Iterable

from reviewgate.models.schemas import ChangedFile

DEFAULT_MAX_BATCH_CHARS = 25_000


def reviewable_files(files: Iterable[ChangedFile]) -> list[ChangedFile]:
    """Drop removed files and files without diff text."""
    return [item for item in files if item.is_reviewable]


def batch_files(
    files: Iterable[ChangedFile],
    max_chars: int = DEFAULT_MAX_BATCH_CHARS,
) -> list[list[ChangedFile]]:
    """Partition reviewable files into batches bounded by combined diff length.

    A file is appended to the current batch unless that would push the batch
    past ``max_chars`` while the batch already holds something; an oversized
    file therefore still gets a batch of its own. When nothing is reviewable
    the result is a single empty batch.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive.")

    batches: list[list[ChangedFile]] = []
    current: list[ChangedFile] = []
    current_size = 0

    for item in reviewable_files(files):
        size = item.diff_size
        if current and current_size + size > max_chars:
            batches.append(current)
            current = []
            current_size = 0
        current.append(item)
        current_size += size

    if current:
        batches.append(current)
    return batches or [[]]
