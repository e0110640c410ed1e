# batching.py
from __future__ import annotations

import logging
import math
import random
from dataclasses import replace
from typing import List, Optional, Sequence

from .model import FeaturePlan, JobDescriptor

logger = logging.getLogger(__name__)


def _spread(features: List[str], chunk_size: int) -> List[List[str]]:
    """
    Round-robin `features` over ceil(n / chunk_size) chunks so that chunk
    sizes differ by at most one.
    """
    num_chunks = math.ceil(len(features) / chunk_size)
    chunks: List[List[str]] = [[] for _ in range(num_chunks)]

    for i, feature in enumerate(features):
        target = i % num_chunks
        if len(chunks[target]) < chunk_size:
            chunks[target].append(feature)
            continue

        # overflow: next chunk with spare room
        for offset in range(1, len(chunks)):
            candidate = chunks[(target + offset) % len(chunks)]
            if len(candidate) < chunk_size:
                candidate.append(feature)
                break
        else:
            logger.warning(
                "spread planning ran out of room at feature %r (chunk_size=%d); allocating a new chunk",
                feature,
                chunk_size,
            )
            chunks.append([feature])

    return chunks


def plan_features(
    features: Sequence[str],
    chunk_size: Optional[int] = None,
    spread: bool = False,
    randomize: bool = False,
    seed: Optional[int] = None,
) -> FeaturePlan:
    """
    Split a feature list into batches for parallel CI jobs.

    - randomize: shuffle first, with `seed` or a fresh one. The seed used is
      logged and returned on the plan so a run can be reproduced.
    - chunk_size: ceiling per batch. Without it the plan is not chunked.
    - spread: balance batch sizes instead of filling batches in order.

    A list that fits in one batch (including an empty one) becomes a single
    batch, so every package still gets one job.
    """
    features = list(features)

    used_seed: Optional[int] = None
    if randomize:
        used_seed = seed if seed is not None else random.SystemRandom().randrange(2**63)
        logger.info("shuffling %d features with seed %d", len(features), used_seed)
        random.Random(used_seed).shuffle(features)

    if chunk_size is None:
        return FeaturePlan(chunks=[features], chunked=False, seed=used_seed)
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")

    if len(features) <= chunk_size:
        chunks = [features]
    elif spread:
        chunks = _spread(features, chunk_size)
    else:
        chunks = [features[i:i + chunk_size] for i in range(0, len(features), chunk_size)]

    return FeaturePlan(chunks=chunks, chunked=True, seed=used_seed)


def _slot_sizes(count: int, slots: int) -> List[int]:
    base, extra = divmod(count, slots)
    return [base + 1 if i < extra else base for i in range(slots)]


def _merge_slot(jobs: Sequence[JobDescriptor], chunk_size: Optional[int]) -> JobDescriptor:
    features = sorted({f for job in jobs for f in job.features})
    if chunk_size is not None:
        features = features[:chunk_size]

    required: List[str] = []
    for job in jobs:
        for f in job.required_features:
            if f not in required:
                required.append(f)

    return replace(jobs[0], features=features, required_features=required)


def rechunk_jobs(
    jobs: Sequence[JobDescriptor],
    max_parallel: int,
    chunk_size: Optional[int] = None,
) -> List[JobDescriptor]:
    """
    Re-pack generated jobs into at most `max_parallel` jobs.

    Jobs are grouped into exactly `max_parallel` consecutive slots, the first
    `len(jobs) % max_parallel` slots taking one extra job. Each multi-job slot
    becomes one job (the first job of the slot) whose features are the sorted
    union of the slot's features, cut to `chunk_size` when one is given.
    Truncation can drop features.
    """
    if max_parallel < 1:
        raise ValueError(f"max_parallel must be >= 1, got {max_parallel}")

    jobs = list(jobs)
    if len(jobs) <= max_parallel:
        return jobs

    out: List[JobDescriptor] = []
    start = 0
    for size in _slot_sizes(len(jobs), max_parallel):
        slot = jobs[start:start + size]
        start += size
        out.append(slot[0] if len(slot) == 1 else _merge_slot(slot, chunk_size))

    logger.debug("rechunked %d jobs into %d", len(jobs), len(out))
    return sorted(out, key=lambda j: j.name)
