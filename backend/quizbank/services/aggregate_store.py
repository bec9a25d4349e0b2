"""Ordered, namespaced ID sets backed by Redis sorted sets.

Each (aggregate, namespace) pair is one sorted set. All members share score 0,
so rank order is the lexicographic order of the member ids and `ZRANGE k k`
resolves the k-th member in O(log n). That gives O(1) counts and uniform
random draws without loading the whole population.

The store is a best-effort cache over the SQL tables. It is mutated through
the trigger engine only (see `quizbank.services.triggers`).
"""

from __future__ import annotations

import logging
import random
from typing import Any, Iterable, List, Optional

from quizbank.core.config import settings
from quizbank.infra.queue import get_redis_conn

logger = logging.getLogger(__name__)


class AggregateError(Exception):
    code = "AGGREGATE_ERROR"

    def __init__(self, aggregate: str, namespace: str, doc_id: Any):
        self.aggregate = aggregate
        self.namespace = namespace
        self.doc_id = doc_id
        super().__init__(f"{self.code}: {aggregate}[{namespace}] id={doc_id}")


class AggregateKeyExistsError(AggregateError):
    code = "INSERT_DUPLICATE_KEY"


class AggregateKeyMissingError(AggregateError):
    code = "DELETE_MISSING_KEY"


def _to_id(raw: Any) -> int:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    return int(raw)


class AggregateStore:
    def __init__(self, redis_client, *, prefix: Optional[str] = None, rng: Optional[random.Random] = None):
        self.redis = redis_client
        self.prefix = prefix or settings.AGGREGATE_KEY_PREFIX
        self._rng = rng or random.SystemRandom()

    def key(self, aggregate: str, namespace: str) -> str:
        return f"{self.prefix}:{aggregate}:{namespace}"

    def insert(self, aggregate: str, namespace: str, doc_id: int) -> None:
        added = self.redis.zadd(self.key(aggregate, namespace), {str(doc_id): 0}, nx=True)
        if not added:
            raise AggregateKeyExistsError(aggregate, namespace, doc_id)

    def delete(self, aggregate: str, namespace: str, doc_id: int) -> None:
        removed = self.redis.zrem(self.key(aggregate, namespace), str(doc_id))
        if not removed:
            raise AggregateKeyMissingError(aggregate, namespace, doc_id)

    def count(self, aggregate: str, namespace: str) -> int:
        return int(self.redis.zcard(self.key(aggregate, namespace)) or 0)

    def at(self, aggregate: str, namespace: str, rank: int) -> Optional[int]:
        rows = self.redis.zrange(self.key(aggregate, namespace), int(rank), int(rank))
        if not rows:
            return None
        return _to_id(rows[0])

    def random_draw(
        self,
        aggregate: str,
        namespace: str,
        count: int,
        exclude: Iterable[int] = (),
    ) -> List[int]:
        """Draw up to `count` distinct ids uniformly at random.

        Picks distinct random ranks and resolves each one with `at`. When
        `exclude` is given, up to `3 * count + len(exclude)` ranks are tried,
        so the result can be shorter than `count` on a small population.
        """
        total = self.count(aggregate, namespace)
        wanted = min(int(count), total)
        if wanted <= 0:
            return []

        skip = {int(x) for x in exclude}
        attempts = wanted if not skip else min(total, wanted * 3 + len(skip))
        out: List[int] = []
        for rank in self._rng.sample(range(total), attempts):
            doc_id = self.at(aggregate, namespace, rank)
            # Set shrank between ZCARD and ZRANGE
            if doc_id is None or doc_id in skip:
                continue
            skip.add(doc_id)
            out.append(doc_id)
            if len(out) >= wanted:
                break
        return out

    def clear(self, aggregate: str, namespace: str) -> None:
        self.redis.delete(self.key(aggregate, namespace))


def build_aggregate_store() -> AggregateStore:
    return AggregateStore(get_redis_conn())
