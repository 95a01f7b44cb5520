"""Chunk-keyed R-tree index used to answer region queries."""

from __future__ import annotations

from typing import Dict, Generic, Iterator, List, Tuple, TypeVar

from rtree import index as rtree_index

from .path import ChunkRect

T = TypeVar("T")


class ChunkIndex(Generic[T]):
    """Buckets items by chunk ``(i, j)`` and indexes the buckets in an R-tree.

    Each distinct chunk is inserted once as a degenerate box; queries
    return the items of every intersecting chunk, bucket by bucket in
    the order the chunks were first seen, items in insertion order.
    """

    def __init__(self) -> None:
        p = rtree_index.Property()
        p.interleaved = True
        self._rt = rtree_index.Index(properties=p)
        self._bucket_ids: Dict[Tuple[int, int], int] = {}
        self._buckets: List[List[T]] = []
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def insert(self, chunk_i: int, chunk_j: int, item: T) -> None:
        key = (chunk_i, chunk_j)
        bucket_id = self._bucket_ids.get(key)
        if bucket_id is None:
            bucket_id = len(self._buckets)
            self._bucket_ids[key] = bucket_id
            self._buckets.append([])
            self._rt.insert(bucket_id, (chunk_i, chunk_j, chunk_i, chunk_j))
        self._buckets[bucket_id].append(item)
        self._count += 1

    def chunks(self) -> List[Tuple[int, int]]:
        return list(self._bucket_ids)

    def query(self, rect: ChunkRect) -> Iterator[T]:
        """Yield items stored in chunks inside ``rect`` (inclusive)."""

        for bucket_id in sorted(self._rt.intersection(rect.as_bounds())):
            yield from self._buckets[bucket_id]

    def __iter__(self) -> Iterator[T]:
        for bucket in self._buckets:
            yield from bucket
