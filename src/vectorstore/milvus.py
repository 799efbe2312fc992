from __future__ import annotations

"""Milvus-backed namespace store with one collection per namespace."""

import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Sequence

from src.rag.errors import ConfigurationError, DimensionMismatchError, NamespaceNotFoundError, UpstreamError
from src.rag.types import Chunk, EmbeddedChunk, SearchResult
from src.vectorstore.base import batch_dimension

logger = logging.getLogger(__name__)

_INVALID_NAME_RE = re.compile(r"[^A-Za-z0-9_]")
_MAX_NAME_LENGTH = 255
_OUTPUT_FIELDS = ["content", "metadata"]


class MilvusStoreError(UpstreamError):
    """Raised when Milvus operations fail."""
    pass


@dataclass
class MilvusConfig:
    """Configuration for Milvus connection and indexing."""
    uri: str
    token: str | None
    collection_prefix: str
    consistency: str
    index_type: str
    metric_type: str
    nlist: int
    nprobe: int
    hnsw_m: int = 16
    hnsw_ef_construction: int = 200
    hnsw_ef: int = 64
    max_content_length: int = 65535


def collection_name(namespace: str, prefix: str = "") -> str:
    """Map a namespace to a legal Milvus collection name.

    Names that had to be rewritten get a hash suffix so that two namespaces
    differing only in illegal characters never share a collection.
    """
    base = _INVALID_NAME_RE.sub("_", f"{prefix}{namespace}")
    rewritten = base != f"{prefix}{namespace}"
    if not base or base[0].isdigit():
        base = f"ns_{base}"
        rewritten = True
    if rewritten or len(base) > _MAX_NAME_LENGTH:
        digest = hashlib.sha256(namespace.encode("utf-8")).hexdigest()[:12]
        base = f"{base[: _MAX_NAME_LENGTH - 13]}_{digest}"
    return base


@dataclass
class MilvusNamespaceStore:
    """Milvus store holding one dense-vector collection per namespace."""
    config: MilvusConfig
    _collections: dict[str, Any] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        """Connect to Milvus."""
        try:
            from pymilvus import connections
        except ImportError as exc:
            raise ConfigurationError("pymilvus is required for MilvusNamespaceStore") from exc
        connections.connect(
            alias="default",
            uri=self.config.uri,
            token=self.config.token or "",
        )

    def _name(self, namespace: str) -> str:
        return collection_name(namespace, self.config.collection_prefix)

    def collection_exists(self, namespace: str) -> bool:
        from pymilvus import MilvusException, utility

        try:
            return bool(utility.has_collection(self._name(namespace)))
        except MilvusException as exc:
            raise MilvusStoreError(f"Milvus has_collection failed: {exc}") from exc

    def _open(self, namespace: str) -> Any:
        """Return a loaded handle for an existing collection."""
        from pymilvus import Collection

        name = self._name(namespace)
        handle = self._collections.get(name)
        if handle is None:
            handle = Collection(name, consistency_level=self.config.consistency)
            handle.load()
            self._collections[name] = handle
        return handle

    def _create(self, namespace: str, dimension: int) -> Any:
        """Create schema, index and load a new collection."""
        from pymilvus import Collection, CollectionSchema, DataType, FieldSchema

        name = self._name(namespace)
        fields = [
            FieldSchema(name="id", dtype=DataType.INT64, is_primary=True, auto_id=True),
            FieldSchema(
                name="content",
                dtype=DataType.VARCHAR,
                max_length=self.config.max_content_length,
            ),
            FieldSchema(name="metadata", dtype=DataType.JSON),
            FieldSchema(name="embedding", dtype=DataType.FLOAT_VECTOR, dim=dimension),
        ]
        schema = CollectionSchema(fields=fields, description=f"Namespace {namespace}")
        handle = Collection(name, schema, consistency_level=self.config.consistency)
        handle.create_index(field_name="embedding", index_params=self._index_params())
        handle.load()
        self._collections[name] = handle
        logger.info(
            "namespace_created",
            extra={"namespace": namespace, "collection": name, "dimension": dimension},
        )
        return handle

    def _index_params(self) -> dict[str, Any]:
        if self.config.index_type.upper() == "HNSW":
            return {
                "index_type": "HNSW",
                "metric_type": self.config.metric_type,
                "params": {
                    "M": self.config.hnsw_m,
                    "efConstruction": self.config.hnsw_ef_construction,
                },
            }
        return {
            "index_type": self.config.index_type,
            "metric_type": self.config.metric_type,
            "params": {"nlist": self.config.nlist},
        }

    def _search_params(self) -> dict[str, Any]:
        if self.config.index_type.upper() == "HNSW":
            return {"metric_type": self.config.metric_type, "params": {"ef": self.config.hnsw_ef}}
        return {"metric_type": self.config.metric_type, "params": {"nprobe": self.config.nprobe}}

    def _collection_dimension(self, handle: Any) -> int | None:
        """Read embedding dimension from the collection schema."""
        for schema_field in handle.schema.fields:
            if schema_field.name != "embedding":
                continue
            params = getattr(schema_field, "params", None) or {}
            dim = params.get("dim") if isinstance(params, dict) else None
            if dim is None:
                dim = getattr(schema_field, "dim", None)
            return int(dim) if dim is not None else None
        return None

    def upsert(self, namespace: str, embedded_chunks: Sequence[EmbeddedChunk]) -> int:
        """Insert embedded chunks, creating the collection on first use."""
        if not embedded_chunks:
            return 0
        from pymilvus import MilvusException

        dimension = batch_dimension(namespace, embedded_chunks)
        try:
            if self.collection_exists(namespace):
                handle = self._open(namespace)
                existing = self._collection_dimension(handle)
                if existing is not None and existing != dimension:
                    raise DimensionMismatchError(namespace, existing, dimension)
            else:
                handle = self._create(namespace, dimension)
            rows = [
                {
                    "content": item.chunk.text[: self.config.max_content_length],
                    "metadata": item.chunk.metadata,
                    "embedding": list(item.vector),
                }
                for item in embedded_chunks
            ]
            handle.insert(rows)
            handle.flush()
        except MilvusException as exc:
            raise MilvusStoreError(f"Milvus upsert failed: {exc}") from exc
        return len(rows)

    def nearest_neighbors(
        self, namespace: str, query_vector: list[float], k: int
    ) -> list[SearchResult]:
        """Search the namespace collection for the closest chunks.

        Hits come back in Milvus ranking order for the configured metric.
        """
        if not self.collection_exists(namespace):
            raise NamespaceNotFoundError(namespace)
        if k <= 0:
            return []
        from pymilvus import MilvusException

        try:
            handle = self._open(namespace)
            hits = handle.search(
                data=[list(query_vector)],
                anns_field="embedding",
                param=self._search_params(),
                limit=k,
                output_fields=_OUTPUT_FIELDS,
            )
        except MilvusException as exc:
            raise MilvusStoreError(f"Milvus search failed: {exc}") from exc

        results: list[SearchResult] = []
        for hit in hits[0]:
            entity = hit.entity
            chunk = Chunk(
                text=entity.get("content") or "",
                metadata=self._deserialize_metadata(entity.get("metadata")),
            )
            results.append(SearchResult(chunk=chunk, score=float(hit.score)))
        return results

    def _deserialize_metadata(self, value: Any) -> dict[str, Any]:
        """Deserialize metadata from storage."""
        if value is None:
            return {}
        if isinstance(value, dict):
            return value
        if isinstance(value, str):
            try:
                loaded = json.loads(value)
            except json.JSONDecodeError:
                return {"raw": value}
            return loaded if isinstance(loaded, dict) else {"raw": loaded}
        return {"raw": value}

    def count(self, namespace: str) -> int:
        if not self.collection_exists(namespace):
            return 0
        return int(self._open(namespace).num_entities)

    def health(self) -> dict[str, Any]:
        """Return connection health info."""
        from pymilvus import MilvusException, utility

        try:
            names = utility.list_collections()
        except MilvusException as exc:
            return {"backend": "milvus", "ok": False, "detail": str(exc)}
        return {"backend": "milvus", "ok": True, "detail": f"{len(names)} collections"}
