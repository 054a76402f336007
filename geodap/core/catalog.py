# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import difflib
import re
from typing import Any, Optional, Union
from collections.abc import Iterable, Iterator, Mapping, Sequence

import fsspec
import pandas as pd

from geodap.constants import LOG
from geodap.util.assertions import assert_given
from geodap.util.config import load_json_or_yaml
from .descriptor import DatasetDescriptor
from .descriptor import DescriptorLike
from .descriptor import normalize_descriptor
from .error import NotFoundError

_TOKEN_PATTERN = re.compile(r"[a-z0-9]+")

# Weights of the fields searched
_ID_WEIGHT = 1.0
_TITLE_WEIGHT = 1.0
_KEYWORDS_WEIGHT = 0.8
_DESCRIPTION_WEIGHT = 0.5

# Near-miss tokens, e.g. "precipitaton" vs. "precipitation"
_FUZZY_CUTOFF = 0.75
_FUZZY_WEIGHT = 0.5

# Catalog columns of CSV files holding multiple values
_CSV_LIST_SEPARATOR = ";"
_CSV_LIST_COLUMNS = ("keywords", "var_names", "bbox", "num_tiles", "spatial_res")
_CSV_NUMBER_COLUMNS = ("bbox", "num_tiles", "spatial_res", "tile_overlap")


class Catalog:
    """An immutable table of dataset descriptors.

    Args:
        descriptors: The catalog entries, descriptors or
            JSON-serializable dictionaries.
        source: Optional path or URL the catalog was loaded from.
    """

    def __init__(
        self,
        descriptors: Iterable[DescriptorLike],
        source: Optional[str] = None,
    ):
        entries: dict[str, DatasetDescriptor] = {}
        for descriptor in descriptors:
            descriptor = normalize_descriptor(descriptor)
            if descriptor.data_id in entries:
                raise ValueError(
                    f"duplicate dataset identifier {descriptor.data_id!r}"
                )
            entries[descriptor.data_id] = descriptor
        self._entries = entries
        self._source = source

    @classmethod
    def from_file(
        cls, path: str, storage_options: Optional[Mapping[str, Any]] = None
    ) -> "Catalog":
        """Load a catalog from a YAML, JSON, or CSV file.

        *path* may be any local path or URL understood by ``fsspec``.
        YAML and JSON documents are either a list of entries,
        an object with a ``datasets`` list, or an object that maps
        dataset identifiers to entries.
        """
        assert_given(path, name="path")
        if path.lower().endswith(".csv"):
            records = _load_csv_records(path, storage_options)
        else:
            records = _load_json_or_yaml_records(path)
        catalog = Catalog(records, source=path)
        LOG.info(f"Catalog with {len(catalog)} dataset(s) loaded from {path}")
        return catalog

    @property
    def source(self) -> Optional[str]:
        return self._source

    def refresh(self) -> "Catalog":
        """Get a new catalog re-read from this catalog's source."""
        if self._source is None:
            raise ValueError("catalog has no source to refresh from")
        return Catalog.from_file(self._source)

    @property
    def data_ids(self) -> list[str]:
        return list(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[DatasetDescriptor]:
        return iter(self._entries.values())

    def __contains__(self, data_id: str) -> bool:
        return data_id in self._entries

    def get(self, data_id: str) -> DatasetDescriptor:
        """Get the descriptor with the given identifier.

        Raises:
            NotFoundError: if there is no such entry.
        """
        try:
            return self._entries[data_id]
        except KeyError:
            raise NotFoundError(
                f"dataset {data_id!r} not found in catalog", data_id=data_id
            ) from None

    def search(
        self, query: str, limit: Optional[int] = None
    ) -> list[DatasetDescriptor]:
        """Search the catalog for entries matching free-text *query*.

        Results are ranked by descending relevance; entries of equal
        relevance are ordered by identifier.

        Raises:
            NotFoundError: if no entry matches.
        """
        ranked = [
            descriptor for descriptor, _ in self.search_scores(query, limit=limit)
        ]
        if not ranked:
            raise NotFoundError(f"no dataset matches query {query!r}", query=query)
        return ranked

    def search_scores(
        self, query: str, limit: Optional[int] = None
    ) -> list[tuple[DatasetDescriptor, float]]:
        """Like :meth:`search`, but also return the relevance
        scores and an empty list if nothing matches.
        """
        query_tokens = _tokenize(query)
        if not query_tokens:
            return []
        scored = []
        for descriptor in self._entries.values():
            score = _score(query_tokens, descriptor)
            if score > 0:
                scored.append((descriptor, score))
        scored.sort(key=lambda item: (-item[1], item[0].data_id))
        if limit is not None:
            scored = scored[:limit]
        return scored

    def resolve(self, query_or_id: str) -> list[DatasetDescriptor]:
        """Resolve a dataset identifier or free-text query.

        An exact identifier match bypasses ranking and
        yields a single descriptor.

        Raises:
            NotFoundError: if nothing matches.
        """
        assert_given(query_or_id, name="query_or_id")
        if query_or_id in self._entries:
            return [self._entries[query_or_id]]
        return self.search(query_or_id)

    def __repr__(self) -> str:
        return f"Catalog({self.data_ids!r})"


def _tokenize(text: Optional[str]) -> list[str]:
    if not text:
        return []
    return _TOKEN_PATTERN.findall(text.lower())


def _score(query_tokens: Sequence[str], descriptor: DatasetDescriptor) -> float:
    fields = (
        (_ID_WEIGHT, set(_tokenize(descriptor.data_id))),
        (_TITLE_WEIGHT, set(_tokenize(descriptor.title))),
        (_KEYWORDS_WEIGHT, set(_tokenize(" ".join(descriptor.keywords)))),
        (_DESCRIPTION_WEIGHT, set(_tokenize(descriptor.description))),
    )
    all_tokens = sorted(set().union(*(tokens for _, tokens in fields)))
    total = 0.0
    for query_token in query_tokens:
        exact = max(
            (weight for weight, tokens in fields if query_token in tokens),
            default=0.0,
        )
        if exact > 0:
            total += exact
            continue
        matches = difflib.get_close_matches(
            query_token, all_tokens, n=1, cutoff=_FUZZY_CUTOFF
        )
        if matches:
            ratio = difflib.SequenceMatcher(None, query_token, matches[0]).ratio()
            total += _FUZZY_WEIGHT * ratio
    return total / len(query_tokens)


def _load_json_or_yaml_records(path: str) -> list[Mapping[str, Any]]:
    document = load_json_or_yaml(path)
    if document is None:
        return []
    if isinstance(document, Mapping):
        if "datasets" in document:
            document = document["datasets"]
        else:
            return [dict(entry, data_id=data_id) for data_id, entry in document.items()]
    if not isinstance(document, list):
        raise ValueError(f"invalid catalog format in {path!r}: list expected")
    return document


def _load_csv_records(
    path: str, storage_options: Optional[Mapping[str, Any]]
) -> list[dict[str, Any]]:
    with fsspec.open(path, mode="r", **(storage_options or {})) as fp:
        df = pd.read_csv(fp, dtype=str, keep_default_na=False)
    return [_csv_row_to_record(row) for row in df.to_dict(orient="records")]


def _csv_row_to_record(row: Mapping[str, str]) -> dict[str, Any]:
    record = {}
    for name, value in row.items():
        value = value.strip()
        if not value:
            continue
        if name == "time_range":
            value = [v or None for v in value.split("/")]
        elif name in _CSV_LIST_COLUMNS:
            value = [v.strip() for v in value.split(_CSV_LIST_SEPARATOR)]
            if name in _CSV_NUMBER_COLUMNS:
                value = [_to_number(v) for v in value]
            if name in ("num_tiles", "spatial_res") and len(value) == 1:
                value = value[0]
        elif name in _CSV_NUMBER_COLUMNS:
            value = _to_number(value)
        record[name] = value
    return record


def _to_number(text: str) -> Union[int, float]:
    try:
        return int(text)
    except ValueError:
        return float(text)
