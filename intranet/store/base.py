"""
================================================================================
RECORD STORE GATEWAY - CONTRACT
================================================================================

Generic CRUD and query interface over named collections of schemaless
documents. Every workflow in ``intranet.services`` talks to the store only
through this contract, so the backing database can be swapped through the
``RECORD_STORE_BACKEND`` setting.

VALUE TRANSFORMS
================================================================================
Values passed to ``create`` / ``update`` / ``set`` may contain:

    ArrayUnion(*values)   append values not already present
    ArrayRemove(*values)  remove every occurrence of values
    Increment(n)          add n to a numeric field (missing counts as 0)
    SERVER_TIMESTAMP      replaced by the store's clock at write time
    DELETE_FIELD          removes the field (update / merge only)

Transforms are applied atomically per field by every backend. Keys of an
update may be dotted paths (``lastMessage.timestamp``) addressing nested maps.

QUERIES
================================================================================
Filters are ``Filter(field, op, value)`` triples with op one of
``== != < <= > >= in array-contains``. A query ordered by a field excludes
documents that do not have that field.
"""

import abc
import copy
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from django.utils import timezone

from ..errors import NotFound

logger = logging.getLogger(__name__)


# ============================================================================
# SENTINELS & TRANSFORMS
# ============================================================================

class _Sentinel:
    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return self.name


SERVER_TIMESTAMP = _Sentinel("SERVER_TIMESTAMP")
DELETE_FIELD = _Sentinel("DELETE_FIELD")
MISSING = _Sentinel("MISSING")


class ArrayUnion:
    def __init__(self, *values):
        self.values = list(values)

    def apply(self, current):
        result = list(current) if isinstance(current, list) else []
        for value in self.values:
            if value not in result:
                result.append(value)
        return result

    def __repr__(self):
        return f"ArrayUnion({self.values!r})"


class ArrayRemove:
    def __init__(self, *values):
        self.values = list(values)

    def apply(self, current):
        if not isinstance(current, list):
            return []
        return [item for item in current if item not in self.values]

    def __repr__(self):
        return f"ArrayRemove({self.values!r})"


class Increment:
    def __init__(self, amount=1):
        self.amount = amount

    def apply(self, current):
        if isinstance(current, bool) or not isinstance(current, (int, float)):
            return self.amount
        return current + self.amount

    def __repr__(self):
        return f"Increment({self.amount!r})"


TRANSFORMS = (ArrayUnion, ArrayRemove, Increment)


# ============================================================================
# FIELD PATHS
# ============================================================================

def get_field(data, path):
    """Resolve a dotted ``path`` inside ``data``; ``MISSING`` when absent."""
    current = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return MISSING
        current = current[part]
    return current


def _set_field(data, path, value):
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value


def _delete_field(data, path):
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        current = current.get(part)
        if not isinstance(current, dict):
            return
    current.pop(parts[-1], None)


def _resolve(value, current, now):
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, TRANSFORMS):
        return value.apply(current)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, dict):
        return {
            key: _resolve(item, MISSING, now)
            for key, item in value.items()
            if item is not DELETE_FIELD
        }
    if isinstance(value, (list, tuple)):
        return [_resolve(item, MISSING, now) for item in value]
    return value


def apply_changes(data, changes, now):
    """
    Return a copy of ``data`` with ``changes`` applied.

    Keys containing dots address nested maps, which is how partial updates
    reach into ``lastMessage`` and friends.
    """
    result = copy.deepcopy(data)
    for path, value in changes.items():
        if value is DELETE_FIELD:
            _delete_field(result, path)
            continue
        current = get_field(result, path)
        resolved = _resolve(value, None if current is MISSING else current, now)
        _set_field(result, path, resolved)
    return result


# ============================================================================
# FILTERS & ORDERING
# ============================================================================

OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in", "array-contains")


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def matches(self, data):
        actual = get_field(data, self.field)
        expected = self.value.value if isinstance(self.value, enum.Enum) else self.value
        if self.op == "!=":
            return actual is not MISSING and actual != expected
        if actual is MISSING:
            return False
        if self.op == "==":
            return actual == expected
        if self.op == "in":
            return actual in expected
        if self.op == "array-contains":
            return isinstance(actual, list) and expected in actual
        try:
            if self.op == "<":
                return actual < expected
            if self.op == "<=":
                return actual <= expected
            if self.op == ">":
                return actual > expected
            return actual >= expected
        except TypeError:
            # Values of different types never satisfy a range comparison
            return False


def where(field_path, op, value):
    return Filter(field_path, op, value)


def filter_documents(documents, filters):
    return [doc for doc in documents if all(f.matches(doc.data) for f in filters)]


def sort_documents(documents, order_by, descending=False):
    """Sort by ``order_by``, dropping documents without the field; nulls sort first."""
    present = [doc for doc in documents if get_field(doc.data, order_by) is not MISSING]

    def sort_key(doc):
        value = get_field(doc.data, order_by)
        return (0, 0) if value is None else (1, value)

    return sorted(present, key=sort_key, reverse=descending)


# ============================================================================
# DOCUMENT
# ============================================================================

@dataclass
class Document:
    """A document snapshot: its id within the collection plus its fields."""
    id: str
    data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key, default=None):
        value = get_field(self.data, key)
        return default if value is MISSING else value

    def __getitem__(self, key):
        return self.data[key]

    def __contains__(self, key):
        return get_field(self.data, key) is not MISSING

    def to_dict(self):
        return {"id": self.id, **self.data}


# ============================================================================
# GATEWAY CONTRACT
# ============================================================================

Unsubscribe = Callable[[], None]


class RecordStore(abc.ABC):
    """Abstract gateway every backend implements."""

    def now(self):
        return timezone.now()

    @abc.abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Fetch one document, ``None`` when it does not exist."""

    @abc.abstractmethod
    def query(self, collection: str, filters: Iterable[Filter] = (),
              order_by: Optional[str] = None, descending: bool = False,
              limit: Optional[int] = None) -> List[Document]:
        """Return documents matching every filter, optionally ordered and limited."""

    @abc.abstractmethod
    def create(self, collection: str, data: Dict[str, Any],
               doc_id: Optional[str] = None) -> str:
        """Insert a new document and return its id."""

    @abc.abstractmethod
    def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> None:
        """Apply a partial update; raises ``NotFound`` if the document is absent."""

    @abc.abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any],
            merge: bool = False) -> None:
        """Create or overwrite a document; ``merge`` keeps fields not in ``data``."""

    @abc.abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document. Deleting a missing document is not an error."""

    @abc.abstractmethod
    def subscribe(self, collection: str, filters: Iterable[Filter],
                  callback: Callable[[List[Document]], None],
                  order_by: Optional[str] = None,
                  descending: bool = False) -> Unsubscribe:
        """
        Deliver the matching result set to ``callback`` now and after every
        change in ``collection``. Returns a function that stops delivery.
        """

    def get_or_raise(self, collection, doc_id, message=None):
        document = self.get(collection, doc_id) if doc_id else None
        if document is None:
            raise NotFound(message or f"Документ {collection}/{doc_id} не найден")
        return document

    def count(self, collection, filters=()):
        return len(self.query(collection, filters))
