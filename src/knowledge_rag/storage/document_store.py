"""Document store — one persisted unit per ingested document.

Usage::

    from knowledge_rag.storage import DocumentStore, LocalDirectoryRoot

    store = DocumentStore(LocalDirectoryRoot("storage/documents"))
    for record in store.list_metadata():
        print(record.namespace, record.chunk_count)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from knowledge_rag.errors import CorruptUnitError, StorageUnavailableError, WriteError
from knowledge_rag.models import DocumentRecord, PersistedUnit
from knowledge_rag.storage.backends import StorageRoot

logger = logging.getLogger(__name__)


@dataclass
class StoreSnapshot:
    """Result of one full scan of the store.

    Attributes
    ----------
    units:
        Every unit that deserialized cleanly, in key order.
    errors:
        One :class:`CorruptUnitError` per unit that was skipped.
    """

    units: list[PersistedUnit] = field(default_factory=list)
    errors: list[CorruptUnitError] = field(default_factory=list)


class DocumentStore:
    """Persists and enumerates :class:`PersistedUnit` objects on a storage root.

    The store is the only writer of units.  It holds no cache: every read
    reflects what is on the root at that moment.
    """

    def __init__(self, root: StorageRoot) -> None:
        self.root = root

    # -- writes ---------------------------------------------------------------

    def save(self, unit: PersistedUnit) -> None:
        """Write *unit* under its namespace in a single atomic put.

        Raises
        ------
        WriteError
            When serialization or the underlying write fails.
        """
        key = unit.namespace
        try:
            payload = unit.model_dump_json(by_alias=True).encode("utf-8")
            self.root.put(key, payload)
        except Exception as exc:
            raise WriteError(f"failed to write unit {key!r}: {exc}") from exc
        logger.info("Saved unit %s (%d chunks, %d bytes)", key, len(unit.chunks), len(payload))

    # -- reads ----------------------------------------------------------------

    def get(self, namespace: str) -> PersistedUnit:
        """Load a single unit.

        Raises ``KeyError`` when absent and :class:`CorruptUnitError` when
        it cannot be decoded.
        """
        data = self.root.get(namespace)
        return self._decode(namespace, data)

    def scan(self) -> StoreSnapshot:
        """Load every unit, collecting per-unit failures instead of raising.

        Raises
        ------
        StorageUnavailableError
            Only when the storage root cannot be enumerated.
        """
        try:
            keys = self.root.list_keys()
        except OSError as exc:
            raise StorageUnavailableError(f"cannot list storage root {self.root!r}: {exc}") from exc

        snapshot = StoreSnapshot()
        for key in keys:
            try:
                data = self.root.get(key)
            except KeyError:
                snapshot.errors.append(CorruptUnitError(f"unit {key!r} disappeared during scan", key=key))
                continue
            except (OSError, ValueError) as exc:
                snapshot.errors.append(CorruptUnitError(f"unit {key!r} could not be read: {exc}", key=key))
                continue
            try:
                snapshot.units.append(self._decode(key, data))
            except CorruptUnitError as exc:
                snapshot.errors.append(exc)

        for error in snapshot.errors:
            logger.warning("Skipping stored unit: %s", error)
        return snapshot

    def load_all(self) -> list[PersistedUnit]:
        """Return every readable unit; unreadable ones are skipped and logged."""
        return self.scan().units

    def list_metadata(self) -> list[DocumentRecord]:
        """Return the :class:`DocumentRecord` of every readable unit."""
        return [unit.metadata for unit in self.load_all()]

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _decode(key: str, data: bytes) -> PersistedUnit:
        try:
            unit = PersistedUnit.model_validate_json(data)
        except ValidationError as exc:
            raise CorruptUnitError(
                f"unit {key!r} is malformed ({exc.error_count()} validation errors)", key=key
            ) from exc
        if unit.namespace != key:
            raise CorruptUnitError(f"unit stored under {key!r} claims namespace {unit.namespace!r}", key=key)
        return unit
