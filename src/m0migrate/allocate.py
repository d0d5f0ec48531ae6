"""Allocation of target URIs to legacy families, series, operations and indicators.

Target numbers come from one pool shared by all resource types. Numbers
already used by fixed mappings are removed from the pool first; then each
type is allocated in turn, and a reserve is withheld after each type so that
resources added later by hand can be numbered next to their siblings.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Mapping
from pathlib import Path

from m0migrate.checks import MigrationError, check_mappings
from m0migrate.config import RESOURCE_TYPES, AllocationConfig, MigrationConfig
from m0migrate.extract import first_value
from m0migrate.legacy import EntityRef, LegacyStore, parse_entity_uri
from m0migrate.namespaces import (
    FAMILY,
    OPERATION,
    SERIES,
    collection_name,
    operation_resource_uri,
    target_number,
)

logger = logging.getLogger(__name__)


class IdPool:
    """Sorted set of free target numbers, consumed from the lowest."""

    def __init__(self, numbers):
        self._free = sorted(set(numbers))

    @classmethod
    def from_range(cls, first: int, last: int) -> IdPool:
        return cls(range(first, last + 1))

    def __len__(self):
        return len(self._free)

    def __contains__(self, number):
        return number in self._free

    def discard(self, number: int):
        if number in self._free:
            self._free.remove(number)

    def take(self) -> int:
        if not self._free:
            msg = "No more free numbers in the pool of target identifiers."
            logger.error(msg)
            raise MigrationError(msg)
        return self._free.pop(0)

    def withhold(self, count: int) -> list[int]:
        """Remove up to count numbers from the head of the pool."""
        withheld, self._free = self._free[:count], self._free[count:]
        return withheld


class UriMapping(Mapping):
    """Read-only mapping from legacy entities to target URIs."""

    def __init__(self, mappings=None):
        self._mappings = dict(mappings or {})

    def __getitem__(self, ref: EntityRef) -> str:
        return self._mappings[ref]

    def __iter__(self):
        return iter(sorted(self._mappings))

    def __len__(self):
        return len(self._mappings)

    def __repr__(self):
        return f"UriMapping({len(self)} entries)"

    def save(self, path: Path):
        """Write the mapping as "legacy URI,target URI" lines."""
        with path.open("w", newline="", encoding="utf-8") as fp:
            writer = csv.writer(fp)
            for ref, uri in self.items():
                writer.writerow([ref.uri, uri])
        logger.info("URI mapping saved to: %s", path)

    @classmethod
    def load(cls, path: Path) -> UriMapping:
        mappings = {}
        with path.open(newline="", encoding="utf-8") as fp:
            for line_no, row in enumerate(csv.reader(fp), start=1):
                if not row:
                    continue
                ref = parse_entity_uri(row[0]) if len(row) == 2 else None
                if ref is None:
                    msg = f'Invalid line {line_no} in URI mapping file "{path}": {row}'
                    logger.error(msg)
                    raise MigrationError(msg)
                mappings[ref] = row[1]
        logger.info("URI mapping read from: %s", path)
        return cls(mappings)


# === Fixed mappings ===


def read_operation_ids(path: Path) -> dict[int, str]:
    """Read "m0Id,web4gId" lines into {legacy operation number: web4g id}."""
    ids = {}
    with path.open(newline="", encoding="utf-8") as fp:
        for row in csv.reader(fp):
            if len(row) < 2 or not row[0].strip().isdigit():
                continue
            ids[int(row[0])] = row[1].strip()
    logger.debug("-> Read %i operation correspondences from %s", len(ids), path)
    return ids


def read_series_ids(path: Path, excluded=()) -> dict[str, str]:
    """Read "FR-ddsId,web4gId" lines into {DDS id: web4g id}.

    Lines not starting with "FR-" and excluded DDS ids are ignored.
    """
    ids = {}
    with path.open(newline="", encoding="utf-8") as fp:
        for row in csv.reader(fp):
            if len(row) < 2 or not row[0].startswith("FR-"):
                continue
            dds_id = row[0].removeprefix("FR-").strip()
            if dds_id in excluded:
                logger.debug("-> Excluded DDS identifier: %s", dds_id)
                continue
            ids[dds_id] = row[1].strip()
    logger.debug("-> Read %i series correspondences from %s", len(ids), path)
    return ids


def fixed_mappings(store: LegacyStore, config: AllocationConfig) -> dict[EntityRef, str]:
    """Collect the correspondences that must be used instead of allocation.

    Every correspondence line is kept, also for legacy resources absent from
    the snapshot: its target number is published and must stay out of the
    pool.
    """
    fixed = {}
    if config.operations_file is not None:
        for number, web4g_id in read_operation_ids(config.operations_file).items():
            ref = EntityRef(OPERATION, number)
            if not store.exists(ref):
                logger.info(
                    "Fixed mapping kept for operation %s absent from the store", ref.uri
                )
            fixed[ref] = operation_resource_uri(web4g_id, OPERATION)
    if config.series_file is not None:
        series_ids = read_series_ids(config.series_file, config.excluded_dds_ids)
        for ref in store.entities(SERIES):
            dds_id = first_value(store, ref, "ID_DDS")
            if dds_id is None:
                continue
            dds_id = dds_id.removeprefix("OPE-")
            if dds_id in series_ids:
                fixed[ref] = operation_resource_uri(series_ids[dds_id], SERIES)
            else:
                logger.info("No fixed mapping for series %s (DDS id %s)", ref.uri, dds_id)
    for number, web4g_id in config.extra_series.items():
        fixed[EntityRef(SERIES, number)] = operation_resource_uri(web4g_id, SERIES)
    return fixed


# === Allocation ===


class UriAllocator:
    """Allocate target URIs, one resource type after the other.

    Types are processed in the order of RESOURCE_TYPES. For each type, legacy
    numbers are walked from 1 to the sequence marker of the collection;
    families keep their own number, the other types take the lowest free
    number of the pool. The reserve of a type is a capacity: it counts the
    numbers just allocated, and only the remainder is withheld.
    """

    def __init__(self, config: AllocationConfig):
        self.config = config

    def allocate(self, store: LegacyStore, fixed: Mapping) -> UriMapping:
        mappings = dict(fixed)
        pool = IdPool.from_range(self.config.first_id, self.config.last_id)
        for uri in fixed.values():
            pool.discard(target_number(uri))

        for kind in RESOURCE_TYPES:
            collection = collection_name(kind)
            max_number = store.max_sequence(collection)
            if max_number is None:
                logger.error(
                    "No sequence marker for collection %s, no URI allocated", collection
                )
                continue
            allocated = 0
            for number in range(1, max_number + 1):
                ref = EntityRef(kind, number)
                if ref in fixed or not store.exists(ref):
                    continue
                if kind == FAMILY:
                    mappings[ref] = operation_resource_uri(number, kind)
                    continue
                mappings[ref] = operation_resource_uri(pool.take(), kind)
                allocated += 1
            reserve = self.config.reserves.get(kind, 0)
            withheld = pool.withhold(max(reserve - allocated, 0))
            logger.debug(
                "-> %s: %i URIs allocated, %i numbers withheld", kind, allocated, len(withheld)
            )

        check_mappings(mappings)
        return UriMapping(mappings)


def allocate(store: LegacyStore, fixed: Mapping, config: MigrationConfig) -> UriMapping:
    return UriAllocator(config.allocation).allocate(store, fixed)
