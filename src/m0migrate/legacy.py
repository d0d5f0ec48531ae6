"""Reading of the legacy M0 dataset.

The legacy store encodes its schema in subject paths instead of predicates:

    http://baseUri/{collection}/{singular}/{id}[/{ATTRIBUTE}[/{ROLE}]]

with only a handful of predicates ("values", "valuesGb", "relatedTo", ...).
LegacyStore parses every statement once into AttributeFact or RelationFact
records and indexes them, so that no other module needs to look at the shape
of legacy URIs.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path

from rdflib import Dataset, Graph, Literal, URIRef

from m0migrate.checks import MigrationError
from m0migrate.namespaces import (
    M0_BASE_URI,
    M0_GRAPH_BASE_URI,
    M0_RELATED_TO,
    M0_RELATED_TO_EN,
    M0_SEQUENCE_VALUE,
    M0_VALUES,
    M0_VALUES_EN,
    collection_name,
)

logger = logging.getLogger(__name__)

DATASET_FILE_ENDINGS = {
    ".trig": "trig",
    ".nq": "nquads",
    ".nquads": "nquads",
    ".trix": "trix",
}

_PATH_PATTERN = re.compile(
    "^"
    + re.escape(M0_BASE_URI)
    + r"(?P<collection>[^/]+)/(?P<kind>[^/]+)/(?P<number>[0-9]+)(?P<tail>(/[^/]+){0,2})$"
)

_LANGUAGES = {M0_VALUES: "fr", M0_VALUES_EN: "en"}
_RELATION_LANGUAGES = {M0_RELATED_TO: "fr", M0_RELATED_TO_EN: "en"}


@dataclass(frozen=True, order=True)
class EntityRef:
    """A legacy (type, id) pair, e.g. ("serie", 7)."""

    kind: str
    number: int

    @property
    def collection(self) -> str:
        return collection_name(self.kind)

    @property
    def uri(self) -> str:
        return f"{M0_BASE_URI}{self.collection}/{self.kind}/{self.number}"

    def __str__(self):
        return f"{self.kind}/{self.number}"


@dataclass(frozen=True)
class AttributeFact:
    entity: EntityRef
    name: str
    lang: str
    literal: Literal

    @property
    def text(self) -> str:
        return str(self.literal)


@dataclass(frozen=True)
class RelationFact:
    entity: EntityRef
    role: str
    target: EntityRef
    target_role: str
    lang: str


def parse_path(uri) -> tuple[EntityRef, tuple[str, ...]] | None:
    """Split a legacy URI into the entity and the trailing path segments.

    Returns None for URIs that do not follow the legacy path pattern.
    """
    match = _PATH_PATTERN.match(str(uri))
    if match is None:
        return None
    kind = match.group("kind")
    if match.group("collection") != f"{kind}s":
        return None
    segments = tuple(seg for seg in match.group("tail").split("/") if seg)
    return EntityRef(kind, int(match.group("number"))), segments


def parse_entity_uri(uri) -> EntityRef | None:
    """Parse the base URI of a legacy entity (no trailing segments)."""
    parsed = parse_path(uri)
    if parsed is None or parsed[1]:
        return None
    return parsed[0]


def parse_statement(subject, predicate, obj) -> AttributeFact | RelationFact | None:
    """Turn one legacy statement into a fact, or None if it carries none."""
    parsed = parse_path(subject)
    if parsed is None:
        return None
    entity, segments = parsed
    if not segments:
        return None
    name = segments[-1]
    if predicate in _LANGUAGES and isinstance(obj, Literal):
        return AttributeFact(entity, name, _LANGUAGES[predicate], obj)
    if predicate in _RELATION_LANGUAGES and isinstance(obj, URIRef):
        target = parse_path(obj)
        if target is None or not target[1]:
            logger.debug("-> Unexpected relation object ignored: %s", obj)
            return None
        return RelationFact(
            entity, name, target[0], target[1][-1], _RELATION_LANGUAGES[predicate]
        )
    return None


class LegacyStore:
    """Read-only, indexed view of one legacy dataset snapshot."""

    def __init__(self, dataset: Dataset):
        self.dataset = dataset
        self._entities = defaultdict(set)
        self._attributes = defaultdict(list)
        self._relations = []
        self._sequences = {}
        self._index()

    @classmethod
    def load(cls, path: Path) -> LegacyStore:
        """Parse a legacy dataset file (TriG, N-Quads or TriX).

        Any problem with the file is fatal for the run.
        """
        if not path.exists():
            msg = f'Legacy dataset "{path}" not found.'
            logger.error(msg)
            raise MigrationError(msg)
        rdf_format = DATASET_FILE_ENDINGS.get(path.suffix.lower())
        if rdf_format is None:
            msg = (
                "Legacy dataset must end with one of the RDF dataset formats: "
                f"'{', '.join(DATASET_FILE_ENDINGS)}'"
            )
            logger.error(msg)
            raise MigrationError(msg)
        dataset = Dataset()
        try:
            dataset.parse(str(path), format=rdf_format)
        except Exception as exc:
            msg = f'Legacy dataset "{path}" could not be read: {exc}'
            logger.error(msg)
            raise MigrationError(msg) from exc
        logger.info("Legacy dataset read from: %s", path)
        return cls(dataset)

    def _index(self):
        n_facts = 0
        for graph in self.dataset.graphs():
            for subject, predicate, obj in graph:
                if predicate == M0_SEQUENCE_VALUE:
                    self._register_sequence(graph, subject, obj)
                    continue
                parsed = parse_path(subject)
                if parsed is None:
                    continue
                self._entities[parsed[0].kind].add(parsed[0].number)
                fact = parse_statement(subject, predicate, obj)
                if isinstance(fact, AttributeFact):
                    self._attributes[(fact.entity, fact.name)].append(fact)
                    n_facts += 1
                elif isinstance(fact, RelationFact):
                    self._relations.append(fact)
                    n_facts += 1
        logger.debug(
            "-> Indexed %i facts about %i legacy resources.",
            n_facts,
            sum(len(numbers) for numbers in self._entities.values()),
        )

    def _register_sequence(self, graph: Graph, subject, obj):
        # The marker is http://baseUri/{collection}/{singular}/sequence; fall
        # back to the name of the graph holding it.
        path = str(subject)
        if path.startswith(M0_BASE_URI):
            collection = path[len(M0_BASE_URI) :].split("/")[0]
        else:
            collection = str(graph.identifier).removeprefix(M0_GRAPH_BASE_URI)
        if collection in self._sequences:
            logger.warning("Several sequence markers for collection %s", collection)
            return
        try:
            self._sequences[collection] = int(str(obj).strip())
        except ValueError:
            logger.error("Invalid sequence value %r for collection %s", obj, collection)

    def exists(self, ref: EntityRef) -> bool:
        """True if at least one statement has the entity as base path."""
        return ref.number in self._entities.get(ref.kind, ())

    def entities(self, kind: str) -> list[EntityRef]:
        """All existing entities of a kind, by ascending number."""
        return [EntityRef(kind, n) for n in sorted(self._entities.get(kind, ()))]

    def max_sequence(self, collection: str) -> int | None:
        """Upper bound of legacy numbers in a collection, None without marker."""
        return self._sequences.get(collection)

    def facts(self, ref: EntityRef, name: str) -> list[AttributeFact]:
        """Attribute facts whose trailing path segment is exactly name."""
        return list(self._attributes.get((ref, name), ()))

    def attribute_facts(self, kind: str, name: str) -> list[AttributeFact]:
        """Attribute facts of one name over all entities of a kind."""
        return [
            fact
            for (ref, fact_name), facts in self._attributes.items()
            if ref.kind == kind and fact_name == name
            for fact in facts
        ]

    def relations(self, lang: str | None = "fr") -> list[RelationFact]:
        """Relation facts in store order; lang=None returns both languages."""
        return [rel for rel in self._relations if lang is None or rel.lang == lang]

    def triples(self):
        """All statements of the dataset, over all graphs."""
        for graph in self.dataset.graphs():
            yield from graph
