"""Relations between legacy resources, read from the "associations" graph.

In the legacy store a relation is a "relatedTo" statement between two paths
whose last segments name the role on each side, for example:

    <http://baseUri/series/serie/12/REPLACES> m0:relatedTo
        <http://baseUri/series/serie/13/REMPLACE_PAR>

Each rule below selects the relation facts of one kind by their roles and
the kinds of both ends.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum

from rdflib import DCTERMS

from m0migrate.extract import first_value
from m0migrate.legacy import EntityRef, LegacyStore, RelationFact
from m0migrate.namespaces import (
    CODE,
    CODE_LIST,
    DOCUMENT,
    DOCUMENTATION,
    FAMILY,
    INDICATOR,
    LINK,
    OPERATION,
    ORGANIZATION,
    SERIES,
    document_uri,
    insee_unit_uri,
    is_insee_unit,
    link_uri,
    organization_uri,
)

logger = logging.getLogger(__name__)

# Allowed (child, parent) kinds of the hierarchy
HIERARCHY_KINDS = {(SERIES, FAMILY), (OPERATION, SERIES)}
DOCUMENTED_KINDS = (SERIES, OPERATION, INDICATOR)


class OrganizationRole(Enum):
    """Roles in which an organization is related to a legacy resource."""

    PRODUCER = ("ORGANISATION", DCTERMS.creator)
    STAKEHOLDER = ("STAKEHOLDERS", DCTERMS.contributor)

    def __init__(self, suffix, predicate):
        self.suffix = suffix
        self.predicate = predicate


class RelationKind(Enum):
    HAS_PARENT = "hasParent"
    RELATED_TO = "relatedTo"
    REPLACES = "replaces"
    PRODUCED_FROM = "producedFrom"
    HAS_ORGANIZATION = "hasOrganization"
    ATTACHED_REPORT = "attachedReport"


@dataclass(frozen=True)
class RelationEdge:
    subject: EntityRef
    kind: RelationKind
    target: EntityRef
    role: OrganizationRole | None = None


def _multimap(pairs) -> dict:
    result = defaultdict(list)
    for subject, target in pairs:
        result[subject].append(target)
    return dict(result)


def _select(relations, role, target_role):
    for rel in relations:
        if rel.role == role and rel.target_role == target_role:
            yield rel


# === Extraction rules ===


def extract_hierarchies(relations: list[RelationFact]) -> dict[EntityRef, EntityRef]:
    """Parent of each series (a family) and operation (a series).

    The first parent found wins; a different parent found later is logged
    as an error and discarded.
    """
    logger.debug("-> Extracting hierarchies between families, series and operations")
    hierarchies = {}
    for rel in _select(relations, "ASSOCIE_A", "ASSOCIE_A"):
        if (rel.entity.kind, rel.target.kind) not in HIERARCHY_KINDS:
            continue
        parent = hierarchies.get(rel.entity)
        if parent is None:
            hierarchies[rel.entity] = rel.target
        elif parent != rel.target:
            logger.error(
                "Conflicting parents for %s - %s and %s (first one kept)",
                rel.entity.uri,
                rel.target.uri,
                parent.uri,
            )
    return hierarchies


def extract_related(relations: list[RelationFact]) -> dict[EntityRef, list[EntityRef]]:
    """Generic "see also" relations.

    The legacy store records each of them in both directions, and both are
    kept. Relations between code lists and codes use the same role and are
    excluded.
    """
    logger.debug("-> Extracting RELATED_TO relations")
    return _multimap(
        (rel.entity, rel.target)
        for rel in _select(relations, "RELATED_TO", "RELATED_TO")
        if rel.entity.kind not in (CODE_LIST, CODE)
    )


def extract_replacements(
    relations: list[RelationFact],
) -> dict[EntityRef, list[EntityRef]]:
    """Resources replaced by each replacing resource."""
    logger.debug("-> Extracting replacement relations")
    return _multimap(
        (rel.entity, rel.target)
        for rel in _select(relations, "REPLACES", "REMPLACE_PAR")
    )


def extract_productions(relations: list[RelationFact]) -> dict[EntityRef, list[EntityRef]]:
    """Series from which each indicator is produced."""
    logger.debug("-> Extracting PRODUCED_FROM relations between indicators and series")
    productions = _multimap(
        (rel.entity, rel.target)
        for rel in _select(relations, "PRODUCED_FROM", "PRODUIT_INDICATEURS")
        if rel.entity.kind == INDICATOR and rel.target.kind == SERIES
    )
    logger.debug("-> Number of indicators with PRODUCED_FROM relations: %i", len(productions))
    return productions


def extract_organizational_relations(
    relations: list[RelationFact], role: OrganizationRole
) -> dict[EntityRef, list[EntityRef]]:
    """Organizations related to each resource in the given role."""
    logger.debug("-> Extracting organizational relations with role %s", role.suffix)
    return _multimap(
        (rel.entity, rel.target)
        for rel in _select(relations, role.suffix, role.suffix)
        if rel.target.kind == ORGANIZATION
    )


def extract_attachments(relations: list[RelationFact]) -> dict[EntityRef, EntityRef]:
    """Resource documented by each documentation (quality report).

    Attachments must be one-to-one. A documentation attached to several
    resources, or a resource with several documentations, is logged as an
    error and only the first attachment is kept.
    """
    logger.debug("-> Extracting attachments between documentations and resources")
    attachments = {}
    documented = {}
    for rel in _select(relations, "ASSOCIE_A", "ASSOCIE_A"):
        if rel.entity.kind != DOCUMENTATION or rel.target.kind not in DOCUMENTED_KINDS:
            continue
        if rel.entity in attachments:
            if attachments[rel.entity] != rel.target:
                logger.error(
                    "Documentation %s is attached to several resources: %s and %s",
                    rel.entity.uri,
                    attachments[rel.entity].uri,
                    rel.target.uri,
                )
            continue
        if rel.target in documented:
            logger.error(
                "Resource %s has several documentations: %s and %s",
                rel.target.uri,
                documented[rel.target].uri,
                rel.entity.uri,
            )
            continue
        attachments[rel.entity] = rel.target
        documented[rel.target] = rel.entity
    return attachments


@dataclass(frozen=True)
class LegacyRelations:
    """All relations of a legacy snapshot, keyed by subject."""

    hierarchies: dict = field(default_factory=dict)
    related: dict = field(default_factory=dict)
    replacements: dict = field(default_factory=dict)
    productions: dict = field(default_factory=dict)
    organizations: dict = field(default_factory=dict)
    attachments: dict = field(default_factory=dict)

    def edges(self):
        """All relations as edges, in a fixed order of relation kinds."""
        for child, parent in self.hierarchies.items():
            yield RelationEdge(child, RelationKind.HAS_PARENT, parent)
        for subject, targets in self.related.items():
            for target in targets:
                yield RelationEdge(subject, RelationKind.RELATED_TO, target)
        for subject, targets in self.replacements.items():
            for target in targets:
                yield RelationEdge(subject, RelationKind.REPLACES, target)
        for subject, targets in self.productions.items():
            for target in targets:
                yield RelationEdge(subject, RelationKind.PRODUCED_FROM, target)
        for role, mapping in self.organizations.items():
            for subject, targets in mapping.items():
                for target in targets:
                    yield RelationEdge(
                        subject, RelationKind.HAS_ORGANIZATION, target, role
                    )
        for documentation, target in self.attachments.items():
            yield RelationEdge(documentation, RelationKind.ATTACHED_REPORT, target)


def extract_all(store: LegacyStore) -> LegacyRelations:
    relations = store.relations()
    return LegacyRelations(
        hierarchies=extract_hierarchies(relations),
        related=extract_related(relations),
        replacements=extract_replacements(relations),
        productions=extract_productions(relations),
        organizations={
            role: extract_organizational_relations(relations, role)
            for role in OrganizationRole
        },
        attachments=extract_attachments(relations),
    )


# === Organizations ===


def organization_uris(store: LegacyStore, overrides=None) -> dict[EntityRef, str]:
    """Target URI of each legacy organization, from its ID_CODE attribute.

    INSEE units (identifiers like "D130") get a URI in the INSEE unit scheme,
    other organizations a URI built from their identifier. The overrides map
    legacy organization numbers to corrected identifiers; they are reported
    each time so that they get reviewed.
    """
    overrides = {} if overrides is None else overrides
    uris = {}
    for ref in store.entities(ORGANIZATION):
        org_id = first_value(store, ref, "ID_CODE")
        if ref.number in overrides:
            logger.warning(
                'Identifier of organization %s overridden: "%s" replaced by "%s" '
                "(check that the correction still applies)",
                ref.uri,
                org_id,
                overrides[ref.number],
            )
            org_id = overrides[ref.number]
        if not org_id:
            logger.warning("No identifier for organization %s", ref.uri)
            continue
        if is_insee_unit(org_id):
            uris[ref] = insee_unit_uri("DG75-" + org_id)
        else:
            uris[ref] = organization_uri(org_id)
    logger.debug("-> Target URIs computed for %i organizations", len(uris))
    return uris


# === References of documentation attributes ===


def attribute_references(store: LegacyStore, lang: str = "fr") -> dict:
    """Links and documents referenced by the attributes of each documentation.

    Returns {documentation number: {attribute: [target URIs]}}, sorted.
    English texts use the English variant of the relatedTo predicate.
    """
    uri_builders = {LINK: link_uri, DOCUMENT: document_uri}
    references = defaultdict(lambda: defaultdict(set))
    for rel in store.relations(lang):
        if rel.entity.kind != DOCUMENTATION or rel.target.kind not in uri_builders:
            continue
        if rel.role == "ASSOCIE_A":
            # not a SIMS attribute
            continue
        if rel.role != rel.target_role:
            logger.error(
                "Unexpected reference ignored: %s/%s to %s/%s",
                rel.entity.uri,
                rel.role,
                rel.target.uri,
                rel.target_role,
            )
            continue
        target_uri = uri_builders[rel.target.kind](rel.target.number)
        references[rel.entity.number][rel.role].add(target_uri)
    return {
        number: {name: sorted(uris) for name, uris in sorted(attrs.items())}
        for number, attrs in sorted(references.items())
    }


def reference_languages(store: LegacyStore, kind: str) -> dict[int, str]:
    """Language of each link or document, from the side that references it.

    A link referenced from a French text is "fr", from an English text only
    "en". French wins when both reference it.
    """
    languages = {}
    for lang in ("fr", "en"):
        for rel in store.relations(lang):
            if rel.entity.kind != DOCUMENTATION or rel.target.kind != kind:
                continue
            number = rel.target.number
            if number not in languages:
                languages[number] = lang
            elif languages[number] != lang:
                logger.warning("%s is both English and French", rel.target.uri)
    return dict(sorted(languages.items()))


def organization_values(
    store: LegacyStore, org_uris: dict[EntityRef, str], attributes
) -> dict:
    """Organizations given as values of SIMS attributes through associations.

    Returns {documentation number: {attribute: [organization URIs]}}, sorted.
    """
    values = defaultdict(lambda: defaultdict(set))
    for rel in store.relations():
        if rel.entity.kind != DOCUMENTATION or rel.role not in attributes:
            continue
        if rel.target.kind != ORGANIZATION:
            logger.error(
                "Unexpected value ignored for %s/%s: %s",
                rel.entity.uri,
                rel.role,
                rel.target.uri,
            )
            continue
        target_uri = org_uris.get(rel.target)
        if target_uri is None:
            logger.warning(
                "No target URI for organization %s (value of %s/%s)",
                rel.target.uri,
                rel.entity.uri,
                rel.role,
            )
            continue
        values[rel.entity.number][rel.role].add(target_uri)
    return {
        number: {name: sorted(uris) for name, uris in sorted(attrs.items())}
        for number, attrs in sorted(values.items())
    }
