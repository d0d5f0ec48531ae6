"""Target models of families, series, operations, indicators and their relations.

Also the reference resources: code lists, organizations and the links and
documents referenced from metadata reports.
"""

import logging
import re
from datetime import date, datetime

from rdflib import RDF, RDFS, XSD, Dataset, Graph, Literal, URIRef
from rdflib.namespace import DC, DCTERMS, FOAF, ORG, PROV, SKOS

from m0migrate.allocate import UriMapping
from m0migrate.extract import attributes_of, clean_text, first_value
from m0migrate.legacy import EntityRef, LegacyStore
from m0migrate.namespaces import (
    CODE,
    CODE_LIST,
    DOCUMENT,
    FAMILY,
    INDICATOR,
    INDICATORS_GRAPH_URI,
    INSEE,
    INSEE_DOCUMENT_FILES_BASE_URL,
    LINK,
    OPERATION,
    OPERATIONS_GRAPH_URI,
    ORGANIZATION,
    PAV,
    SCHEMA,
    SERIES,
    code_uri,
    document_uri,
    link_uri,
)
from m0migrate.relations import LegacyRelations, RelationKind, reference_languages

logger = logging.getLogger(__name__)

ENTITY_CLASSES = {
    FAMILY: INSEE.StatisticalOperationFamily,
    SERIES: INSEE.StatisticalOperationSeries,
    OPERATION: INSEE.StatisticalOperation,
    INDICATOR: INSEE.StatisticalIndicator,
}

LITERAL_PROPERTIES = {
    "TITLE": SKOS.prefLabel,
    "ALT_LABEL": SKOS.altLabel,
    "SUMMARY": DCTERMS.abstract,
    "HISTORY": SKOS.historyNote,
}

# legacy attribute -> (property, name of the code concept)
CODED_PROPERTIES = {
    "SOURCE_CATEGORY": (DCTERMS.type, "CategorieSource"),
    "FREQ_COLL": (DCTERMS.accrualPeriodicity, "Frequence"),
}

# both spellings exist in the legacy data
YEAR_ATTRIBUTES = ("MILLESIME", "MILESSIME")
_YEAR_PATTERN = re.compile(r"^\d{4}$")

# legacy attribute -> property of the foaf:Document; links have no English values
LINK_PROPERTIES = {
    "TITLE": RDFS.label,
    "SUMMARY": RDFS.comment,
    "TYPE": RDFS.comment,
    "URI": SCHEMA.url,
}
DOCUMENT_PROPERTIES = {
    "TITLE": RDFS.label,
    "URI": SCHEMA.url,
}
# by precedence
DOCUMENT_DATE_ATTRIBUTES = ("DATE_PUBLICATION", "DATE")


def parse_document_date(value: str) -> date | None:
    """Parse a legacy document date, dd/MM/yyyy or exceptionally dd-MM-yyyy."""
    try:
        return datetime.strptime(value.replace("-", "/").strip(), "%d/%m/%Y").date()
    except ValueError:
        return None


class ModelBuilder:
    """Build target graphs from a legacy store and a frozen URI mapping."""

    def __init__(
        self,
        store: LegacyStore,
        mapping: UriMapping,
        organization_uris: dict,
        relations: LegacyRelations,
    ):
        self.store = store
        self.mapping = mapping
        self.organization_uris = organization_uris
        self.relations = relations

    def build_entities(self, kind: str) -> Graph:
        """Build the resources of one kind with their literal and coded properties."""
        graph = Graph()
        graph.bind("insee", INSEE)
        count = 0
        for ref in self.store.entities(kind):
            target_uri = self.mapping.get(ref)
            if target_uri is None:
                logger.error("No target URI for %s, resource not converted", ref.uri)
                continue
            resource = URIRef(target_uri)
            graph.add((resource, RDF.type, ENTITY_CLASSES[kind]))
            for name, prop in LITERAL_PROPERTIES.items():
                for fact in attributes_of(self.store, ref, name):
                    graph.add((resource, prop, fact.literal))
            for name, (prop, concept) in CODED_PROPERTIES.items():
                code = first_value(self.store, ref, name)
                if code is not None:
                    graph.add((resource, prop, URIRef(code_uri(code.split()[0], concept))))
            if kind == OPERATION:
                self._add_year(graph, ref, resource)
            count += 1
        logger.debug("-> %i resources of kind %s converted", count, kind)
        return graph

    def _add_year(self, graph: Graph, ref: EntityRef, resource):
        for name in YEAR_ATTRIBUTES:
            year = first_value(self.store, ref, name)
            if year is None:
                continue
            if _YEAR_PATTERN.match(year):
                graph.add((resource, DCTERMS.valid, Literal(year)))
            else:
                logger.error("Invalid year value for %s: %s", ref.uri, year)

    def _endpoint(self, ref: EntityRef, edge):
        if ref.kind == ORGANIZATION:
            uri = self.organization_uris.get(ref)
        else:
            uri = self.mapping.get(ref)
        if uri is None:
            logger.warning(
                "No target URI for %s, relation %s dropped (%s -> %s)",
                ref.uri,
                edge.kind.value,
                edge.subject.uri,
                edge.target.uri,
            )
            return None
        return URIRef(uri)

    def relation_triples(self, edge):
        """Target triples of one relation edge, empty if an end is unresolved."""
        if edge.kind == RelationKind.ATTACHED_REPORT:
            # converted with the metadata reports
            return []
        subject = self._endpoint(edge.subject, edge)
        target = self._endpoint(edge.target, edge)
        if subject is None or target is None:
            return []
        if edge.kind == RelationKind.HAS_PARENT:
            return [
                (subject, DCTERMS.isPartOf, target),
                (target, DCTERMS.hasPart, subject),
            ]
        if edge.kind == RelationKind.RELATED_TO:
            return [(subject, RDFS.seeAlso, target)]
        if edge.kind == RelationKind.REPLACES:
            return [
                (subject, DCTERMS.replaces, target),
                (target, DCTERMS.isReplacedBy, subject),
            ]
        if edge.kind == RelationKind.PRODUCED_FROM:
            return [(subject, PROV.wasGeneratedBy, target)]
        return [(subject, edge.role.predicate, target)]

    def build_relations(self, kinds=None) -> Graph:
        """Build the relation triples, optionally for some subject kinds only."""
        graph = Graph()
        for edge in self.relations.edges():
            if kinds is not None and edge.subject.kind not in kinds:
                continue
            for triple in self.relation_triples(edge):
                graph.add(triple)
        return graph

    def build_operations_dataset(self) -> Dataset:
        """Families, series and operations in one graph, indicators in another."""
        dataset = Dataset()
        operations = dataset.graph(URIRef(OPERATIONS_GRAPH_URI))
        for kind in (FAMILY, SERIES, OPERATION):
            operations += self.build_entities(kind)
        operations += self.build_relations(kinds=(FAMILY, SERIES, OPERATION))
        indicators = dataset.graph(URIRef(INDICATORS_GRAPH_URI))
        indicators += self.build_entities(INDICATOR)
        indicators += self.build_relations(kinds=(INDICATOR,))
        logger.info(
            "Operations graph: %i statements, indicators graph: %i statements",
            len(operations),
            len(indicators),
        )
        return dataset

    def build_code_lists(self) -> Graph:
        """SKOS concept schemes of the legacy code lists, at their legacy URIs."""
        graph = Graph()
        graph.bind("skos", SKOS)
        for kind, rdf_type in ((CODE_LIST, SKOS.ConceptScheme), (CODE, SKOS.Concept)):
            for ref in self.store.entities(kind):
                resource = URIRef(ref.uri)
                graph.add((resource, RDF.type, rdf_type))
                for fact in attributes_of(self.store, ref, "TITLE"):
                    graph.add((resource, SKOS.prefLabel, fact.literal))
                notation = first_value(self.store, ref, "CODE_VALUE")
                if notation is not None:
                    graph.add((resource, SKOS.notation, Literal(notation)))
        for rel in self.store.relations():
            if rel.role != "RELATED_TO" or rel.target_role != "RELATED_TO":
                continue
            if rel.entity.kind != CODE_LIST or rel.target.kind != CODE:
                continue
            scheme, concept = URIRef(rel.entity.uri), URIRef(rel.target.uri)
            graph.add((concept, SKOS.inScheme, scheme))
            graph.add((concept, SKOS.topConceptOf, scheme))
            graph.add((scheme, SKOS.hasTopConcept, concept))
        return graph

    def build_organizations(self) -> Graph:
        graph = Graph()
        graph.bind("org", ORG)
        for ref, target_uri in self.organization_uris.items():
            resource = URIRef(target_uri)
            graph.add((resource, RDF.type, ORG.Organization))
            identifier = first_value(self.store, ref, "ID_CODE")
            if identifier is not None:
                graph.add((resource, DCTERMS.identifier, Literal(identifier)))
            for fact in attributes_of(self.store, ref, "TITLE"):
                graph.add((resource, SKOS.prefLabel, fact.literal))
        return graph

    def document_dates(self) -> dict[int, date]:
        """Date of each legacy document, DATE_PUBLICATION before DATE."""
        dates = {}
        for name in DOCUMENT_DATE_ATTRIBUTES:
            for fact in self.store.attribute_facts(DOCUMENT, name):
                value = clean_text(fact.literal)
                if fact.lang != "fr" or not value:
                    continue
                day = parse_document_date(value)
                if day is None:
                    logger.error(
                        "Unparseable date value '%s' for %s", value, fact.entity.uri
                    )
                    continue
                dates.setdefault(fact.entity.number, day)
        return dates

    def _build_references(self, kind, properties, uri_builder, url_base="") -> Graph:
        graph = Graph()
        graph.bind("foaf", FOAF)
        graph.bind("dc", DC)
        graph.bind("schema", SCHEMA)
        languages = reference_languages(self.store, kind)
        refs = self.store.entities(kind)
        for ref in refs:
            resource = URIRef(uri_builder(ref.number))
            graph.add((resource, RDF.type, FOAF.Document))
            lang = languages.get(ref.number)
            if lang is None:
                logger.warning("Cannot determine language of %s, using fr", ref.uri)
                lang = "fr"
            else:
                graph.add((resource, DC.language, Literal(lang)))
            for name, prop in properties.items():
                for fact in attributes_of(self.store, ref, name):
                    if fact.lang != "fr":
                        continue
                    if name == "URI":
                        graph.add((resource, prop, URIRef(url_base + fact.text)))
                    else:
                        graph.add((resource, prop, Literal(fact.text, lang=lang)))
        missing = set(languages) - {ref.number for ref in refs}
        for number in sorted(missing):
            logger.warning("Referenced %s %i is missing from the legacy store", kind, number)
        logger.debug("-> %i resources of kind %s converted", len(refs), kind)
        return graph

    def build_links(self) -> Graph:
        """Web pages referenced from rich texts, as foaf:Document resources."""
        return self._build_references(LINK, LINK_PROPERTIES, link_uri)

    def build_documents(self) -> Graph:
        """Documents referenced from rich texts, with their file URL and date."""
        graph = self._build_references(
            DOCUMENT, DOCUMENT_PROPERTIES, document_uri, INSEE_DOCUMENT_FILES_BASE_URL
        )
        graph.bind("pav", PAV)
        for number, day in self.document_dates().items():
            graph.add(
                (
                    URIRef(document_uri(number)),
                    PAV.lastRefreshedOn,
                    Literal(day.isoformat(), datatype=XSD.date),
                )
            )
        return graph
