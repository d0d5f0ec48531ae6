"""Conversion of legacy documentations into SIMSFr metadata reports.

Each legacy documentation gives one report graph. The SIMS schema drives the
conversion: for each entry, the legacy attribute named by the entry code is
looked up in the documentation and its values are converted according to the
range of the entry.
"""

import logging
import re
from datetime import date

import networkx as nx
from rdflib import RDF, RDFS, XSD, BNode, Dataset, Graph, Literal, URIRef
from rdflib.namespace import DCMITYPE, DCTERMS, ORG

from m0migrate.config import ReportConfig
from m0migrate.extract import clean_text, subtree_of
from m0migrate.legacy import AttributeFact, EntityRef, LegacyStore, parse_statement
from m0migrate.namespaces import (
    DOCUMENTATION,
    INSEE,
    ISO_639,
    SDMX_MM,
    code_uri,
    report_graph_uri,
    report_uri,
    reported_attribute_uri,
    rich_text_uri,
    sims_attribute_property_uri,
)
from m0migrate.relations import attribute_references, organization_values
from m0migrate.sims import RangeKind, SimsEntry, SimsScheme, resolve_range

logger = logging.getLogger(__name__)

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _values_by_attribute(subtree: Graph) -> dict[tuple[str, str], list[str]]:
    """Cleaned non-blank values of the documentation, by (attribute, lang)."""
    values = {}
    for subject, predicate, obj in sorted(subtree, key=lambda t: (str(t[0]), str(t[2]))):
        fact = parse_statement(subject, predicate, obj)
        if not isinstance(fact, AttributeFact):
            continue
        text = clean_text(fact.literal)
        if not text:
            logger.debug("-> Empty value ignored for attribute %s", fact.name)
            continue
        values.setdefault((fact.name, fact.lang), []).append(text)
    return values


def is_valid_date(value: str) -> bool:
    """Check for a strict yyyy-MM-dd date."""
    if not _DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


class ReportBuilder:
    def __init__(
        self,
        store: LegacyStore,
        scheme: SimsScheme,
        config: ReportConfig,
        mapping,
        relations,
        organization_uris,
    ):
        self.store = store
        self.scheme = scheme
        self.config = config
        self.mapping = mapping
        self.relations = relations
        self.hierarchy = scheme.hierarchy()
        self.references = {
            "fr": attribute_references(store, "fr"),
            "en": attribute_references(store, "en"),
        }
        self.organization_values = organization_values(
            store, organization_uris, config.organization_attributes
        )

    def _attached_target(self, ref: EntityRef):
        target = self.relations.attachments.get(ref)
        if target is None:
            return None
        target_uri = self.mapping.get(target)
        if target_uri is None:
            logger.warning(
                "No target URI for %s documented by %s, report not attached",
                target.uri,
                ref.uri,
            )
        return target_uri

    def build_report(self, number: int) -> Graph:
        """Build the metadata report graph of one legacy documentation."""
        ref = EntityRef(DOCUMENTATION, number)
        subtree = subtree_of(self.store, ref.uri)
        values = _values_by_attribute(subtree)
        logger.debug(
            "-> Creating metadata report %i from %i legacy statements", number, len(subtree)
        )

        graph = Graph()
        graph.bind("sdmx-mm", SDMX_MM)
        graph.bind("insee", INSEE)
        report = URIRef(report_uri(number))
        graph.add((report, RDF.type, SDMX_MM.MetadataReport))
        graph.add((report, RDFS.label, Literal(f"Metadata report {number}", lang="en")))
        graph.add(
            (report, RDFS.label, Literal(f"Rapport de métadonnées {number}", lang="fr"))
        )
        target_uri = self._attached_target(ref)
        if target_uri is not None:
            graph.add((report, SDMX_MM.target, URIRef(target_uri)))

        created = {}
        for entry in self.scheme.entries:
            if entry.is_direct or entry.is_quality_metric:
                continue
            node = self._convert_entry(graph, report, number, entry, values)
            if node is not None:
                created[entry.notation] = node
        self._link_parents(graph, created)
        return graph

    def _link_parents(self, graph: Graph, created: dict):
        for notation, node in created.items():
            ancestors = [
                ancestor
                for ancestor in nx.ancestors(self.hierarchy, notation)
                if ancestor in created
            ]
            if not ancestors:
                continue
            # the nearest ancestor has the longest notation
            nearest = max(ancestors, key=lambda item: item.count("."))
            graph.add((node, SDMX_MM.parent, created[nearest]))

    def _reported_attribute(self, graph: Graph, report, number, entry):
        if not self.config.create_reported_attributes:
            return report
        node = URIRef(reported_attribute_uri(number, entry.notation))
        graph.add((node, RDF.type, SDMX_MM.ReportedAttribute))
        graph.add((node, SDMX_MM.metadataReport, report))
        return node

    def _convert_entry(self, graph, report, number, entry: SimsEntry, values):
        """Add the values of one SIMS entry; return the reported attribute."""
        attr_range = resolve_range(entry, self.config)
        if attr_range is None:
            logger.error("No range for SIMS entry %s, values not converted", entry.notation)
            return None
        prop = URIRef(sims_attribute_property_uri(entry.notation, entry.is_added_or_modified))
        fr_values = values.get((entry.code, "fr"), [])
        en_values = values.get((entry.code, "en"), [])

        if attr_range.kind == RangeKind.ORGANIZATION:
            return self._add_organization(graph, report, number, entry, prop, fr_values)
        if not fr_values:
            refs = self.references["fr"].get(number, {}).get(entry.code)
            if attr_range.kind == RangeKind.RICH_TEXT and refs:
                logger.debug(
                    "-> No value for %s in documentation %i, but references exist: %s",
                    entry.code,
                    number,
                    refs,
                )
                fr_values = [None]
            else:
                return None
        if len(fr_values) > 1 and not entry.multiple:
            logger.error(
                "Multiple values for non-multiple SIMS attribute %s in documentation %i",
                entry.code,
                number,
            )
            return None

        objects = []
        for value in fr_values:
            objects.extend(
                self._convert_value(graph, number, entry, attr_range, value, en_values)
            )
        if not objects:
            # nothing convertible, no reported attribute either
            return None
        target = self._reported_attribute(graph, report, number, entry)
        for obj in objects:
            graph.add((target, prop, obj))
        return target if target != report else None

    def _convert_value(self, graph, number, entry, attr_range, value, en_values) -> list:
        """Objects of the SIMS property for one French value."""
        if attr_range.kind == RangeKind.RICH_TEXT:
            return self._rich_texts(graph, number, entry, value, en_values)
        if attr_range.kind == RangeKind.REPORTED_ATTRIBUTE:
            placeholder = BNode()
            graph.add((placeholder, RDF.type, SDMX_MM.ReportedAttribute))
            return [placeholder]
        if attr_range.kind == RangeKind.STRING:
            literals = [Literal(value, lang="fr")]
            if en_values:
                literals.append(Literal(en_values[0], lang="en"))
            return literals
        if attr_range.kind == RangeKind.DATE:
            if is_valid_date(value):
                return [Literal(value, datatype=XSD.date)]
            logger.error(
                "Unparseable date value '%s' for %s in documentation %i",
                value,
                entry.code,
                number,
            )
            return []
        if attr_range.kind == RangeKind.CODE:
            uri = self._code(value, attr_range.concept)
            return [] if uri is None else [URIRef(uri)]
        logger.error("Unexpected range %s for SIMS entry %s", attr_range.kind, entry.notation)
        return []

    def _code(self, value: str, concept: str):
        code = value.split()[0]
        recoded = self.config.recodings.get(concept, {}).get(code, code)
        if recoded != code:
            logger.debug("-> Recoding %s code from '%s' to '%s'", concept, code, recoded)
        if recoded in self.config.excluded_codes.get(concept, ()):
            logger.debug("-> %s code '%s' not converted", concept, recoded)
            return None
        return code_uri(recoded, concept)

    def _rich_texts(self, graph, number, entry, value, en_values) -> list[URIRef]:
        texts = [("fr", value)]
        if en_values:
            texts.append(("en", en_values[0]))
        nodes = []
        for lang, text in texts:
            node = URIRef(rich_text_uri(number, entry.notation, lang))
            graph.add((node, RDF.type, DCMITYPE.Text))
            if text is not None:
                graph.add((node, RDF.value, Literal(text, lang=lang)))
            graph.add((node, DCTERMS.language, ISO_639[lang]))
            refs = self.references[lang].get(number, {}).get(entry.code, ())
            for ref_uri in refs:
                graph.add((node, INSEE.additionalMaterial, URIRef(ref_uri)))
            nodes.append(node)
        return nodes

    def _add_organization(self, graph, report, number, entry, prop, direct_values):
        if direct_values:
            logger.warning(
                "Direct values for organizations are not converted - %s for attribute %s "
                "in documentation %i",
                direct_values,
                entry.code,
                number,
            )
        org_uris = self.organization_values.get(number, {}).get(entry.code)
        if not org_uris:
            return None
        if len(org_uris) > 1:
            logger.warning(
                "Multiple values for organizational attribute %s, only the first "
                "value will be considered: %s",
                entry.code,
                org_uris,
            )
        target = self._reported_attribute(graph, report, number, entry)
        organization = URIRef(org_uris[0])
        graph.add((organization, RDF.type, ORG.Organization))
        graph.add((target, prop, organization))
        return target if target != report else None

    def build_reports(self, numbers=None) -> Dataset:
        """Build one named graph per documentation, all of them by default."""
        if numbers is None:
            numbers = [ref.number for ref in self.store.entities(DOCUMENTATION)]
        dataset = Dataset()
        for number in numbers:
            graph = dataset.graph(URIRef(report_graph_uri(number)))
            graph += self.build_report(number)
        logger.info("%i metadata reports created", len(numbers))
        return dataset
