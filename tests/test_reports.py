"""Tests for m0migrate.reports module."""

import logging

import pytest
from rdflib import RDF, RDFS, XSD, BNode, Literal, URIRef
from rdflib.namespace import DCMITYPE, DCTERMS, ORG

from m0migrate.allocate import allocate
from m0migrate.config import MigrationConfig, ReportConfig
from m0migrate.namespaces import INSEE, ISO_639, SDMX_MM
from m0migrate.relations import extract_all, organization_uris
from m0migrate.reports import ReportBuilder, is_valid_date
from m0migrate.sims import SimsEntry, SimsScheme

REPORT = URIRef("http://id.insee.fr/qualite/rapport/1")
ATTRIBUTE = "http://id.insee.fr/qualite/attribut/1/"
SIMS = "http://ec.europa.eu/eurostat/simsv2/attribute/"
SIMS_FR = "http://id.insee.fr/qualite/simsv2fr/attribut/"


def make_builder(store, scheme, config=None):
    return ReportBuilder(
        store,
        scheme,
        ReportConfig() if config is None else config,
        allocate(store, {}, MigrationConfig()),
        extract_all(store),
        organization_uris(store),
    )


@pytest.fixture()
def report(store, sims_scheme):
    return make_builder(store, sims_scheme).build_report(1)


@pytest.mark.parametrize(
    ("value", "valid"),
    [("2018-01-31", True), ("2018-02-30", False), ("31/01/2018", False), ("2018-1-31", False)],
)
def test_is_valid_date(value, valid):
    assert is_valid_date(value) is valid


def test_report_resource(report):
    assert (REPORT, RDF.type, SDMX_MM.MetadataReport) in report
    assert (REPORT, RDFS.label, Literal("Metadata report 1", lang="en")) in report
    assert (REPORT, RDFS.label, Literal("Rapport de métadonnées 1", lang="fr")) in report
    assert (
        REPORT,
        SDMX_MM.target,
        URIRef("http://id.insee.fr/operations/serie/s1001"),
    ) in report


def test_string_and_date_values(report):
    class_system = URIRef(ATTRIBUTE + "S.3.1")
    prop = URIRef(SIMS + "S.3.1")
    assert (class_system, RDF.type, SDMX_MM.ReportedAttribute) in report
    assert (class_system, SDMX_MM.metadataReport, REPORT) in report
    assert (class_system, prop, Literal("NAF rév. 2", lang="fr")) in report
    assert (class_system, prop, Literal("NACE rev. 2", lang="en")) in report
    assert (
        URIRef(ATTRIBUTE + "S.2.1"),
        URIRef(SIMS + "S.2.1"),
        Literal("2018-01-31", datatype=XSD.date),
    ) in report


def test_rich_text(report):
    data_descr = URIRef(ATTRIBUTE + "S.3")
    prop = URIRef(SIMS_FR + "S.3")
    french = URIRef(ATTRIBUTE + "S.3/texte")
    english = URIRef(ATTRIBUTE + "S.3/text")
    assert (data_descr, prop, french) in report
    assert (data_descr, prop, english) in report
    assert (french, RDF.type, DCMITYPE.Text) in report
    assert (french, RDF.value, Literal("Description des données", lang="fr")) in report
    assert (french, DCTERMS.language, ISO_639.fr) in report
    assert (
        french,
        INSEE.additionalMaterial,
        URIRef("http://id.insee.fr/documents/page/5"),
    ) in report
    assert (english, RDF.value, Literal("Data description", lang="en")) in report
    assert (
        english,
        INSEE.additionalMaterial,
        URIRef("http://id.insee.fr/documents/document/3"),
    ) in report


def test_rich_text_references_without_value(legacy_data, sims_scheme):
    legacy_data.graph("documentations").remove(
        (URIRef("http://baseUri/documentations/documentation/1/DATA_DESCR"), None, None)
    )
    report = make_builder(legacy_data.store(), sims_scheme).build_report(1)
    french = URIRef(ATTRIBUTE + "S.3/texte")
    assert (french, RDF.type, DCMITYPE.Text) in report
    assert (french, RDF.value, None) not in report
    assert (french, INSEE.additionalMaterial, None) in report


def test_code_values(report):
    assert (
        URIRef(ATTRIBUTE + "S.6.3"),
        URIRef(SIMS + "S.6.3"),
        URIRef("http://id.insee.fr/codes/frequence/U"),
    ) in report
    collection_modes = set(
        report.objects(URIRef(ATTRIBUTE + "S.20.5"), URIRef(SIMS_FR + "S.20.5"))
    )
    assert collection_modes == {
        URIRef("http://id.insee.fr/codes/modeCollecte/F"),
        URIRef("http://id.insee.fr/codes/modeCollecte/T"),
    }
    # survey unit "O" is not converted, and leaves no reported attribute
    assert (None, URIRef(SIMS_FR + "S.20.4"), None) not in report
    assert (URIRef(ATTRIBUTE + "S.20.4"), None, None) not in report


def test_no_parent_without_values(store):
    scheme = SimsScheme(
        entries=[
            SimsEntry(
                notation="S.20.4",
                code="SURVEY_UNIT",
                origin="Insee",
                insee_representation="Code list CL_SURVEY_UNIT",
            ),
            SimsEntry(notation="S.20.4.1", code="CLASS_SYSTEM", representation="Text"),
        ]
    )
    report = make_builder(store, scheme).build_report(1)
    child = URIRef(ATTRIBUTE + "S.20.4.1")
    assert (child, RDF.type, SDMX_MM.ReportedAttribute) in report
    assert (child, SDMX_MM.parent, None) not in report
    assert (URIRef(ATTRIBUTE + "S.20.4"), None, None) not in report


def test_organization_value(report):
    org = URIRef("http://id.insee.fr/organisations/insee/dg75-d130")
    assert (URIRef(ATTRIBUTE + "S.1.1"), URIRef(SIMS_FR + "S.1.1"), org) in report
    assert (org, RDF.type, ORG.Organization) in report


def test_skipped_entries(report):
    # direct entries, quality metrics and entries without values
    for notation in ("I.1", "S.13", "S.1", "S.20"):
        assert (URIRef(ATTRIBUTE + notation), None, None) not in report


def test_reported_attribute_parents(report):
    assert (URIRef(ATTRIBUTE + "S.3.1"), SDMX_MM.parent, URIRef(ATTRIBUTE + "S.3")) in report
    assert (URIRef(ATTRIBUTE + "S.3"), SDMX_MM.parent, None) not in report


def test_presentational_placeholder(legacy_data, sims_scheme):
    legacy_data.values("documentation", 1, "CONTACT_INFO", "Voir ci-dessous")
    report = make_builder(legacy_data.store(), sims_scheme).build_report(1)
    placeholders = list(report.objects(URIRef(ATTRIBUTE + "S.1"), URIRef(SIMS + "S.1")))
    assert len(placeholders) == 1
    assert isinstance(placeholders[0], BNode)
    assert (placeholders[0], RDF.type, SDMX_MM.ReportedAttribute) in report


def test_data_errors(store, sims_scheme, caplog):
    with caplog.at_level(logging.ERROR):
        report = make_builder(store, sims_scheme).build_report(2)
    assert "Multiple values for non-multiple SIMS attribute CLASS_SYSTEM" in caplog.text
    assert "Unparseable date value '31/01/2018'" in caplog.text
    assert (None, URIRef(SIMS + "S.3.1"), None) not in report
    assert (None, URIRef(SIMS + "S.2.1"), None) not in report
    assert (None, RDF.type, SDMX_MM.ReportedAttribute) not in report
    # documentation 2 is not attached
    assert (None, SDMX_MM.target, None) not in report


def test_without_reported_attributes(store, sims_scheme):
    config = ReportConfig(create_reported_attributes=False)
    report = make_builder(store, sims_scheme, config).build_report(1)
    assert (REPORT, URIRef(SIMS + "S.3.1"), Literal("NAF rév. 2", lang="fr")) in report
    assert (None, RDF.type, SDMX_MM.ReportedAttribute) not in report


def test_direct_values_for_organizations(legacy_data, caplog):
    legacy_data.values("documentation", 1, "CONTACT_ORGANISATION", "Insee")
    scheme = SimsScheme(
        entries=[
            SimsEntry(
                notation="S.1.1",
                code="CONTACT_ORGANISATION",
                origin="Insee",
                insee_representation="Code list",
            )
        ]
    )
    with caplog.at_level(logging.WARNING):
        make_builder(legacy_data.store(), scheme).build_report(1)
    assert "Direct values for organizations are not converted" in caplog.text


def test_build_reports(store, sims_scheme):
    dataset = make_builder(store, sims_scheme).build_reports()
    names = {str(graph.identifier) for graph in dataset.graphs() if len(graph)}
    assert names == {
        "http://rdf.insee.fr/graphes/qualite/rapport/1",
        "http://rdf.insee.fr/graphes/qualite/rapport/2",
        "http://rdf.insee.fr/graphes/qualite/rapport/12",
    }
    report = dataset.graph(URIRef("http://rdf.insee.fr/graphes/qualite/rapport/12"))
    assert (None, None, Literal("Autre", lang="fr")) in report
    assert (None, None, Literal("NAF rév. 2", lang="fr")) not in report
