"""Tests for m0migrate.pipeline module."""

import logging

import pytest
from rdflib import URIRef

from m0migrate.allocate import UriMapping
from m0migrate.checks import MigrationError
from m0migrate.config import AllocationConfig, MigrationConfig, load_config
from m0migrate.legacy import EntityRef
from m0migrate.namespaces import INDICATOR, SERIES
from m0migrate.pipeline import Pipeline

SIMS_TOML = """\
[[entries]]
notation = "S.3"
code = "DATA_DESCR"
representation = "Text"
insee_representation = "Rich text + other material"
"""


def test_mapping_is_computed_once(store, tmp_path, monkeypatch):
    mapping_file = tmp_path / "mapping.csv"
    config = MigrationConfig(allocation=AllocationConfig(mapping_file=mapping_file))
    pipeline = Pipeline(store, config)
    mapping = pipeline.uri_mapping
    assert mapping_file.exists()
    assert pipeline.uri_mapping is mapping

    # a new run on the same snapshot reuses the saved mapping
    calls = []
    monkeypatch.setattr(
        "m0migrate.pipeline.allocate", lambda *args: calls.append(args)
    )
    assert Pipeline(store, config).uri_mapping == mapping
    assert calls == []


def test_build_models(store):
    models = Pipeline(store).build_models()
    assert set(models) == {"familles", "series", "operations", "indicateurs", "relations"}
    assert len(models["series"]) > 0
    assert len(models["relations"]) > 0


def test_outputs(store, sims_scheme):
    pipeline = Pipeline(store, scheme=sims_scheme)
    dataset = pipeline.build_operations_dataset()
    assert len(dataset.graph(URIRef("http://rdf.insee.fr/graphes/operations"))) > 0
    assert len(pipeline.build_code_lists()) > 0
    assert len(pipeline.build_organizations()) > 0
    assert (URIRef("http://id.insee.fr/documents/page/5"), None, None) in pipeline.build_links()
    documents = pipeline.build_documents()
    assert (URIRef("http://id.insee.fr/documents/document/3"), None, None) in documents
    reports = pipeline.build_reports([1])
    report = reports.graph(URIRef("http://rdf.insee.fr/graphes/qualite/rapport/1"))
    assert len(report) > 0


def test_reports_need_scheme(store, caplog):
    with caplog.at_level(logging.ERROR), pytest.raises(MigrationError):
        Pipeline(store).build_reports()
    assert "A SIMS schema is needed" in caplog.text


def test_organization_overrides(store):
    config = MigrationConfig(organizations={"overrides": {2: "Drees"}})
    uris = Pipeline(store, config).organization_uris
    assert uris[EntityRef("organisme", 2)] == "http://id.insee.fr/organisations/drees"


def test_from_config(tmp_path, legacy_data):
    legacy_data.dataset.serialize(destination=tmp_path / "m0.trig", format="trig")
    (tmp_path / "sims.toml").write_text(SIMS_TOML, encoding="utf-8")
    config_file = tmp_path / "m0migrate.toml"
    config_file.write_text(
        'legacy_file = "m0.trig"\nsims_file = "sims.toml"\n', encoding="utf-8"
    )
    pipeline = Pipeline.from_config(load_config(config_file))
    assert isinstance(pipeline.uri_mapping, UriMapping)
    assert pipeline.uri_mapping[EntityRef(INDICATOR, 1)].endswith("/p1481")
    assert pipeline.uri_mapping[EntityRef(SERIES, 7)].endswith("/s1002")
    assert sum(len(graph) for graph in pipeline.build_reports().graphs()) > 0


def test_from_config_without_legacy_file():
    with pytest.raises(MigrationError, match="No legacy dataset"):
        Pipeline.from_config(MigrationConfig())
