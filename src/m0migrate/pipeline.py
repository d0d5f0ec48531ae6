"""One conversion run over a legacy snapshot.

The pipeline computes each derived artifact once (URI mapping, organization
URIs, relations) and hands them to the builders. Nothing is invalidated
during a run: the legacy snapshot is read-only.
"""

import logging
from functools import cached_property

from rdflib import Dataset, Graph

from m0migrate.allocate import UriMapping, allocate, fixed_mappings
from m0migrate.build import ModelBuilder
from m0migrate.checks import MigrationError, check_mapping_coverage
from m0migrate.config import RESOURCE_TYPES, MigrationConfig
from m0migrate.legacy import EntityRef, LegacyStore
from m0migrate.namespaces import collection_name
from m0migrate.relations import LegacyRelations, extract_all, organization_uris
from m0migrate.reports import ReportBuilder
from m0migrate.sims import SimsScheme, load_sims_scheme

logger = logging.getLogger(__name__)


class Pipeline:
    def __init__(
        self,
        store: LegacyStore,
        config: MigrationConfig | None = None,
        scheme: SimsScheme | None = None,
    ):
        self.store = store
        self.config = MigrationConfig() if config is None else config
        self.scheme = scheme

    @classmethod
    def from_config(cls, config: MigrationConfig) -> "Pipeline":
        if config.legacy_file is None:
            msg = "No legacy dataset given in the configuration (legacy_file)."
            logger.error(msg)
            raise MigrationError(msg)
        store = LegacyStore.load(config.legacy_file)
        scheme = None if config.sims_file is None else load_sims_scheme(config.sims_file)
        return cls(store, config, scheme)

    @cached_property
    def uri_mapping(self) -> UriMapping:
        """URI mapping of the snapshot, read from the mapping file if it exists."""
        mapping_file = self.config.allocation.mapping_file
        if mapping_file is not None and mapping_file.exists():
            mapping = UriMapping.load(mapping_file)
        else:
            fixed = fixed_mappings(self.store, self.config.allocation)
            mapping = allocate(self.store, fixed, self.config)
            if mapping_file is not None:
                mapping.save(mapping_file)
        check_mapping_coverage(self.store, mapping, RESOURCE_TYPES)
        logger.info("URI mapping with %i entries", len(mapping))
        return mapping

    @cached_property
    def organization_uris(self) -> dict[EntityRef, str]:
        return organization_uris(self.store, self.config.organizations.overrides)

    @cached_property
    def relations(self) -> LegacyRelations:
        return extract_all(self.store)

    @cached_property
    def model_builder(self) -> ModelBuilder:
        return ModelBuilder(
            self.store, self.uri_mapping, self.organization_uris, self.relations
        )

    @cached_property
    def report_builder(self) -> ReportBuilder:
        if self.scheme is None:
            msg = "A SIMS schema is needed to build metadata reports (sims_file)."
            logger.error(msg)
            raise MigrationError(msg)
        return ReportBuilder(
            self.store,
            self.scheme,
            self.config.reports,
            self.uri_mapping,
            self.relations,
            self.organization_uris,
        )

    def build_models(self) -> dict[str, Graph]:
        """One graph per resource collection, plus the relations graph."""
        models = {}
        for kind in RESOURCE_TYPES:
            models[collection_name(kind)] = self.model_builder.build_entities(kind)
        models["relations"] = self.model_builder.build_relations()
        return models

    def build_operations_dataset(self) -> Dataset:
        return self.model_builder.build_operations_dataset()

    def build_reports(self, numbers=None) -> Dataset:
        return self.report_builder.build_reports(numbers)

    def build_code_lists(self) -> Graph:
        return self.model_builder.build_code_lists()

    def build_organizations(self) -> Graph:
        return self.model_builder.build_organizations()

    def build_links(self) -> Graph:
        return self.model_builder.build_links()

    def build_documents(self) -> Graph:
        return self.model_builder.build_documents()
