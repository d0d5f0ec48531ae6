"""Configuration of a conversion run.

The configuration is read once from a TOML file at the start of a run and
handed to the components that need it. All models are frozen.
"""

import logging
import sys
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing_extensions import Self

from m0migrate.namespaces import (
    FAMILY,
    INDICATOR,
    OPERATION,
    SERIES,
    code_list_concept_name,
)

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

# === Configuration that is not imported from the TOML file ===

# Resource types that receive a target URI, in allocation order. Changing the
# order changes every allocated number after the first moved type.
RESOURCE_TYPES = (FAMILY, SERIES, OPERATION, INDICATOR)

# Keys holding file paths; relative paths are resolved against the config file.
_PATH_KEYS = {
    None: ("legacy_file", "sims_file"),
    "allocation": ("operations_file", "series_file", "mapping_file"),
}

# Numbers kept free after each type for future manual additions. The count
# includes the numbers allocated to the type in the run.
DEFAULT_RESERVES = {FAMILY: 0, SERIES: 50, OPERATION: 430, INDICATOR: 0}

# === Configuration imported from the TOML file stored as pydantic model ===


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class AllocationConfig(_Frozen):
    first_id: Annotated[int, Field(ge=1)] = 1001
    last_id: int = 1999
    # types missing from a configured table keep their default reserve
    reserves: dict[str, Annotated[int, Field(ge=0)]] = DEFAULT_RESERVES
    operations_file: Path | None = None  # lines "m0Id,web4gId"
    series_file: Path | None = None  # lines "FR-ddsId,web4gId"
    mapping_file: Path | None = None  # persisted URI mapping of the snapshot
    excluded_dds_ids: list[str] = []
    extra_series: dict[int, str] = {}

    @model_validator(mode="after")
    def order_of_ids(self) -> Self:
        first, last = self.first_id, self.last_id
        if last <= first:
            msg = f"last_id ({last}) must be greater than first_id ({first})."
            raise ValueError(msg)
        return self

    @field_validator("reserves", mode="before")
    @classmethod
    def complete_reserves(cls, value):
        if isinstance(value, dict):
            return {**DEFAULT_RESERVES, **value}
        return value

    @field_validator("reserves")
    @classmethod
    def known_types(cls, value):
        unknown = set(value) - set(RESOURCE_TYPES)
        if unknown:
            msg = f"Unknown resource types in reserves: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        return value


class OrganizationConfig(_Frozen):
    # Legacy organization number -> identifier replacing its ID_CODE
    overrides: dict[int, str] = {}


class ReportConfig(_Frozen):
    create_reported_attributes: bool = True
    # SIMS code list name -> name of the INSEE code concept
    code_concepts: dict[str, str] = {
        "CL_FREQ": "Frequence",
        "CL_SOURCE_CATEGORY": "CategorieSource",
        "CL_SURVEY_UNIT": "UniteEnquetee",
        "CL_COLLECTION_MODE": "ModeCollecte",
        "CL_SURVEY_STATUS": "StatutEnquete",
    }
    # Code list names that are misspelled in the SIMSFr schema
    code_list_aliases: dict[str, str] = {
        "CL_FREQ_FR": "CL_FREQ",
        "CL_STATUS": "CL_SURVEY_STATUS",
    }
    # Concept name -> {legacy code: target code}
    recodings: dict[str, dict[str, str]] = {
        "Frequence": {"T": "U", "BM": "T"},
        "UniteEnquetee": {"AS": "A"},
    }
    # Concept name -> legacy codes that are not converted
    excluded_codes: dict[str, list[str]] = {
        "UniteEnquetee": ["O"],
        "ModeCollecte": ["O"],
    }
    # SIMS attributes whose values are organizations given by associations
    organization_attributes: list[str] = ["CONTACT_ORGANISATION", "ORGANISATION_UNIT"]

    def concept_name(self, code_list: str) -> str:
        code_list = self.code_list_aliases.get(code_list, code_list)
        return self.code_concepts.get(code_list, code_list_concept_name(code_list))


class MigrationConfig(_Frozen):
    legacy_file: Path | None = None
    sims_file: Path | None = None
    allocation: AllocationConfig = AllocationConfig()
    organizations: OrganizationConfig = OrganizationConfig()
    reports: ReportConfig = ReportConfig()


def _resolve_paths(conf: dict, base_dir: Path) -> dict:
    for section, keys in _PATH_KEYS.items():
        table = conf if section is None else conf.get(section, {})
        for key in keys:
            value = table.get(key)
            if value and not Path(value).is_absolute():
                table[key] = base_dir / value
    return conf


def load_config(config_file: Path | None = None) -> MigrationConfig:
    """Read the configuration from a TOML file.

    Without a file, or if the file does not exist, the defaults are used.
    """
    if config_file is None:
        logger.debug("Initializing default config.")
        return MigrationConfig()
    if not config_file.exists():
        logger.warning('Configuration file "%s" not found.', config_file)
        return MigrationConfig()
    with config_file.open(mode="rb") as fp:
        conf = tomllib.load(fp)
    logger.debug("Config loaded from: %s", config_file)
    return MigrationConfig(**_resolve_paths(conf, config_file.resolve().parent))
