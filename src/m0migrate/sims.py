"""The SIMS / SIMSFr attribute schema used by metadata reports.

The schema is an ordered list of entries identified by their notation
("S.1", "S.1.1", "I.18.2", ...). The notation gives the hierarchy of the
entries: the parent of "S.1.1" is "S.1", while the first segment alone only
names the section, so "S.1" is a top-level entry.
"""

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import networkx as nx
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from typing_extensions import Self

from m0migrate.checks import MigrationError
from m0migrate.config import ReportConfig

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)


class SimsEntry(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    notation: str
    code: str
    name: str = ""
    representation: str | None = None
    insee_representation: str | None = None
    origin: str | None = None
    multiple: bool = False

    @field_validator("representation", "insee_representation", "origin", mode="before")
    @classmethod
    def blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def is_direct(self) -> bool:
        """Entries converted as properties of the documented resource itself."""
        notation = self.notation
        return notation == "I.1" or notation.startswith(("I.1.", "C.1."))

    @property
    def is_original(self) -> bool:
        # entries of the original SIMS have no origin
        return self.origin is None

    @property
    def is_added_or_modified(self) -> bool:
        if not self.is_original:
            return True
        if self.insee_representation is None:
            return False
        return self.insee_representation.strip().lower() != "rich text"

    @property
    def is_presentational(self) -> bool:
        """Entries that only group other entries and carry no value."""
        if self.is_original:
            return self.representation is None
        return self.insee_representation is None

    @property
    def is_quality_metric(self) -> bool:
        if self.representation is None:
            return False
        return self.representation.strip().lower().startswith("quality")

    @property
    def parent_notation(self) -> str | None:
        segments = self.notation.split(".")
        if len(segments) <= 2:
            return None
        return ".".join(segments[:-1])


class RangeKind(Enum):
    STRING = "string"
    RICH_TEXT = "richText"
    DATE = "date"
    CODE = "code"
    ORGANIZATION = "organization"
    REPORTED_ATTRIBUTE = "reportedAttribute"
    METRIC = "metric"


@dataclass(frozen=True)
class AttributeRange:
    kind: RangeKind
    # name of the code concept for RangeKind.CODE
    concept: str | None = None


def _code_list_name(representation: str) -> str | None:
    """Extract "CL_XXX" from texts like "(code list: CL_FREQ)"."""
    start = representation.find("cl_")
    if start < 0:
        return None
    name = representation[start:].split()[0]
    return name.rstrip(")").upper()


def resolve_range(entry: SimsEntry, config: ReportConfig) -> AttributeRange | None:
    """Range of the values of an entry, None if it cannot be determined.

    The declared representation gives a first range, which the Insee
    representation overrides when present.
    """
    if entry.is_presentational:
        return AttributeRange(RangeKind.REPORTED_ATTRIBUTE)

    result = None
    if entry.representation is not None:
        representation = entry.representation.strip().lower()
        if representation == "date":
            result = AttributeRange(RangeKind.DATE)
        elif representation.startswith("quality"):
            result = AttributeRange(RangeKind.METRIC)
        elif "code" in representation:
            name = _code_list_name(representation)
            if name is None:
                logger.error("No code list name in representation of %s", entry.notation)
            else:
                result = AttributeRange(RangeKind.CODE, config.concept_name(name))
        else:
            result = AttributeRange(RangeKind.STRING)

    if entry.insee_representation is None:
        return result
    representation = entry.insee_representation.strip().lower()
    if representation.startswith(("text", "expression")):
        return AttributeRange(RangeKind.STRING)
    if representation == "rich text":
        return AttributeRange(RangeKind.STRING)
    if representation.startswith("rich text"):
        return AttributeRange(RangeKind.RICH_TEXT)
    if representation.startswith(("code list", "cl_")):
        name = _code_list_name(representation)
        if name is None:
            # a list of organizations
            return AttributeRange(RangeKind.ORGANIZATION)
        return AttributeRange(RangeKind.CODE, config.concept_name(name))
    logger.error(
        'Unknown Insee representation "%s" for entry %s',
        entry.insee_representation,
        entry.notation,
    )
    return None


class SimsScheme(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    entries: list[SimsEntry] = []

    @model_validator(mode="after")
    def unique_notations(self) -> Self:
        seen = set()
        for entry in self.entries:
            if entry.notation in seen:
                msg = f"Duplicate notation in SIMS schema: {entry.notation}"
                raise ValueError(msg)
            seen.add(entry.notation)
        return self

    def hierarchy(self) -> nx.DiGraph:
        """Build the notation hierarchy; edges go from parent to child.

        An entry whose parent is not in the schema is treated as top level.
        """
        dag = nx.DiGraph()
        notations = {entry.notation for entry in self.entries}
        for entry in self.entries:
            dag.add_node(entry.notation)
            parent = entry.parent_notation
            if parent is None:
                continue
            if parent not in notations:
                logger.warning(
                    "Parent %s of SIMS entry %s not found, entry used as top level",
                    parent,
                    entry.notation,
                )
                continue
            dag.add_edge(parent, entry.notation)
        return dag


def load_sims_scheme(path: Path) -> SimsScheme:
    """Read the SIMS schema from a TOML file of [[entries]] tables."""
    if not path.exists():
        msg = f'SIMS schema file "{path}" not found.'
        logger.error(msg)
        raise MigrationError(msg)
    with path.open(mode="rb") as fp:
        data = tomllib.load(fp)
    scheme = SimsScheme(**data)
    logger.debug("-> SIMS schema with %i entries read from %s", len(scheme.entries), path)
    return scheme
