"""Module with checks on the results of a conversion run.

These checks cannot be handled with pydantic model validation. Apart from
MigrationError, nothing here raises: problems are logged so that a run always
completes with a list of the facts to review.
"""

import logging
from collections import Counter

from m0migrate.namespaces import FAMILY, INDICATOR, OPERATION, SERIES

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    pass


def check_mappings(mappings) -> list[str]:
    """Check that no two legacy resources share a target URI.

    Returns the duplicated target URIs in order of first appearance.
    """
    logger.debug("-> Checking for duplicate values in the URI mappings.")
    counts = Counter(mappings.values())
    duplicates = [uri for uri, count in counts.items() if count > 1]
    for uri in duplicates:
        legacy = sorted(str(ref) for ref, target in mappings.items() if target == uri)
        logger.error("Duplicate value in mappings: %s (%s)", uri, ", ".join(legacy))
    return duplicates


def check_mapping_coverage(store, mappings, kinds=None) -> list:
    """Check that every existing legacy resource has a target URI."""
    kinds = (FAMILY, SERIES, OPERATION, INDICATOR) if kinds is None else kinds
    missing = []
    for kind in kinds:
        for ref in store.entities(kind):
            if ref not in mappings:
                logger.error("No target URI found for legacy resource %s", ref.uri)
                missing.append(ref)
    return missing
