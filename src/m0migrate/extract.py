"""Attribute values of legacy resources."""

import logging

from rdflib import Graph, Literal

from m0migrate.legacy import AttributeFact, EntityRef, LegacyStore

logger = logging.getLogger(__name__)


def clean_text(value) -> str:
    """Trim a legacy literal; many values are only made of newlines."""
    return str(value).strip()


def attributes_of(store: LegacyStore, ref: EntityRef, name: str) -> list[AttributeFact]:
    """Return the non-blank values of an attribute of a legacy resource.

    The attribute name must match the last segment of the legacy path exactly,
    so looking for "STATUS" never returns "VALIDATION_STATUS" values. French
    values are returned before English values; the literals are trimmed.
    A missing attribute gives an empty list.
    """
    values = []
    for lang in ("fr", "en"):
        for fact in store.facts(ref, name):
            if fact.lang != lang:
                continue
            text = clean_text(fact.literal)
            if not text:
                logger.debug("-> Blank %s value ignored for %s/%s", lang, ref, name)
                continue
            values.append(
                AttributeFact(ref, name, lang, Literal(text, lang=lang))
            )
    return values


def first_value(store: LegacyStore, ref: EntityRef, name: str, lang: str = "fr"):
    """Return the single expected value of an attribute, or None if missing.

    Several values are a data problem: an error is logged and the first value
    is used.
    """
    values = [fact.text for fact in attributes_of(store, ref, name) if fact.lang == lang]
    if not values:
        return None
    if len(values) > 1:
        logger.error(
            "Several values for attribute %s of %s, using the first one: %s",
            name,
            ref.uri,
            values,
        )
    return values[0]


def subtree_of(store: LegacyStore, base_uri: str) -> Graph:
    """Return all statements about a legacy resource and its sub-paths.

    A statement is selected if its subject is base_uri or continues it with
    "/", so ".../documentation/1" does not select ".../documentation/12".
    """
    base_uri = str(base_uri).rstrip("/")
    subtree = Graph()
    for subject, predicate, obj in store.triples():
        uri = str(subject)
        if uri == base_uri or uri.startswith(base_uri + "/"):
            subtree.add((subject, predicate, obj))
    logger.debug("-> Extracted %i statements below %s", len(subtree), base_uri)
    return subtree
