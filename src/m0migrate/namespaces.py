"""Vocabularies of the legacy M0 store and of the target model.

Also holds the functions that build target URIs, so that every module names
resources the same way.
"""

import re
import unicodedata

from rdflib import Namespace

# =============================================================================
# Legacy (M0) vocabulary
# =============================================================================

M0_BASE_URI = "http://baseUri/"
M0_GRAPH_BASE_URI = "http://rdf.insee.fr/graphe/"

M0 = Namespace("http://www.SDMX.org/resources/SDMXML/schemas/v2_0/message#")
M0_VALUES = M0.values
M0_VALUES_EN = M0.valuesGb
M0_RELATED_TO = M0.relatedTo
M0_RELATED_TO_EN = M0.relatedToGb

REM = Namespace("http://rem.org/schema#")
M0_SEQUENCE_VALUE = REM.sequenceValue

# Singular names of the legacy collections; the plural (collection) is the
# singular followed by "s".
FAMILY = "famille"
SERIES = "serie"
OPERATION = "operation"
INDICATOR = "indicateur"
ORGANIZATION = "organisme"
DOCUMENTATION = "documentation"
CODE_LIST = "codelist"
CODE = "code"
LINK = "lien"
DOCUMENT = "document"


def collection_name(kind: str) -> str:
    return f"{kind}s"


# =============================================================================
# Target vocabulary
# =============================================================================

INSEE = Namespace("http://rdf.insee.fr/def/base#")
SDMX_MM = Namespace("http://www.w3.org/ns/sdmx-mm#")
DQV = Namespace("http://www.w3.org/ns/dqv#")
ISO_639 = Namespace("http://id.loc.gov/vocabulary/iso639-1/")
SCHEMA = Namespace("http://schema.org/")
PAV = Namespace("http://purl.org/pav/")

INSEE_OPERATIONS_BASE_URI = "http://id.insee.fr/operations/"
INSEE_INDICATORS_BASE_URI = "http://id.insee.fr/produits/indicateur/"
INSEE_CODES_BASE_URI = "http://id.insee.fr/codes/"
INSEE_ORG_BASE_URI = "http://id.insee.fr/organisations/"
INSEE_DOCUMENTS_BASE_URI = "http://id.insee.fr/documents/"
# Files of the legacy documents are published below this URL
INSEE_DOCUMENT_FILES_BASE_URL = "https://www.insee.fr/fr/metadonnees/source/fichier/"
SIMS_BASE_URI = "http://ec.europa.eu/eurostat/simsv2/"
SIMS_FR_BASE_URI = "http://id.insee.fr/qualite/simsv2fr/"
REPORT_BASE_URI = "http://id.insee.fr/qualite/rapport/"
REPORTED_ATTRIBUTE_BASE_URI = "http://id.insee.fr/qualite/attribut/"

# Named graphs of the produced datasets
OPERATIONS_GRAPH_URI = "http://rdf.insee.fr/graphes/operations"
INDICATORS_GRAPH_URI = "http://rdf.insee.fr/graphes/produits"
ORGANIZATIONS_GRAPH_URI = "http://rdf.insee.fr/graphes/organisations"
CODE_LISTS_GRAPH_URI = "http://rdf.insee.fr/graphes/codes"
REPORT_GRAPH_BASE_URI = "http://rdf.insee.fr/graphes/qualite/rapport/"

# Word-level tokens dropped when building camel case names ("Catégorie de source")
_VOID_TOKENS = ("de", "l")


def operation_resource_uri(number, kind: str) -> str:
    """Target URI of a family, series, operation or indicator."""
    if kind == INDICATOR:
        return f"{INSEE_INDICATORS_BASE_URI}p{number}"
    return f"{INSEE_OPERATIONS_BASE_URI}{kind}/s{number}"


def target_number(target_uri: str) -> int:
    """Return the numeric part of a target URI like ".../serie/s1234"."""
    return int(target_uri.rsplit("/", 1)[-1][1:])


def organization_uri(organization_id: str) -> str:
    return INSEE_ORG_BASE_URI + slug(organization_id)


def insee_unit_uri(timbre: str) -> str:
    return f"{INSEE_ORG_BASE_URI}insee/{timbre.lower()}"


def is_insee_unit(organization_id: str) -> bool:
    """INSEE units have identifiers like "D130" or "C520"."""
    return len(organization_id) == 4 and organization_id[1:].isdigit()


def code_uri(code: str, concept_name: str) -> str:
    return f"{INSEE_CODES_BASE_URI}{camel_case(concept_name, lower=True)}/{code}"


def link_uri(number: int) -> str:
    return f"{INSEE_DOCUMENTS_BASE_URI}page/{number}"


def document_uri(number: int) -> str:
    return f"{INSEE_DOCUMENTS_BASE_URI}document/{number}"


def report_uri(report_id) -> str:
    return f"{REPORT_BASE_URI}{report_id}"


def report_graph_uri(report_id) -> str:
    return f"{REPORT_GRAPH_BASE_URI}{report_id}"


def reported_attribute_uri(report_id, notation: str) -> str:
    return f"{REPORTED_ATTRIBUTE_BASE_URI}{report_id}/{notation}"


def rich_text_uri(report_id, notation: str, lang: str) -> str:
    suffix = "texte" if lang == "fr" else "text"
    return f"{reported_attribute_uri(report_id, notation)}/{suffix}"


def sims_attribute_property_uri(notation: str, added_or_modified: bool) -> str:
    if added_or_modified:
        return f"{SIMS_FR_BASE_URI}attribut/{notation}"
    return f"{SIMS_BASE_URI}attribute/{notation}"


def code_list_concept_name(code_list_name: str) -> str:
    """Convert a code list name like CL_UNIT_MEASURE to UnitMeasure."""
    terms = code_list_name[3:].upper().split("_")
    return "".join(term[0] + term[1:].lower() for term in terms if term)


# === string helpers ===


def remove_diacritics(text: str) -> str:
    normalized = unicodedata.normalize("NFD", text)
    return "".join(char for char in normalized if not unicodedata.combining(char))


def slug(text: str) -> str:
    """Lower case, ASCII only, words joined with "-"."""
    text = remove_diacritics(text.lower())
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s-]+", " ", text).strip()
    return text.replace(" ", "-")


def camel_case(text: str, lower: bool = False) -> str:
    """Build a camel case name, e.g. "Catégorie de source" -> "CategorieSource"."""
    tokens = remove_diacritics(text).strip().replace("'", " ").split()
    words = [token for token in tokens if token.lower() not in _VOID_TOKENS]
    result = "".join(word[0].upper() + word[1:] for word in words)
    if lower and result:
        result = result[0].lower() + result[1:]
    return result
