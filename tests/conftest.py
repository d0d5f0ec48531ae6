# Common pytest fixtures for all test modules
import pytest
from rdflib import RDF, SKOS, Dataset, Literal, URIRef

from m0migrate.legacy import EntityRef, LegacyStore
from m0migrate.namespaces import (
    CODE,
    CODE_LIST,
    DOCUMENT,
    DOCUMENTATION,
    FAMILY,
    INDICATOR,
    LINK,
    M0_GRAPH_BASE_URI,
    M0_RELATED_TO,
    M0_RELATED_TO_EN,
    M0_SEQUENCE_VALUE,
    M0_VALUES,
    M0_VALUES_EN,
    OPERATION,
    ORGANIZATION,
    SERIES,
    collection_name,
)
from m0migrate.sims import SimsEntry, SimsScheme


class LegacyData:
    """Helper to write a legacy dataset in the path-encoded M0 layout."""

    def __init__(self):
        self.dataset = Dataset()

    def graph(self, name):
        return self.dataset.graph(URIRef(M0_GRAPH_BASE_URI + name))

    def entity(self, kind, number, **attributes):
        """Add an entity; attribute values are a French string or (fr, en)."""
        ref = EntityRef(kind, number)
        graph = self.graph(ref.collection)
        graph.add((URIRef(ref.uri), RDF.type, SKOS.Concept))
        for name, value in attributes.items():
            self.values(kind, number, name, value)
        return ref

    def values(self, kind, number, name, *values):
        ref = EntityRef(kind, number)
        graph = self.graph(ref.collection)
        subject = URIRef(f"{ref.uri}/{name}")
        for value in values:
            fr, en = value if isinstance(value, tuple) else (value, None)
            if fr is not None:
                graph.add((subject, M0_VALUES, Literal(fr)))
            if en is not None:
                graph.add((subject, M0_VALUES_EN, Literal(en)))

    def sequence(self, kind, value):
        collection = collection_name(kind)
        subject = URIRef(f"http://baseUri/{collection}/{kind}/sequence")
        self.graph(collection).add((subject, M0_SEQUENCE_VALUE, Literal(value)))

    def relate(self, subject, role, target, target_role=None, lang="fr"):
        predicate = M0_RELATED_TO if lang == "fr" else M0_RELATED_TO_EN
        self.graph("associations").add(
            (
                URIRef(f"{subject.uri}/{role}"),
                predicate,
                URIRef(f"{target.uri}/{target_role or role}"),
            )
        )

    def store(self):
        return LegacyStore(self.dataset)


def build_legacy_data():
    data = LegacyData()
    fam1 = data.entity(FAMILY, 1, TITLE=("Emploi", "Employment"))
    data.entity(FAMILY, 3, TITLE="Démographie")
    data.sequence(FAMILY, 3)

    ser2 = data.entity(
        SERIES,
        2,
        TITLE=("Enquête Emploi", "Labour force survey"),
        ALT_LABEL="EEC",
        ID_DDS="OPE-ENQ-EMPLOI",
        FREQ_COLL="A annuelle",
        SOURCE_CATEGORY="S",
        VALIDATION_STATUS="Unpublished",
    )
    ser7 = data.entity(SERIES, 7, TITLE=("Recensement", "Census"), SUMMARY="\n\n")
    data.sequence(SERIES, 8)

    op1 = data.entity(OPERATION, 1, TITLE="Enquête Emploi 2018", MILLESIME="2018")
    op2 = data.entity(OPERATION, 2, TITLE="Recensement 2020", MILESSIME="20l8")
    data.sequence(OPERATION, 2)

    ind1 = data.entity(INDICATOR, 1, TITLE=("Taux de chômage", "Unemployment rate"))
    data.sequence(INDICATOR, 1)

    org1 = data.entity(ORGANIZATION, 1, ID_CODE="D130", TITLE="Département de l'emploi")
    org2 = data.entity(ORGANIZATION, 2, ID_CODE="Dares", TITLE="Dares")

    doc1 = data.entity(
        DOCUMENTATION,
        1,
        DATA_DESCR=("\n\nDescription des données", "Data description"),
        CLASS_SYSTEM=("NAF rév. 2", "NACE rev. 2"),
        META_LAST_UPDATE="2018-01-31",
        FREQ_DISS="T trimestrielle",
        SURVEY_UNIT="O",
    )
    data.values(DOCUMENTATION, 1, "COLLECTION_MODE", "F", "T")
    doc2 = data.entity(DOCUMENTATION, 2, META_LAST_UPDATE="31/01/2018")
    data.values(DOCUMENTATION, 2, "CLASS_SYSTEM", "NAF", "CPF")
    data.entity(DOCUMENTATION, 12, CLASS_SYSTEM="Autre")

    link5 = data.entity(
        LINK,
        5,
        TITLE="Page de l'enquête",
        URI="https://www.insee.fr/fr/metadonnees/source/serie/s1223",
        TYPE="Page web",
    )
    document3 = data.entity(
        DOCUMENT,
        3,
        TITLE="Survey questionnaire",
        URI="questionnaire-eec.pdf",
        DATE="12/03/2016",
        DATE_PUBLICATION="15-05-2017",
    )
    data.entity(DOCUMENT, 4, TITLE="Notice", DATE="12/03/2016")

    cl1 = data.entity(CODE_LIST, 1, CODE_VALUE="CL_FREQ", TITLE=("Fréquence", "Frequency"))
    code1 = data.entity(CODE, 1, CODE_VALUE="A", TITLE=("Annuelle", "Annual"))

    data.relate(ser2, "ASSOCIE_A", fam1)
    data.relate(op1, "ASSOCIE_A", ser2)
    data.relate(op2, "ASSOCIE_A", ser7)
    data.relate(ser2, "RELATED_TO", ser7)
    data.relate(ser7, "RELATED_TO", ser2)
    data.relate(ser7, "REPLACES", ser2, "REMPLACE_PAR")
    data.relate(ind1, "PRODUCED_FROM", ser7, "PRODUIT_INDICATEURS")
    data.relate(ser2, "ORGANISATION", org1)
    data.relate(ser7, "STAKEHOLDERS", org2)
    data.relate(doc1, "ASSOCIE_A", ser2)
    data.relate(doc1, "DATA_DESCR", link5)
    data.relate(doc1, "DATA_DESCR", document3, lang="en")
    data.relate(doc1, "CONTACT_ORGANISATION", org1)
    data.relate(cl1, "RELATED_TO", code1)
    data.relate(code1, "RELATED_TO", cl1)
    return data


@pytest.fixture()
def legacy_data():
    return build_legacy_data()


@pytest.fixture()
def store(legacy_data):
    return legacy_data.store()


SIMS_ENTRIES = [
    {"notation": "I.1", "code": "CONTACT", "representation": "Text"},
    {"notation": "S.1", "code": "CONTACT_INFO"},
    {
        "notation": "S.1.1",
        "code": "CONTACT_ORGANISATION",
        "origin": "Insee",
        "insee_representation": "Code list (organisations)",
    },
    {"notation": "S.2", "code": "METADATA_UPDATE"},
    {"notation": "S.2.1", "code": "META_LAST_UPDATE", "representation": "Date"},
    {
        "notation": "S.3",
        "code": "DATA_DESCR",
        "representation": "Text",
        "insee_representation": "Rich text + other material",
    },
    {"notation": "S.3.1", "code": "CLASS_SYSTEM", "representation": "Text"},
    {
        "notation": "S.6.3",
        "code": "FREQ_DISS",
        "representation": "(code list: CL_FREQ)",
    },
    {"notation": "S.13", "code": "ACCURACY", "representation": "Quality indicator"},
    {"notation": "S.20", "code": "SIMS_FR", "origin": "Insee"},
    {
        "notation": "S.20.4",
        "code": "SURVEY_UNIT",
        "origin": "Insee",
        "insee_representation": "Code list CL_SURVEY_UNIT",
    },
    {
        "notation": "S.20.5",
        "code": "COLLECTION_MODE",
        "origin": "Insee",
        "insee_representation": "Code list CL_COLLECTION_MODE",
        "multiple": True,
    },
]


@pytest.fixture()
def sims_scheme():
    return SimsScheme(entries=[SimsEntry(**entry) for entry in SIMS_ENTRIES])
