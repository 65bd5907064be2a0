from typing import Optional, TypedDict
from enum import StrEnum


class CompositionKind(StrEnum):
    """Composition de l'échantillon (préfixe mos/chi)"""
    SINGLE = 'single'
    MOSAIC = 'mosaic'
    CHIMERIC = 'chimeric'


class CloneKind(StrEnum):
    STEMLINE = 'stemline'
    SIDELINE_I = 'sideline_i'
    SIDELINE_II = 'sideline_ii'
    ADDITIONAL = 'additional'
    NONCLONAL = 'nonclonal'


class SexKind(StrEnum):
    XX = 'XX'
    XY = 'XY'
    MIXED = 'mixed'
    UNDETERMINED = 'undetermined'


class EventKind(StrEnum):
    GAIN_CHROMOSOME = 'gain_chromosome'
    LOSS_CHROMOSOME = 'loss_chromosome'
    ABERRATION = 'aberration'
    MARKER = 'marker'
    IDEM = 'idem'
    UNDECODED = 'undecoded'
    MOSAIC_TAG = 'mosaic_tag'
    ALTERNATIVES = 'alternatives'


class Inheritance(StrEnum):
    DE_NOVO = 'de_novo'
    MATERNAL = 'maternal'
    PATERNAL = 'paternal'
    UNKNOWN = 'unknown'


class ReferenceKind(StrEnum):
    """Renvoi vers un clone antérieur"""
    IDEM = 'idem'
    SL = 'sl'
    SDL = 'sdl'


class MarkerType(StrEnum):
    MAR = 'mar'
    DMIN = 'dmin'
    UNKNOWN = '?'


class AberrationType(StrEnum):
    """Anomalies structurelles reconnues"""
    TRANSLOCATION = 'translocation'
    INVERSION = 'inversion'
    DELETION = 'deletion'
    DUPLICATION = 'duplication'
    DERIVATIVE = 'derivative'
    RING = 'ring'
    UNCERTAIN_BASIC = 'uncertain_basic'

    # --- Autres anomalies de base ---
    ADDITION = 'addition'
    INSERTION = 'insertion'
    ISOCHROMOSOME = 'isochromosome'
    DICENTRIC = 'dicentric'
    ISODICENTRIC = 'isodicentric'
    TRIPLICATION = 'triplication'
    QUADRUPLICATION = 'quadruplication'
    FRAGILE_SITE = 'fragile_site'
    ROBERTSONIAN = 'robertsonian'
    TELOMERIC_ASSOCIATION = 'telomeric_association'
    HSR = 'hsr'


ABBREVIATION_TYPES = {
    't': AberrationType.TRANSLOCATION,
    'inv': AberrationType.INVERSION,
    'del': AberrationType.DELETION,
    'dup': AberrationType.DUPLICATION,
    'der': AberrationType.DERIVATIVE,
    'r': AberrationType.RING,
    'add': AberrationType.ADDITION,
    'ins': AberrationType.INSERTION,
    'i': AberrationType.ISOCHROMOSOME,
    'dic': AberrationType.DICENTRIC,
    'idic': AberrationType.ISODICENTRIC,
    'trp': AberrationType.TRIPLICATION,
    'qdp': AberrationType.QUADRUPLICATION,
    'fra': AberrationType.FRAGILE_SITE,
    'rob': AberrationType.ROBERTSONIAN,
    'tas': AberrationType.TELOMERIC_ASSOCIATION,
    'hsr': AberrationType.HSR,
}

INHERITANCE_SUFFIXES = {
    'dn': Inheritance.DE_NOVO,
    'mat': Inheritance.MATERNAL,
    'pat': Inheritance.PATERNAL,
    'inh': Inheritance.UNKNOWN,
}


class DiagnosticKind(StrEnum):
    """Catégories de diagnostics non bloquants"""
    TOO_MANY_SLANTS = 'too_many_slants'
    TOO_MANY_COMMAS = 'too_many_commas'
    MISMATCHED_LEFT_PAREN = 'mismatched_left_paren'
    MISMATCHED_RIGHT_PAREN = 'mismatched_right_paren'
    INCORRECT_CHR_LIST = 'incorrect_chr_list'
    INCORRECT_BREAKPOINTS_LIST = 'incorrect_breakpoints_list'
    INCORRECT_DER_CHR_LIST = 'incorrect_der_chr_list'
    INCORRECT_DER_BREAKPOINTS_LIST = 'incorrect_der_breakpoints_list'
    INCORRECT_CELL_NUM = 'incorrect_cell_num'
    INCORRECT_MODAL_NUM = 'incorrect_modal_num'
    UNDECODED_EVENT = 'undecoded_event'
    UNDECODED_SPECIAL_EVENT = 'undecoded_special_event'
    UNRESOLVED_INHERITANCE = 'unresolved_inheritance'


class KaryotypeStructColumns(StrEnum):
    """Colonnes de la table structurée (une ligne par événement)"""
    ID = 'ID'
    CLONE_INDEX = 'clone_index'
    CLONE_GROUP = 'clone_group'
    CLONE_KIND = 'clone_kind'
    CELL_COUNT = 'cell_count'
    MODAL_LOW = 'modal_low'
    MODAL_HIGH = 'modal_high'
    SEX = 'sex'
    EVENT_KIND = 'event_kind'
    ABERRATION_TYPE = 'aberration_type'
    CHROMOSOMES = 'chromosomes'
    BREAKPOINTS = 'breakpoints'
    COPY_CHANGE = 'copy_change'
    MULTIPLICITY = 'multiplicity'
    RAW = 'raw'
    ERROR = 'error'


class KaryotypeDiagnosticColumns(StrEnum):
    ID = 'ID'
    KIND = 'kind'
    START = 'start'
    END = 'end'
    RAW_TEXT = 'raw_text'
    MESSAGE = 'message'


class EventRow(TypedDict, total=False):
    """Ligne de la table structurée"""
    ID: str
    clone_index: Optional[int]
    clone_group: Optional[int]
    clone_kind: Optional[str]
    cell_count: Optional[int]
    modal_low: Optional[int]
    modal_high: Optional[int]
    sex: Optional[str]
    event_kind: Optional[str]
    aberration_type: Optional[str]
    chromosomes: Optional[str]
    breakpoints: Optional[str]
    copy_change: Optional[str]
    multiplicity: Optional[int]
    raw: Optional[str]
    error: Optional[str]
