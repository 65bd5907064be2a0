from dataclasses import dataclass, field
from enum import StrEnum
from typing import Dict, Iterator, List, Optional


class Rule(StrEnum):
    """Règles de la grammaire ISCN"""

    ROW = "row"
    MOS_CHI = "mosChi"
    GROUP_SEPARATOR = "groupSeparator"
    GROUP = "group"
    CLONE = "clone"
    MODAL_NUM = "modalNum"
    MODAL_CONTENT = "modalNumContent"
    MODAL_LEVEL = "modalLevel"
    SEX = "sex"
    HEAD = "head"
    EVENT_SEPARATOR = "eventSeparator"
    EVENT = "event"
    SIMPLE_EVENT = "simpleEvent"
    PREFIX = "prefix"
    SUFFIX = "suffix"
    MULTIPLICATION = "multiplication"
    CHROMOSOME = "chr"
    MARKER = "marker"
    ABERRATION = "aberration"
    CHR_LIST = "chrList"
    DER_CHR_LIST = "derChrList"
    BREAKPOINTS_LIST = "breakpointsList"
    DER_BREAKPOINTS = "derBreakpoints"
    BREAKPOINT_GROUP = "breakpoints"
    BREAKPOINT_ITEM = "breakpointItem"
    BREAKPOINT = "breakpoint"
    REARRANGEMENT = "rearrangement"
    DETAILED_FORMULA = "detailedFormula"
    DETAILED_SEGMENT = "detailedSegment"
    CELL_NUM = "cellNum"


class Alt(StrEnum):
    """Alternatives étiquetées (une par production de la grammaire)"""

    ROW_TYPE_I = "rowTypeI"
    ROW_TYPE_II = "rowTypeII"
    MOSAIC = "mosaic"
    CHIMERIC = "chimeric"
    CORRECT_SLANT = "correctSlant"
    TOO_MANY_SLANT = "tooManySlant"
    STEMLINE_GROUP = "stemlineGroup"
    KARYOTYPE = "karyotype"
    MODAL_SEX_GLUED = "modalSexGlued"

    CORRECT_MODAL_NUM = "correctModalNum"
    INCORRECT_MODAL_NUM = "incorrectModalNum"
    EXACT = "exact"
    NUM_RANGE_HYPHEN = "numRangeTypeI"
    NUM_RANGE_TILDE = "numRangeTypeII"
    APPROXIMATE = "numRangeTypeIII"
    ENUMERATED = "enumerated"
    MODAL_LEVEL = "modalLevel"

    GENDER = "gender"
    UNDETERMINED_SEX = "undeterminedSex"
    IDEM_SPECIAL = "idemSpecial"
    SL_SPECIAL = "slSpecial"
    SDL_SPECIAL = "sdlSpecial"

    CORRECT_COMMA = "correctComma"
    TOO_MANY_COMMA = "tooManyComma"

    MULTIPLE_INTERPRETATION_EVENT = "multipleInterpretationRegularEvent"
    SIMPLE_REGULAR_EVENT = "simpleRegularEvent"
    IDEM_EVENT = "idemEvent"
    SL_EVENT = "slEvent"
    SDL_EVENT = "sdlEvent"
    MOSAIC_TAG_EVENT = "mosaicTagEvent"
    UNDECODED_SPECIAL_EVENT = "undecodedSpecialEvent"
    UNDECODED_EVENT = "undecodedEvent"

    ABERRATION_EVENT = "aberrationEvent"
    GAIN_LOSS_CHR_EVENT = "gainLossChrEvent"
    MARKER_EVENT = "markerEvent"
    UNCERTAIN_EVENT = "uncertainEvent"
    PREFIX_PLUS = "prefixPlus"
    PREFIX_MINUS = "prefixMinus"
    INHERITANCE = "inh"
    CONSTITUTIONAL = "c"
    MULTIPLICATION = "multiplication"
    MAR = "mar"
    DMIN = "dmin"

    DER_ABERRATION = "derAberration"
    UNCERTAIN_BASIC_ABERRATION = "uncertainBasicAberration"
    BASIC_ABERRATION = "basicAberration"
    DER_ABERRATION_ERROR = "derAberrationError"
    BASIC_ABERRATION_ERROR = "basicAberrationError"
    INCORRECT_LEFT_PARENTHESIS = "incorrectLeftParenthesis"
    INCORRECT_RIGHT_PARENTHESIS = "incorrectRightParenthesis"

    CORRECT_CHR_LIST = "correctChrList"
    INCORRECT_CHR_LIST = "incorrectChrList"
    CORRECT_DER_CHR_LIST = "correctDerChrList"
    INCORRECT_DER_CHR_LIST = "incorrectDerChrList"
    CHR_NUM = "chrNum"
    ID_UNCERTAIN_CHR = "idUncertainChr"
    UNCERTAIN_CHR = "correctUncertainChr"
    GAIN_LOSS_CHR = "gainLossChr"

    CORRECT_BREAKPOINTS_LIST = "correctBreakpointsList"
    DETAILED_BREAKPOINTS_LIST = "detailedBreakpointsList"
    INCORRECT_BREAKPOINTS_LIST = "incorrectBreakpointsList"
    NORMAL_DER_BREAKPOINTS = "normalDerBreakpoints"
    MULTIPLE_INTERPRETATION_DER_BREAKPOINTS = "multipleInterpretationDerBreakpoints"
    DETAILED_DER_BREAKPOINTS = "detailedDerBreakpoints"
    INCORRECT_DER_BREAKPOINTS_LIST = "incorrectDerBreakpointsList"
    NORMAL_BREAKPOINTS = "normalBreakpoints"
    MULTIPLE_INTERPRETATION_BREAKPOINTS = "multipleInterpretationBreakpoints"
    SINGLE = "single"
    ALTERNATIVES = "alternatives"
    BAND = "band"
    TERMINAL = "terminal"
    CENTROMERE = "cen"
    ARM_ONLY = "arm"
    UNKNOWN = "unknown"

    NORMAL_REARRANGEMENT = "normalRearrangement"
    MULTIPLE_INTERPRETATION_REARRANGEMENT = "multipleInterpretationRearrangement"
    DETAILED_FORMULA = "detailedFormula"
    SEGMENT = "detailedSegment"
    HSR_SEGMENT = "hsrSegment"

    CORRECT_CELL_NUM = "correctCellNum"
    INCORRECT_CELL_NUM = "incorrectCellNum"


@dataclass
class ParseNode:
    """Noeud de l'arbre syntaxique produit par le moteur de grammaire."""

    rule: Rule
    alt: Alt
    start: int
    end: int
    text: str
    children: List["ParseNode"] = field(default_factory=list)
    groups: Dict[str, str] = field(default_factory=dict)

    def child(self, rule: Rule) -> Optional["ParseNode"]:
        return next((c for c in self.children if c.rule == rule), None)

    def children_of(self, rule: Rule) -> List["ParseNode"]:
        return [c for c in self.children if c.rule == rule]

    def walk(self) -> Iterator["ParseNode"]:
        """Parcours préfixe (gauche à droite)"""
        yield self
        for c in self.children:
            yield from c.walk()

    def __repr__(self) -> str:
        return f"ParseNode({self.rule.value}:{self.alt.value} [{self.start}:{self.end}] {self.text!r})"
