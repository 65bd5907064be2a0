import pytest
import pandas as pd

from iscn_karyotype.cytogenetic_parser import (
    AberrationType,
    CloneKind,
    CompositionKind,
    DiagnosticKind,
    EventKind,
    KaryotypeParser,
    KaryotypeRecord,
    SexKind,
    parse_karyotype,
)
from iscn_karyotype.grammar import FatalSyntaxError, ParseBudgetExceeded


@pytest.fixture
def parser() -> KaryotypeParser:
    return KaryotypeParser()


def diagnostic_kinds(record: KaryotypeRecord) -> list:
    return [d.kind for d in record.diagnostics]


# =================================================================
# SCÉNARIOS DE BASE
# =================================================================

def test_parse_normal_karyotype(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX")
    assert record is not None
    assert record.modal_number.low == 46
    assert record.modal_number.high == 46
    assert record.modal_number.exact
    assert not record.modal_number.approximate
    assert record.sex.kind == SexKind.XX
    assert len(record.clones) == 1
    assert record.clones[0].events == ()
    assert record.diagnostics == ()
    assert record.is_normal


def test_parse_gain(parser: KaryotypeParser) -> None:
    record = parser.parse("47,XY,+8")
    assert record is not None
    assert record.modal_number.low == 47
    assert record.sex.kind == SexKind.XY
    events = record.clones[0].events
    assert len(events) == 1
    assert events[0].kind == EventKind.GAIN_CHROMOSOME
    assert events[0].chromosome.name == "8"
    assert not record.is_normal


def test_parse_translocation(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX,t(9;22)(q34;q11.2)[20]")
    assert record is not None
    assert record.cell_count == 20
    assert record.diagnostics == ()
    event = record.clones[0].events[0]
    assert event.kind == EventKind.ABERRATION
    aberration = event.aberration
    assert aberration.type == AberrationType.TRANSLOCATION
    assert [c.name for c in aberration.chromosomes] == ["9", "22"]
    first, second = aberration.breakpoints
    assert (first.arm, first.band, first.subband) == ("q", 34, None)
    assert (second.arm, second.band, second.subband) == ("q", 11, 2)
    assert first.chromosome == "9"
    assert second.chromosome == "22"


def test_parse_approximate_range(parser: KaryotypeParser) -> None:
    record = parser.parse("45~47,XX,+8,-7[20]")
    assert record is not None
    modal = record.modal_number
    assert (modal.low, modal.high) == (45, 47)
    assert not modal.exact
    assert modal.approximate
    kinds = [e.kind for e in record.clones[0].events]
    assert kinds == [EventKind.GAIN_CHROMOSOME, EventKind.LOSS_CHROMOSOME]
    assert record.cell_count == 20


def test_double_comma(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX,,+8")
    assert record is not None
    assert diagnostic_kinds(record) == [DiagnosticKind.TOO_MANY_COMMAS]
    events = record.clones[0].events
    assert [e.kind for e in events] == [EventKind.GAIN_CHROMOSOME]
    assert events[0].chromosome.name == "8"


def test_unopened_cell_count_keeps_sex(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX]")
    assert record is not None
    assert record.sex.kind == SexKind.XX
    assert record.clones[0].events == ()
    (diagnostic,) = record.diagnostics
    assert diagnostic.kind == DiagnosticKind.INCORRECT_CELL_NUM
    assert diagnostic.raw_text == "]"
    assert record.cell_count is None


def test_trailing_comma(parser: KaryotypeParser) -> None:
    record = parser.parse("47,XX,+8,[20]")
    assert record is not None
    assert diagnostic_kinds(record) == [DiagnosticKind.TOO_MANY_COMMAS]
    assert record.cell_count == 20


# =================================================================
# VALEURS MANQUANTES / ERREURS FATALES
# =================================================================

def test_parse_empty_string(parser: KaryotypeParser) -> None:
    assert parser.parse("") is None
    assert parser.parse("   ") is None


def test_parse_nan(parser: KaryotypeParser) -> None:
    assert parser.parse(pd.NA) is None
    assert parser.parse(float("nan")) is None
    assert parser.parse(None) is None


def test_illegal_character_is_fatal(parser: KaryotypeParser) -> None:
    with pytest.raises(FatalSyntaxError) as exc:
        parser.parse("46,XX,+8!")
    assert exc.value.position == 8


def test_overlong_input() -> None:
    parser = KaryotypeParser(max_length=20)
    with pytest.raises(ParseBudgetExceeded):
        parser.parse("46,XX,t(9;22)(q34;q11.2),+8,+10[20]")


def test_seen_diagnostic_kinds_are_per_instance() -> None:
    first = KaryotypeParser()
    second = KaryotypeParser()
    record = first.parse("46,XX,,+8")
    assert first.seen_diagnostic_kinds == {DiagnosticKind.TOO_MANY_COMMAS}
    assert second.seen_diagnostic_kinds == set()
    # même résultat quel que soit l'état de journalisation de l'instance
    assert second.parse("46,XX,,+8") == record
    assert first.parse("46,XX,,+8") == record


def test_parse_karyotype_helper() -> None:
    record = parse_karyotype("46,XY")
    assert record is not None
    assert record.sex.kind == SexKind.XY


# =================================================================
# CLONES ET HÉRITAGE
# =================================================================

def test_idem_inheritance(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX,del(1)(p13)/47,idem,+8")
    assert record is not None
    assert record.diagnostics == ()
    stemline, sideline = record.clones
    assert stemline.kind == CloneKind.STEMLINE
    assert sideline.kind == CloneKind.SIDELINE_I
    assert sideline.inherits_from == 0

    expanded = record.expand_clone(1)
    assert [e.kind for e in expanded] == [EventKind.ABERRATION, EventKind.GAIN_CHROMOSOME]
    assert expanded[0] == stemline.events[0]
    assert expanded[1].chromosome.name == "8"
    # le clone lui-même garde son renvoi, sans copie
    assert sideline.events[0].kind == EventKind.IDEM


def test_idem_chain_is_sideline_ii(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX,del(1)(p13)[5]/47,idem,+8[10]/48,idem,+10[5]")
    assert record is not None
    kinds = [c.kind for c in record.clones]
    assert kinds == [CloneKind.STEMLINE, CloneKind.SIDELINE_I, CloneKind.SIDELINE_II]
    assert record.clones[2].inherits_from == 1
    assert len(record.expand_clone(2)) == 3
    assert record.cell_count == 20


def test_sl_and_sdl_references(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX,del(1)(p13)/47,sl,+8/48,sdl1,+10/47,sl,-7")
    assert record is not None
    assert record.diagnostics == ()
    assert [c.inherits_from for c in record.clones] == [None, 0, 1, 0]
    assert record.clones[2].kind == CloneKind.SIDELINE_II


def test_inheritance_points_backwards(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX,+8/47,idem,+9/48,idem,+10/46,XY")
    assert record is not None
    for clone in record.clones:
        if clone.inherits_from is not None:
            assert clone.inherits_from < clone.index


def test_unresolved_idem_is_diagnostic(parser: KaryotypeParser) -> None:
    record = parser.parse("46,idem,+8")
    assert record is not None
    assert diagnostic_kinds(record) == [DiagnosticKind.UNRESOLVED_INHERITANCE]
    assert record.clones[0].inherits_from is None


def test_unresolved_sdl_is_diagnostic(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX,+8/47,sdl2,+9")
    assert record is not None
    assert diagnostic_kinds(record) == [DiagnosticKind.UNRESOLVED_INHERITANCE]


def test_second_reference_is_diagnostic(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX,+8/47,idem,+9,sl")
    assert record is not None
    (diagnostic,) = record.diagnostics
    assert diagnostic.kind == DiagnosticKind.UNRESOLVED_INHERITANCE
    assert diagnostic.raw_text == "sl"
    assert record.clones[1].inherits_from == 0
    assert [e.kind for e in record.expand_clone(1)] == [
        EventKind.GAIN_CHROMOSOME,
        EventKind.GAIN_CHROMOSOME,
    ]


def test_idem_multiplicity(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX,t(9;22)(q34;q11)/92,idemx2")
    assert record is not None
    assert len(record.clones) == 2
    assert record.clones[1].multiplicity == 2
    assert record.clones[1].inherits_from == 0


def test_additional_and_nonclonal(parser: KaryotypeParser) -> None:
    record = parser.parse("47,XX,+8[10]/46,XX,-7[5]/46,XX,+21[1]")
    assert record is not None
    kinds = [c.kind for c in record.clones]
    assert kinds == [CloneKind.STEMLINE, CloneKind.ADDITIONAL, CloneKind.NONCLONAL]


def test_mosaic_composition(parser: KaryotypeParser) -> None:
    record = parser.parse("mos45,X[10]/46,XX[20]")
    assert record is not None
    assert record.composition_kind == CompositionKind.MOSAIC
    assert record.cell_count == 30
    assert record.clones[0].sex.chromosomes == ("X",)
    assert record.clones[0].sex.kind == SexKind.MIXED


def test_chimera_groups(parser: KaryotypeParser) -> None:
    record = parser.parse("chi46,XX[10]//46,XY[10]")
    assert record is not None
    assert record.composition_kind == CompositionKind.CHIMERIC
    assert [c.group for c in record.clones] == [0, 1]
    assert all(c.kind == CloneKind.STEMLINE for c in record.clones)
    assert record.diagnostics == ()


def test_single_composition_by_default(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX[20]/47,XX,+8[5]")
    assert record is not None
    assert record.composition_kind == CompositionKind.SINGLE


# =================================================================
# PROPRIÉTÉS
# =================================================================

@pytest.mark.parametrize(
    "karyotype",
    [
        "46,XX",
        "47,XY,+8",
        "46,XX,t(9;22)(q34;q11.2)[20]",
        "45,XY,-7,del(5)(q13q33)[15]/46,XY[5]",
        "46,XX,inv(16)(p13.1q22)",
        "46,XY,der(22)t(9;22)(q34;q11)",
        "47,XX,+mar1[3]",
        "46,XX,i(17)(q10)",
        "46,XY,r(7)(p22q36)",
        "46,XX,dup(1)(q21q32)",
        "46,XX,der(13)(13pter->13q10::15q10->15qter)",
        "92<4n>,XXXX",
        "46,XX,?del(5)(q13)",
        "46,XX,add(19)(p13orq13)",
    ],
)
def test_strict_input_has_no_diagnostics(parser: KaryotypeParser, karyotype: str) -> None:
    record = parser.parse(karyotype)
    assert record is not None
    assert record.diagnostics == ()


@pytest.mark.parametrize(
    "karyotype",
    [
        "46,XX,del(1)(p13)/47,idem,+8",
        "46,XX,t(9;22)(q34;q11.2",
        "45,46,XX,,+8[2O]",
    ],
)
def test_parsing_is_idempotent(parser: KaryotypeParser, karyotype: str) -> None:
    assert parser.parse(karyotype) == parser.parse(karyotype)


def test_record_is_immutable(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX")
    assert record is not None
    with pytest.raises(Exception):
        record.cell_count = 3  # type: ignore[misc]


def test_to_dict(parser: KaryotypeParser) -> None:
    record = parser.parse("47,XY,+8[20]")
    assert record is not None
    result = record.to_dict()
    assert result['is_normal'] == False
    assert result['modal_number']['low'] == 47
    assert result['clones'][0]['events'][0]['kind'] == 'gain_chromosome'
    assert result['composition_kind'] == 'single'
