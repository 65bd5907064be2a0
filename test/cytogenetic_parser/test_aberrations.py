import pytest

from iscn_karyotype.cytogenetic_parser import (
    AberrationType,
    Alternatives,
    DiagnosticKind,
    EventKind,
    KaryotypeParser,
)
from iscn_karyotype.cytogenetic_parser.aberrations import AberrationResolver
from iscn_karyotype.cytogenetic_parser.diagnostics import DiagnosticSink
from iscn_karyotype.grammar import Rule, parse


@pytest.fixture
def parser() -> KaryotypeParser:
    return KaryotypeParser()


def first_aberration(parser: KaryotypeParser, karyotype: str):
    record = parser.parse(karyotype)
    assert record is not None
    event = next(e for e in record.clones[0].events if e.kind == EventKind.ABERRATION)
    return record, event.aberration


def test_resolver_collects_into_sink() -> None:
    tree = parse("46,XX,t(9,22)(q34;q11)")
    node = next(n for n in tree.walk() if n.rule == Rule.ABERRATION)
    sink = DiagnosticSink()
    aberration = AberrationResolver(sink).resolve(node)
    assert aberration.type == AberrationType.TRANSLOCATION
    assert len(sink) == 1


def test_deletion_two_breakpoints(parser: KaryotypeParser) -> None:
    _, aberration = first_aberration(parser, "46,XX,del(5)(q13q33)")
    assert aberration.type == AberrationType.DELETION
    assert [b.band for b in aberration.breakpoints] == [13, 33]
    assert all(b.chromosome == "5" for b in aberration.breakpoints)


def test_comma_in_chromosome_list(parser: KaryotypeParser) -> None:
    record, aberration = first_aberration(parser, "46,XX,t(9,22)(q34;q11)")
    assert [d.kind for d in record.diagnostics] == [DiagnosticKind.INCORRECT_CHR_LIST]
    assert not aberration.chromosomes_well_formed
    assert aberration.breakpoints_well_formed
    assert [c.name for c in aberration.chromosomes] == ["9", "22"]


@pytest.mark.parametrize(
    "karyotype, expected, names",
    [
        ("46,XX,t(;22)(q34;q11.2)", DiagnosticKind.INCORRECT_CHR_LIST, ["22"]),
        ("46,XX,t(9;22;)(q34;q11.2)", DiagnosticKind.INCORRECT_CHR_LIST, ["9", "22"]),
        ("46,XX,der(9;;22)(q34;q11.2)", DiagnosticKind.INCORRECT_DER_CHR_LIST, ["9", "22"]),
    ],
)
def test_empty_element_in_chromosome_list(
    parser: KaryotypeParser, karyotype: str, expected: DiagnosticKind, names: list
) -> None:
    record, aberration = first_aberration(parser, karyotype)
    assert [d.kind for d in record.diagnostics] == [expected]
    assert not aberration.chromosomes_well_formed
    assert aberration.breakpoints_well_formed
    assert [c.name for c in aberration.chromosomes] == names


def test_comma_in_breakpoints_list(parser: KaryotypeParser) -> None:
    record, aberration = first_aberration(parser, "46,XX,t(9;22)(q34,q11)")
    assert [d.kind for d in record.diagnostics] == [DiagnosticKind.INCORRECT_BREAKPOINTS_LIST]
    assert aberration.chromosomes_well_formed
    assert not aberration.breakpoints_well_formed
    assert len(aberration.breakpoints) == 2


def test_unclosed_breakpoints_list(parser: KaryotypeParser) -> None:
    record, aberration = first_aberration(parser, "46,XX,t(9;22)(q34;q11.2")
    assert [d.kind for d in record.diagnostics] == [DiagnosticKind.MISMATCHED_LEFT_PAREN]
    assert aberration.type == AberrationType.TRANSLOCATION
    assert aberration.breakpoints[1].subband == 2


def test_extra_right_parenthesis(parser: KaryotypeParser) -> None:
    record, aberration = first_aberration(parser, "46,XX,del(5)(q13))")
    assert [d.kind for d in record.diagnostics] == [DiagnosticKind.MISMATCHED_RIGHT_PAREN]
    assert aberration.type == AberrationType.DELETION
    assert aberration.breakpoints[0].band == 13


def test_derivative_cardinality_mismatch(parser: KaryotypeParser) -> None:
    record, aberration = first_aberration(parser, "46,XX,der(1;5)(p13)")
    assert [d.kind for d in record.diagnostics] == [DiagnosticKind.INCORRECT_DER_BREAKPOINTS_LIST]
    assert aberration.type == AberrationType.DERIVATIVE
    assert not aberration.breakpoints_well_formed


def test_derivative_rearrangement(parser: KaryotypeParser) -> None:
    record, aberration = first_aberration(parser, "46,XY,der(22)t(9;22)(q34;q11)")
    assert record.diagnostics == ()
    assert aberration.type == AberrationType.DERIVATIVE
    assert [c.name for c in aberration.chromosomes] == ["22"]
    (rearrangement,) = aberration.rearrangements
    assert rearrangement.type == AberrationType.TRANSLOCATION


def test_derivative_detailed_formula(parser: KaryotypeParser) -> None:
    _, aberration = first_aberration(parser, "45,XX,der(13)(13pter->13q10::15q10->15qter)")
    assert len(aberration.segments) == 2
    assert not aberration.circular
    first = aberration.segments[0]
    assert first.start.terminal
    assert first.start.chromosome == "13"
    assert first.end.band == 10
    assert aberration.segments[1].start.chromosome == "15"


def test_ring_detailed_is_circular(parser: KaryotypeParser) -> None:
    record, aberration = first_aberration(parser, "46,XX,r(1)(::p13->q22::)")
    assert record.diagnostics == ()
    assert aberration.type == AberrationType.RING
    assert aberration.circular
    assert [b.arm for b in aberration.breakpoints] == ["p", "q"]


def test_uncertain_aberration(parser: KaryotypeParser) -> None:
    _, aberration = first_aberration(parser, "46,XX,?del(5)(q13)")
    assert aberration.type == AberrationType.UNCERTAIN_BASIC
    assert aberration.uncertain_of == AberrationType.DELETION


def test_breakpoint_alternatives(parser: KaryotypeParser) -> None:
    _, aberration = first_aberration(parser, "46,XX,add(19)(p13orq13)")
    (entry,) = aberration.breakpoints
    assert isinstance(entry, Alternatives)
    assert [b.arm for b in entry.candidates] == ["p", "q"]
    assert all(b.chromosome == "19" for b in entry.candidates)


@pytest.mark.parametrize(
    "karyotype, expected",
    [
        ("46,XX,inv(16)(p13.1q22)", AberrationType.INVERSION),
        ("46,XX,dup(1)(q21q32)", AberrationType.DUPLICATION),
        ("46,XX,i(17)(q10)", AberrationType.ISOCHROMOSOME),
        ("46,XX,add(19)(p13)", AberrationType.ADDITION),
        ("45,XX,dic(17;20)(p11;q11)", AberrationType.DICENTRIC),
    ],
)
def test_aberration_types(parser: KaryotypeParser, karyotype: str, expected: AberrationType) -> None:
    _, aberration = first_aberration(parser, karyotype)
    assert aberration.type == expected


def test_marker_event(parser: KaryotypeParser) -> None:
    record = parser.parse("48,XX,+2mar")
    assert record is not None
    (event,) = record.clones[0].events
    assert event.kind == EventKind.MARKER
    assert event.copy_change == "+"
    assert (event.marker.count.low, event.marker.count.high) == (2, 2)


def test_multiple_interpretation_event(parser: KaryotypeParser) -> None:
    record = parser.parse("47,XX,+8or+9")
    assert record is not None
    (event,) = record.clones[0].events
    assert event.kind == EventKind.ALTERNATIVES
    assert [c.chromosome.name for c in event.alternatives.candidates] == ["8", "9"]


def test_undecoded_event_keeps_text(parser: KaryotypeParser) -> None:
    record = parser.parse("46,XX,foo(1),+8")
    assert record is not None
    assert [d.kind for d in record.diagnostics] == [DiagnosticKind.UNDECODED_EVENT]
    undecoded = record.clones[0].events[0]
    assert undecoded.kind == EventKind.UNDECODED
    assert undecoded.raw_text == "foo(1)"
    assert record.diagnostics[0].span.start == 6
