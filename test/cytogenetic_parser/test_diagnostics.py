import pytest

from iscn_karyotype.cytogenetic_parser import (
    Diagnostic,
    DiagnosticKind,
    KaryotypeParser,
    SourceSpan,
)
from iscn_karyotype.cytogenetic_parser.diagnostics import (
    INCORRECT_ALTERNATIVES,
    MESSAGES,
    DiagnosticSink,
    classify,
    diagnose,
)
from iscn_karyotype.grammar import Alt, Rule, parse


@pytest.fixture
def parser() -> KaryotypeParser:
    return KaryotypeParser()


def make(kind: DiagnosticKind, start: int) -> Diagnostic:
    return Diagnostic(kind=kind, span=SourceSpan(start=start, end=start + 1), raw_text="x")


def test_every_kind_has_a_message() -> None:
    assert set(MESSAGES) == set(DiagnosticKind)
    assert set(INCORRECT_ALTERNATIVES.values()) <= set(DiagnosticKind)


def test_classify_correct_node_is_none() -> None:
    tree = parse("46,XX")
    assert all(classify(node) is None for node in tree.walk())
    assert diagnose(None) is None


def test_diagnose_too_many_slants() -> None:
    tree = parse("46,XX[10]///46,XY[10]")
    separator = tree.child(Rule.GROUP_SEPARATOR)
    assert separator.alt == Alt.TOO_MANY_SLANT
    diagnostic = diagnose(separator)
    assert diagnostic.kind == DiagnosticKind.TOO_MANY_SLANTS
    assert diagnostic.raw_text == "///"
    assert diagnostic.message == MESSAGES[DiagnosticKind.TOO_MANY_SLANTS]


def test_sink_sorts_by_position() -> None:
    sink = DiagnosticSink()
    sink.add(make(DiagnosticKind.INCORRECT_CELL_NUM, 12))
    sink.add(None)
    sink.add(make(DiagnosticKind.TOO_MANY_COMMAS, 3))
    assert len(sink) == 2
    frozen = sink.freeze()
    assert [d.span.start for d in frozen] == [3, 12]


def test_frozen_sink_refuses_additions() -> None:
    sink = DiagnosticSink()
    sink.freeze()
    with pytest.raises(RuntimeError):
        sink.add(make(DiagnosticKind.TOO_MANY_COMMAS, 0))


def test_record_diagnostics_are_ordered(parser: KaryotypeParser) -> None:
    record = parser.parse("45,46,XX,,+8,t(9,22)(q34;q11)[2O]")
    assert record is not None
    kinds = [d.kind for d in record.diagnostics]
    assert kinds == [
        DiagnosticKind.INCORRECT_MODAL_NUM,
        DiagnosticKind.TOO_MANY_COMMAS,
        DiagnosticKind.INCORRECT_CHR_LIST,
        DiagnosticKind.INCORRECT_CELL_NUM,
    ]
    starts = [d.span.start for d in record.diagnostics]
    assert starts == sorted(starts)


def test_diagnostic_text_matches_source(parser: KaryotypeParser) -> None:
    record = parser.parse("46, XX,,+8")
    assert record is not None
    (diagnostic,) = record.diagnostics
    assert record.source == "46,XX,,+8"
    assert record.source[diagnostic.span.start:diagnostic.span.end] == diagnostic.raw_text
