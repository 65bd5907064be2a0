import logging
from typing import List, Optional

import pandas as pd

from iscn_karyotype.globals import DEFAULT_CYTO_COLUMN, DEFAULT_ID_COLUMN
from iscn_karyotype.grammar import FatalSyntaxError

from .model import Aberration, Alternatives, Breakpoint, Clone, Event, KaryotypeRecord
from .parser import KaryotypeParser
from .types import EventRow, KaryotypeDiagnosticColumns, KaryotypeStructColumns


def format_breakpoint(breakpoint: Breakpoint) -> str:
    """Breakpoint -> texte ISCN compact (q11.2, pter, cen, ?)"""
    if breakpoint.centromere:
        text = "cen"
    elif breakpoint.terminal:
        text = f"{breakpoint.arm}ter"
    elif breakpoint.arm is None:
        text = "?"
    else:
        text = breakpoint.arm
        if breakpoint.band is not None:
            text += str(breakpoint.band)
        if breakpoint.subband is not None:
            text += f".{breakpoint.subband}"
        if breakpoint.uncertain:
            text += "?"
    if breakpoint.chromosome is not None:
        return f"{breakpoint.chromosome}{text}"
    return text


def _format_breakpoints(aberration: Aberration) -> Optional[str]:
    parts = []
    for entry in aberration.breakpoints:
        if isinstance(entry, Alternatives):
            parts.append("or".join(format_breakpoint(b) for b in entry.candidates))
        else:
            parts.append(format_breakpoint(entry))
    return ";".join(parts) if parts else None


def _format_sex(clone: Clone) -> Optional[str]:
    if clone.sex is None:
        return None
    return "".join(clone.sex.chromosomes) or clone.sex.kind.value


class KaryotypeFrameBuilder:
    """Aplatit une colonne de caryotypes en tables pandas"""

    def __init__(self, parser: Optional[KaryotypeParser] = None):
        self.logger = logging.getLogger(__name__)
        self.parser = parser or KaryotypeParser()

    def _parse_safe(self, karyotype) -> tuple:
        """(record, message d'erreur) ; une erreur fatale n'interrompt pas le lot"""
        try:
            return self.parser.parse(karyotype), None
        except FatalSyntaxError as e:
            self.logger.warning(f"Could not parse karyotype {karyotype!r}: {e}")
            return None, str(e)

    def gen_structured_dataframe(
        self,
        data: pd.DataFrame,
        cyto_col: str = DEFAULT_CYTO_COLUMN,
        id_col: str = DEFAULT_ID_COLUMN,
    ) -> pd.DataFrame:
        """Génère un DataFrame structuré avec une ligne par événement cytogénétique

        Args:
            data: DataFrame d'entrée contenant une colonne de caryotypes bruts
            cyto_col: Nom de la colonne contenant les caryotypes
            id_col: Nom de la colonne identifiant chaque ligne
        Returns:
            DataFrame avec une ligne par événement (une ligne sans événement
            pour un clone vide, une ligne d'erreur pour un caryotype illisible)
        """
        rows: List[EventRow] = []
        columns = [c.value for c in KaryotypeStructColumns]

        for _, row in data.iterrows():
            record, error = self._parse_safe(row[cyto_col])
            base = {KaryotypeStructColumns.ID.value: row[id_col]}

            def make_row(extra: dict) -> EventRow:
                out = {col: None for col in columns}
                out.update(base)
                out.update(extra)
                return out

            if error is not None:
                rows.append(make_row({KaryotypeStructColumns.ERROR.value: error}))
                continue
            if record is None:
                continue

            for clone in record.clones:
                clone_cols = self._clone_columns(clone)
                events = clone.events or (None,)
                for event in events:
                    extra = dict(clone_cols)
                    if event is not None:
                        extra.update(self._event_columns(event))
                    rows.append(make_row(extra))

        return pd.DataFrame(rows, columns=columns)

    def gen_diagnostics_dataframe(
        self,
        data: pd.DataFrame,
        cyto_col: str = DEFAULT_CYTO_COLUMN,
        id_col: str = DEFAULT_ID_COLUMN,
    ) -> pd.DataFrame:
        """Une ligne par diagnostic (erreurs fatales incluses, kind='fatal')"""
        rows = []
        for _, row in data.iterrows():
            record, error = self._parse_safe(row[cyto_col])
            if error is not None:
                rows.append({
                    KaryotypeDiagnosticColumns.ID.value: row[id_col],
                    KaryotypeDiagnosticColumns.KIND.value: "fatal",
                    KaryotypeDiagnosticColumns.MESSAGE.value: error,
                })
                continue
            if record is None:
                continue
            for diagnostic in record.diagnostics:
                rows.append({
                    KaryotypeDiagnosticColumns.ID.value: row[id_col],
                    KaryotypeDiagnosticColumns.KIND.value: diagnostic.kind.value,
                    KaryotypeDiagnosticColumns.START.value: diagnostic.span.start,
                    KaryotypeDiagnosticColumns.END.value: diagnostic.span.end,
                    KaryotypeDiagnosticColumns.RAW_TEXT.value: diagnostic.raw_text,
                    KaryotypeDiagnosticColumns.MESSAGE.value: diagnostic.message,
                })

        columns = [c.value for c in KaryotypeDiagnosticColumns]
        return pd.DataFrame(rows, columns=columns)

    def gen_records(
        self, data: pd.DataFrame, cyto_col: str = DEFAULT_CYTO_COLUMN
    ) -> List[Optional[KaryotypeRecord]]:
        """Un KaryotypeRecord (ou None) par ligne, dans l'ordre du DataFrame"""
        return [self._parse_safe(value)[0] for value in data[cyto_col]]

    # =================================================================
    # COLONNES
    # =================================================================

    def _clone_columns(self, clone: Clone) -> dict:
        return {
            KaryotypeStructColumns.CLONE_INDEX.value: clone.index,
            KaryotypeStructColumns.CLONE_GROUP.value: clone.group,
            KaryotypeStructColumns.CLONE_KIND.value: clone.kind.value,
            KaryotypeStructColumns.CELL_COUNT.value: clone.cell_count,
            KaryotypeStructColumns.MODAL_LOW.value: clone.modal_number.low,
            KaryotypeStructColumns.MODAL_HIGH.value: clone.modal_number.high,
            KaryotypeStructColumns.SEX.value: _format_sex(clone),
        }

    def _event_columns(self, event: Event) -> dict:
        cols = {
            KaryotypeStructColumns.EVENT_KIND.value: event.kind.value,
            KaryotypeStructColumns.COPY_CHANGE.value: event.copy_change,
            KaryotypeStructColumns.MULTIPLICITY.value: event.multiplicity,
            KaryotypeStructColumns.RAW.value: event.raw_text,
        }
        if event.chromosome is not None:
            cols[KaryotypeStructColumns.CHROMOSOMES.value] = event.chromosome.name
        if event.aberration is not None:
            aberration = event.aberration
            cols[KaryotypeStructColumns.ABERRATION_TYPE.value] = aberration.type.value
            cols[KaryotypeStructColumns.CHROMOSOMES.value] = ";".join(
                c.name for c in aberration.chromosomes
            )
            cols[KaryotypeStructColumns.BREAKPOINTS.value] = _format_breakpoints(aberration)
        if event.marker is not None:
            cols[KaryotypeStructColumns.CHROMOSOMES.value] = event.marker.type.value
        return cols
