import logging
from typing import Any, Optional

import pandas as pd

from iscn_karyotype.globals import MAX_INPUT_LENGTH, MAX_PARSE_STEPS
from iscn_karyotype.grammar import KaryotypeGrammar

from .model import KaryotypeRecord
from .visitor import KaryotypeVisitor


class KaryotypeParser:
    """
    Parser ISCN: chaîne de caractères -> KaryotypeRecord immuable

    `seen_diagnostic_kinds` ne sert qu'à journaliser une seule fois chaque
    nouveau type de diagnostic; il est propre à l'instance. Pour un lot traité
    en parallèle, créer un KaryotypeParser par worker: la grammaire et les
    enregistrements ne partagent aucun état.
    """

    def __init__(
        self, max_steps: int = MAX_PARSE_STEPS, max_length: int = MAX_INPUT_LENGTH
    ) -> None:
        self.logger = logging.getLogger(__name__)
        self.grammar = KaryotypeGrammar(max_steps=max_steps, max_length=max_length)
        self.seen_diagnostic_kinds = set()

    def parse(self, karyotype: Any) -> Optional[KaryotypeRecord]:
        """
        Point d'entrée principal pour parser un caryotype

        Les espaces sont retirés avant l'analyse; les positions des
        diagnostics portent sur le texte ainsi compacté (`record.source`).

        Returns:
            KaryotypeRecord si l'entrée est renseignée, None si manquante/vide

        Raises:
            FatalSyntaxError: caractère hors alphabet ISCN ou texte non analysable
        """
        if karyotype is None or (not isinstance(karyotype, str) and pd.isna(karyotype)):
            return None

        text = "".join(str(karyotype).split())
        if not text:
            return None

        tree = self.grammar.parse(text)
        record = KaryotypeVisitor(text).visit(tree)

        for diagnostic in record.diagnostics:
            if diagnostic.kind not in self.seen_diagnostic_kinds:
                self.logger.info(f"Encountered new diagnostic kind: {diagnostic.kind}")
                self.seen_diagnostic_kinds.add(diagnostic.kind)
        return record


def parse_karyotype(karyotype: Any) -> Optional[KaryotypeRecord]:
    """Raccourci avec les bornes par défaut"""
    return KaryotypeParser().parse(karyotype)
