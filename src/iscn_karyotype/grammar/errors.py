class FatalSyntaxError(ValueError):
    """Erreur lexicale/syntaxique fatale : aucun enregistrement partiel n'est produit."""

    def __init__(self, message: str, position: int, text: str = "") -> None:
        self.message = message
        self.position = position
        self.text = text
        super().__init__(f"{message} at position {position}")

    def context(self, width: int = 20) -> str:
        """Extrait de l'entrée autour de la position fautive"""
        if not self.text:
            return ""
        start = max(0, self.position - width)
        return self.text[start:self.position + width]


class ParseBudgetExceeded(FatalSyntaxError):
    """Input too long or too much backtracking work for one line."""
