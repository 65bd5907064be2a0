# Bornes de travail du moteur de grammaire (une entrée = une ligne)
MAX_INPUT_LENGTH = 2000
MAX_PARSE_STEPS = 200_000

DEFAULT_CYTO_COLUMN = "CYTOGENETICS"
DEFAULT_ID_COLUMN = "ID"
