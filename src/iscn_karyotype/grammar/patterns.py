from enum import StrEnum


_CHROMOSOME = r"2[0-2]|1[0-9]|[1-9]|X|Y"
_DELIMITER = r"(?=[,/\[]|$)"


class KaryotypePatterns(StrEnum):
    """Motifs regex des tokens ISCN (entrée sans espaces)"""

    # --- Alphabet ---
    ILLEGAL_CHARACTER = r"[^0-9A-Za-z()\[\],;:/~+\-?.<>±]"

    # --- Structure de la ligne ---
    MOS_CHI = r"(?P<kind>mos|chi)"
    GROUP_SEPARATOR = r"//(?!/)"
    TOO_MANY_SLANTS = r"/{3,}"
    CLONE_SEPARATOR = r"/(?!/)"
    COMMA = r",(?!,)"
    TOO_MANY_COMMAS = r",{2,}"
    CLONE_END_AHEAD = r"(?=[/\[]|$)"
    EVENT_END_AHEAD = r"(?=[,/\[]|$|or)"
    DELIMITER_AHEAD = _DELIMITER

    # --- Nombre modal ---
    MODAL_RANGE = r"(?P<low>\d+)(?P<separator>[~-])(?P<high>\d+)"
    MODAL_APPROXIMATE = r"~(?P<low>\d+)"
    MODAL_EXACT = r"(?P<low>\d+)"
    MODAL_ENUMERATED = r"(?P<values>\d+(?:,\d+)+)(?=,)"
    MODAL_LEVEL = r"<(?P<level>\d)n(?P<sign>[+\-±])?>"
    ENUMERATION_AHEAD = r",\d+(?:[,/\[]|$)"

    # --- Sexe ---
    SEX = r"(?P<sex>[XY]+)(?P<uncertain>\?)?(?=[,/\[\]]|$)"
    UNDETERMINED_SEX = r"\?" + _DELIMITER

    # --- Références de clone ---
    IDEM = r"idem"
    SL = r"sl"
    SDL = r"sdl(?P<index>\d+)?"
    SPECIAL_PREFIX = r"idem|sdl|sl"
    MULTIPLICATION = r"x(?P<times>\d+)"

    # --- Événements ---
    OR = r"or"
    PREFIX = r"(?P<sign>[+\-])"
    SUFFIX = r"(?P<suffix>dn|mat|pat|inh|c)"
    EVENT_CHROMOSOME = r"(?P<chr>" + _CHROMOSOME + r")(?![0-9])"
    MARKER = r"(?:(?P<low>\d+)(?:~(?P<high>\d+))?)?mar(?P<index>\d+)?"
    DOUBLE_MINUTE = r"(?:(?P<low>\d+)(?:~(?P<high>\d+))?)?dmin"
    UNCERTAIN_EVENT = r"\?" + _DELIMITER
    MOSAIC_TAG = r"(?P<kind>mos|chi)" + _DELIMITER

    # --- Anomalies structurelles ---
    UNCERTAIN_PREFIX = r"\?"
    DER = r"(?P<abbrev>der)(?=\()"
    ABBREVIATION = r"(?P<abbrev>idic|del|dup|trp|qdp|inv|ins|add|fra|dic|rob|tas|hsr|t|i|r)(?=\()"
    ERROR_ABBREVIATION = r"(?P<abbrev>der|idic|del|dup|trp|qdp|inv|ins|add|fra|dic|rob|tas|hsr|t|i|r)(?=\()"
    BARE_ABBREVIATION = r"(?P<abbrev>der|idic|del|dup|trp|qdp|inv|ins|add|fra|dic|rob|tas|hsr|t|i|r)(?=[0-9XY?])"
    LEFT_PAREN = r"\("
    RIGHT_PAREN = r"\)"
    SEMICOLON = r";"
    LAX_LIST_CONTENT = r"[^()\[\]/]+"
    UNCLOSED_CONTENT = r"[^()\[\]/,]+" + _DELIMITER

    # --- Listes de chromosomes ---
    LIST_CHROMOSOME = (
        r"(?P<leading>\?)?(?P<chr>" + _CHROMOSOME + r"|mar)(?P<trailing>\?)?(?P<arm>[pq])?(?=[;)])"
    )
    LAX_CHROMOSOME = r"(?P<leading>\?)?(?P<chr>" + _CHROMOSOME + r"|mar)(?P<trailing>\?)?(?P<arm>[pq])?"
    ID_UNCERTAIN_CHROMOSOME = r"\?(?=[;)])"
    LAX_SEPARATORS = r"[;,:.]"

    # --- Points de cassure ---
    BREAKPOINT_TERMINAL = r"(?P<arm>[pq])ter"
    BREAKPOINT_CENTROMERE = r"cen"
    BREAKPOINT_BAND = (
        r"(?P<arm>[pq])(?P<band>\d{1,2})(?:\.(?P<subband>\d+))?(?P<uncertain>\?)?"
        r"(?:~(?P<upper_arm>[pq])?(?P<upper_band>\d{1,2})(?:\.(?P<upper_subband>\d+))?)?"
    )
    BREAKPOINT_ARM = r"(?P<arm>[pq])(?P<uncertain>\?)?"
    BREAKPOINT_UNKNOWN = r"\?"
    LAX_BREAKPOINT = (
        r"(?P<arm>[pq])(?P<terminal>ter)?(?P<band>\d{1,2})?(?:\.(?P<subband>\d+))?(?P<uncertain>\?)?"
        r"|(?P<centromere>cen)|(?P<unknown>\?)"
    )
    LAX_GROUP_SEPARATORS = r"[;,:]"

    # --- Formule détaillée: der(13)(13pter->13q10::15q10->15qter) ---
    DETAILED_AHEAD = r"[^()]*(?:->|::)"
    DETAILED_CHROMOSOME = r"(?P<chr>" + _CHROMOSOME + r")(?=[pq]|cen)"
    FUSION = r"::"
    ARROW = r"->"
    HSR = r"hsr"

    # --- Nombre de cellules ---
    CELL_NUMBER = r"\[(?P<composite>cp)?(?P<count>\d+)\]"
    INCORRECT_CELL_NUMBER = r"\[(?P<composite>cp)?(?P<body>[^\]/,]*)\]?"
    UNOPENED_CELL_NUMBER = r"(?P<composite>cp)?(?P<body>\d*)\](?=/|$)"
