"""
Commercial registry (BORME section A) free-text parser.

Input is the plain text extracted from one province PDF. The pipeline:

1. Drop boilerplate lines (running headers, page numbers, verification
   footers, province banners).
2. Reflow the surviving lines into one blob; an entry spans many lines.
3. Split the blob at "<4-6 digits> - " entry boundaries.
4. Split each entry into company name and act text at the earliest act
   marker.
5. Pull officers out of the act text ("Role: NAME; NAME") and attribute
   each to the act section header that precedes it.
6. Extract capital, registered office, corporate purpose, sole shareholder
   and registry data.
7. Detect every act type mentioned.

All rules live in the tables below so they can be extended or reordered
without touching the control flow. Nothing here raises on bad text: poor
input yields fewer fields.
"""

import re
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from boe_explorer.core.domain_models import Person, RegistryEntry
from boe_explorer.core.money import parse_spanish_amount
from boe_explorer.core.text import collapse_whitespace, fold, title_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionRule:
    """Anchored pattern whose first group is the value; lookahead bounds it."""
    name: str
    regex: re.Pattern

    def extract(self, text: str) -> Optional[str]:
        match = self.regex.search(text)
        if not match:
            return None
        value = match.group(1).strip(" .;\t\n\r")
        return value or None


def _p(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE | re.DOTALL)


# =============================================================================
# LINE FILTERING
# =============================================================================

BOILERPLATE_LINES: List[re.Pattern] = [
    re.compile(r"^\s*BOLET[IÍ]N OFICIAL DEL REGISTRO MERCANTIL"),
    re.compile(r"^\s*N[uú]m\.\s+\d+"),
    re.compile(r"^\s*SECCI[OÓ]N PRIMERA"),
    re.compile(r"^\s*Empresarios\s*$"),
    re.compile(r"^\s*Actos inscritos\s*$"),
    re.compile(r"^\s*Verificable en https"),
    re.compile(r"^\s*cve:\s*BORME", re.IGNORECASE),
    re.compile(r"^\s*P[aá]g\.\s+\d+"),
]

# Indented line of capitals, spaces and slashes only ("   A CORUÑA")
PROVINCE_BANNER = re.compile(r"^\s+[A-ZÁÉÍÓÚÑÜ/ ]{3,}$")


def _is_boilerplate(line: str) -> bool:
    if not line.strip():
        return True
    if any(rule.search(line) for rule in BOILERPLATE_LINES):
        return True
    stripped = line.rstrip()
    return bool(PROVINCE_BANNER.match(stripped)) and not re.search(r"\d", stripped)


def reflow(text: str) -> str:
    """Filter boilerplate lines and join the rest into one collapsed blob."""
    lines = (text or '').replace('\r', '').split('\n')
    kept = [line.strip() for line in lines if not _is_boilerplate(line)]
    return collapse_whitespace(' '.join(kept))


# =============================================================================
# ENTRY SEGMENTATION
# =============================================================================

ENTRY_SPLIT = re.compile(r"(?=\b\d{4,6}\s*-\s+)")
ENTRY_HEAD = re.compile(r"^(\d{4,6})\s*-\s+(.+)", re.DOTALL)

# Phrases that open the act text; the company name is everything before the
# earliest one.
ACT_MARKERS: List[re.Pattern] = [re.compile(p, re.IGNORECASE) for p in (
    r"Constituci[oó]n\.",
    r"Ceses/Dimisiones\.",
    r"Nombramientos\.",
    r"Ampliaci[oó]n de capital\.",
    r"Reducci[oó]n de capital\.",
    r"Cambio de domicilio social\.",
    r"Modificaciones estatutarias\.",
    r"Declaraci[oó]n de unipersonalidad\.",
    r"P[eé]rdida del car[aá]cter de unipersonalidad\.",
    r"Cancelaciones de oficio",
    r"Otros conceptos:",
    r"Reelecciones\.",
    r"Revocaciones\.",
    r"Disoluci[oó]n\.",
    r"Transformaci[oó]n\.",
    r"Fusi[oó]n\.",
    r"Escisi[oó]n\.",
    r"Fe de erratas:",
    r"Cambio de objeto social\.",
    r"Cambio de denominaci[oó]n social\.",
    r"Situaci[oó]n concursal\.",
    r"Emisi[oó]n de obligaciones\.",
    r"Extinci[oó]n\.",
)]


def split_entries(blob: str) -> List[Tuple[str, str]]:
    """Return (entry number, rest of entry) pairs in document order."""
    entries = []
    for part in ENTRY_SPLIT.split(blob):
        part = part.strip()
        match = ENTRY_HEAD.match(part)
        if match:
            entries.append((match.group(1), match.group(2).strip()))
    return entries


def split_company(rest: str) -> Tuple[str, str]:
    """
    Separate the company name from the act text.

    Examples:
        >>> split_company("ACME SL. Constitución. Capital: 3.000,00 Euros.")
        ('ACME SL', 'Constitución. Capital: 3.000,00 Euros.')
    """
    first = len(rest)
    for marker in ACT_MARKERS:
        match = marker.search(rest)
        if match and match.start() < first:
            first = match.start()
    empresa = rest[:first].strip().rstrip('. ')
    return empresa, rest[first:]


# =============================================================================
# PERSONS
# =============================================================================

# Raw label as printed → canonical role
ROLE_LABELS: Dict[str, str] = {
    'Adm. Unico': 'Administrador único',
    'Adm. Solid.': 'Administrador solidario',
    'Adm. Mancom.': 'Administrador mancomunado',
    'Adm.Sol.Supl': 'Administrador solidario suplente',
    'Apoderado': 'Apoderado',
    'Apo.Sol.': 'Apoderado solidario',
    'Apo.Manc.': 'Apoderado mancomunado',
    'Apo.Man.Soli': 'Apoderado mancomunado solidario',
    'Liquidador': 'Liquidador',
    'LiquiSoli': 'Liquidador solidario',
    'Liq.Judicial': 'Liquidador judicial',
    'Consejero': 'Consejero',
    'Con.Delegado': 'Consejero delegado',
    'Cons.Del.Com.': 'Consejero delegado',
    'Cons.Delegado': 'Consejero delegado',
    'Cons.Del.Sol': 'Consejero delegado solidario',
    'Cons.Del.Man': 'Consejero delegado mancomunado',
    'Cons.Ext.Dom': 'Consejero externo dominical',
    'Consej.Coord': 'Consejero coordinador',
    'Con.Ind.': 'Consejero independiente',
    'Presidente': 'Presidente',
    'Pres.Com.Ctr': 'Presidente comisión de control',
    'Secretario': 'Secretario',
    'Vicepresidente': 'Vicepresidente',
    'Representan': 'Representante',
    'Mmbr.Com.Del': 'Miembro comité delegado',
    'Miem.Com.Ctr': 'Miembro comisión de control',
    'Miem.Com.Ej.': 'Miembro comité ejecutivo',
    'Aud.C.Con.': 'Auditor cuentas',
    'Aud.Supl.': 'Auditor suplente',
    'Auditor': 'Auditor',
    'Soc.Prof.': 'Socio profesional',
}

_ROLE_LOOKUP = {label.lower(): role for label, role in ROLE_LABELS.items()}

# Act-section keywords that end a name list
SECTION_KEYWORDS = [
    'Nombramientos', 'Ceses/Dimisiones', 'Reelecciones', 'Revocaciones',
    'Cancelaciones de oficio', 'Constitución', 'Ampliación de capital',
    'Reducción de capital', 'Cambio de domicilio', 'Modificaciones estatutarias',
    'Disolución', 'Extinción', 'Transformación', 'Fusión', 'Escisión',
    'Otros conceptos', 'Datos registrales', 'Declaración de unipersonalidad',
    'Fe de erratas', 'Cambio de objeto', 'Cambio de denominación',
    'Situación concursal', 'Emisión de obligaciones',
]

# Headers that decide the action a name is listed under
SECTION_HEADERS = ['Nombramientos', 'Ceses/Dimisiones', 'Reelecciones', 'Revocaciones', 'Cancelaciones de oficio']
DEFAULT_SECTION = 'General'

_ROLE_ALT = '|'.join(re.escape(label) for label in sorted(ROLE_LABELS, key=len, reverse=True))
_SECTION_ALT = '|'.join(re.escape(keyword) for keyword in SECTION_KEYWORDS)

# "Role: names" up to the next role label or act-section keyword
ROLE_RE = _p(r"(" + _ROLE_ALT + r"):\s*(.+?)(?=(?:" + _ROLE_ALT + r"):|(?:" + _SECTION_ALT + r")\.|$)")
_SECTION_HEADER_RE = re.compile('|'.join(re.escape(h + '.') for h in SECTION_HEADERS))

NAME_JUNK = _p(
    r"\s*(?:Datos registrales|Voluntaria|Extinci[oó]n|Disoluci[oó]n|Otros conceptos|Cambio de[l ]"
    r"|Modificaciones|Ampliaci[oó]n|Constituci[oó]n|Declaraci[oó]n|Fe de erratas).*$"
)
# A sentence boundary followed by a capitalised word means text from the
# next clause leaked into the list; names themselves are upper case.
NAME_LEAK = re.compile(r"\.\s+[A-ZÁÉÍÓÚÑ][a-záéíóúñ]")


def _section_before(text: str, offset: int) -> str:
    section = DEFAULT_SECTION
    for match in _SECTION_HEADER_RE.finditer(text):
        if match.start() >= offset:
            break
        section = match.group(0)[:-1]
    return section


def _clean_name_group(group: str) -> str:
    group = group.strip(" .;\t\n\r")
    group = NAME_JUNK.sub('', group)
    leak = NAME_LEAK.search(group)
    if leak:
        group = group[:leak.start()]
    return group.strip(" .;\t\n\r")


def _valid_name(name: str) -> bool:
    return len(name) >= 3 and not name.isdigit()


def extract_persons(act_text: str) -> List[Person]:
    """
    Officers named in one entry's act text.

    Examples:
        >>> extract_persons("Nombramientos. Adm. Unico: GARCIA LOPEZ JUAN.")
        [Person(nombre='Garcia Lopez Juan', cargo='Administrador único', accion='Nombramientos', fecha=None)]
    """
    persons = []
    seen = set()

    for match in ROLE_RE.finditer(act_text):
        label = match.group(1)
        role = _ROLE_LOOKUP.get(label.lower(), label)
        section = _section_before(act_text, match.start())

        for raw in re.split(r"\s*;\s*", _clean_name_group(match.group(2))):
            name = raw.strip(" .\t\n\r")
            if not _valid_name(name):
                continue
            name = title_name(name)
            key = (name, role, section)
            if key in seen:
                continue
            seen.add(key)
            persons.append(Person(nombre=name, cargo=role, accion=section))

    return persons


# =============================================================================
# AUXILIARY FIELDS
# =============================================================================

CAPITAL_RE = _p(r"Capital:\s*([\d.,]+)\s*Euros?")

FIELD_RULES: List[ExtractionRule] = [
    ExtractionRule('domicilio', _p(
        r"Domicilio:\s*(.+?)(?=\.\s*(?:Capital|Nombramientos|Datos registrales|Declaraci[oó]n|Objeto social"
        r"|Comienzo de operaciones)|$)")),
    ExtractionRule('objeto_social', _p(
        r"Objeto social:\s*(.+?)(?=\.\s*(?:Domicilio|Capital|Nombramientos|Datos registrales)|$)")),
    ExtractionRule('datos_registrales', _p(r"Datos registrales\.\s*(.+)$")),
]

SOLE_SHAREHOLDER_RE = _p(r"Socio [uú]nico:\s*([^.]+)")
SOLE_SHAREHOLDER_JUNK = _p(r"\s*(?:Nombramientos|Datos registrales|Disoluci[oó]n|Extinci[oó]n|Cambio|Otros).*$")

MAX_FIELD_LENGTH = 500


def extract_capital(act_text: str) -> Optional[float]:
    match = CAPITAL_RE.search(act_text)
    return parse_spanish_amount(match.group(1)) if match else None


def extract_fields(act_text: str) -> Dict[str, str]:
    """Registered office, corporate purpose and registry data when present."""
    values = {}
    for rule in FIELD_RULES:
        value = rule.extract(act_text)
        if value and len(value) <= MAX_FIELD_LENGTH:
            values[rule.name] = value
    return values


def extract_sole_shareholders(act_text: str) -> List[str]:
    match = SOLE_SHAREHOLDER_RE.search(act_text)
    if not match:
        return []
    names = []
    for raw in match.group(1).split(';'):
        name = SOLE_SHAREHOLDER_JUNK.sub('', raw.strip(" .\t\n\r")).strip()
        if _valid_name(name):
            names.append(title_name(name))
    return names


# =============================================================================
# ACT TYPES
# =============================================================================

# (folded phrase, act type); an entry may carry several
ACT_TYPES: List[Tuple[str, str]] = [
    ('constitucion', 'Constitución'),
    ('nombramientos', 'Nombramientos'),
    ('ceses/dimisiones', 'Ceses/Dimisiones'),
    ('ampliacion de capital', 'Ampliación de capital'),
    ('reduccion de capital', 'Reducción de capital'),
    ('cambio de domicilio social', 'Cambio de domicilio'),
    ('modificaciones estatutarias', 'Modificaciones estatutarias'),
    ('declaracion de unipersonalidad', 'Unipersonalidad'),
    ('disolucion', 'Disolución'),
    ('extincion', 'Extinción'),
    ('transformacion', 'Transformación'),
    ('fusion', 'Fusión'),
    ('escision', 'Escisión'),
    ('reelecciones', 'Reelecciones'),
    ('revocaciones', 'Revocaciones'),
    ('situacion concursal', 'Concursal'),
    ('fe de erratas', 'Fe de erratas'),
    ('otros conceptos', 'Otros'),
    ('cambio de denominacion social', 'Cambio denominación'),
]


def detect_acts(act_text: str) -> List[str]:
    folded = fold(act_text)
    return [label for phrase, label in ACT_TYPES if phrase in folded]


# =============================================================================
# ENTRY POINT
# =============================================================================

def parse_entry(numero: str, rest: str, provincia: str,
                fecha: Optional[str] = None) -> Optional[RegistryEntry]:
    """Parse one segmented entry; None when no company name can be found."""
    empresa, act_text = split_company(rest)
    if not empresa:
        return None

    persons = extract_persons(act_text)
    for person in persons:
        person.fecha = fecha

    sole = extract_sole_shareholders(act_text)
    known = {p.nombre for p in persons}
    for name in sole:
        if name not in known:
            persons.append(Person(nombre=name, cargo='Socio único', accion='Constitución', fecha=fecha))
            known.add(name)

    fields = extract_fields(act_text)
    return RegistryEntry(
        numero=numero,
        empresa=empresa,
        provincia=provincia,
        fecha=fecha,
        actos=detect_acts(act_text),
        personas=persons,
        capital=extract_capital(act_text),
        domicilio=fields.get('domicilio'),
        objeto_social=fields.get('objeto_social'),
        socio_unico=sole[0] if sole else None,
        datos_registrales=fields.get('datos_registrales'),
        texto=act_text.strip(),
    )


def parse_registry_text(text: str, provincia: str, fecha: Optional[str] = None) -> List[RegistryEntry]:
    """
    Parse the extracted text of one registry bulletin PDF.

    Args:
        text: Plain text of the PDF (line breaks preserved)
        provincia: Province label for every entry
        fecha: Publication date stamped on entries and persons

    Returns:
        One RegistryEntry per segmented entry, in document order
    """
    entries = []
    for numero, rest in split_entries(reflow(text)):
        entry = parse_entry(numero, rest, provincia, fecha)
        if entry:
            entries.append(entry)

    logger.debug(f"Parsed {len(entries)} registry entries for {provincia}")
    return entries
