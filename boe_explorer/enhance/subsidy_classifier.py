"""
Sector and destination tags for subsidy calls.

Both classifiers are first-match over ordered tables: the order of the
tables below is part of the output contract and must not be re-sorted.
"""

import logging
from typing import Optional

from boe_explorer.core.domain_models import Subsidy
from boe_explorer.core.text import fold
from boe_explorer.enhance.keywords import compile_keyword, compile_table, first_match

logger = logging.getLogger(__name__)

DEFAULT_SECTOR = 'Otros'
INTERNATIONAL_COOPERATION = 'Cooperación Internacional'
DOMESTIC_DEFAULT = 'España'

# =============================================================================
# SECTOR (plain substring match)
# =============================================================================

SECTORS = {
    'Salud y Sanidad': ['salud', 'sanidad', 'sanitari', 'hospital', 'medic', 'farmac', 'vacun', 'epidem',
                        'enferm', 'clinic', 'asistencia sanitaria', 'atencion primaria'],
    'Educación': ['educac', 'escolar', 'universit', 'formacion', 'docente', 'enseñanza', 'becas estudi',
                  'investigacion', 'i+d', 'ciencia', 'academ'],
    'Cultura y Deporte': ['cultur', 'deport', 'museo', 'bibliotec', 'arte', 'patrimonio', 'festiv', 'music',
                          'cine', 'teatro', 'ocio'],
    'Vivienda': ['viviend', 'rehabilitacion', 'urbanis', 'construccion edifici', 'residenci', 'alquiler'],
    'Medio Ambiente': ['medio ambiente', 'ambiental', 'ecolog', 'sostenib', 'residuo', 'reciclaj',
                       'energia renovable', 'biodiversidad', 'forestal', 'cambio climatico', 'agua'],
    'Agricultura y Ganadería': ['agric', 'ganad', 'rural', 'agrar', 'pesquer', 'acuicultura', 'alimentar',
                                'pesca', 'riego', 'semilla', 'cosecha'],
    'Industria y Comercio': ['industr', 'comerc', 'empresa', 'emprend', 'negoci', 'mercado', 'competitividad',
                             'innovaci', 'pyme', 'autonomo', 'tecnolog'],
    'Transporte e Infraestructuras': ['transport', 'infraestructur', 'carretera', 'ferrocarr', 'aeropuert',
                                      'puert', 'movilidad', 'vias', 'tren', 'autobus'],
    'Empleo y Asuntos Sociales': ['empleo', 'trabaj', 'social', 'inclusion', 'discapacid', 'dependencia',
                                  'igualdad', 'genero', 'violencia', 'pobreza', 'exclusion', 'migrant',
                                  'refugi', 'autonomia personal'],
    'Seguridad y Defensa': ['defensa', 'militar', 'seguridad', 'policia', 'guardia civil', 'emergencia',
                            'proteccion civil', 'bombero'],
    'Justicia': ['justicia', 'judicial', 'tribunal', 'penitenciari', 'legal', 'derecho'],
    'Cooperación Internacional': ['cooperacion internacional', 'ayuda humanitaria', 'desarrollo internacional',
                                  'exterior', 'diplomatica'],
    'Digitalización': ['digital', 'telecomun', 'electroni', 'internet', 'ciberseguridad',
                       'inteligencia artificial', 'datos', 'software', 'informatica'],
}

_SECTOR_TABLE = compile_table(SECTORS, word_boundary_short=False)


def classify_sector(descripcion: Optional[str]) -> str:
    """
    Sector of a subsidy description; first matching category wins.

    Examples:
        >>> classify_sector("Ayuda humanitaria para refugiados en Siria")
        'Empleo y Asuntos Sociales'
        >>> classify_sector("Subvención sin palabras clave")
        'Otros'
    """
    return first_match(fold(descripcion), _SECTOR_TABLE) or DEFAULT_SECTOR


# =============================================================================
# DESTINATION (word boundary for short keywords)
# =============================================================================

COUNTRIES = {
    # North Africa & Middle East
    'Marruecos': ['marruecos', 'marroqui', 'morocco'],
    'Argelia': ['argelia', 'argelino'],
    'Túnez': ['tunez', 'tunecino'],
    'Egipto': ['egipto', 'egipcio', 'egypt'],
    'Libia': ['libia', 'libio'],
    'Jordania': ['jordania', 'jordano'],
    'Líbano': ['libano', 'libanes'],
    'Palestina': ['palestin'],
    'Siria': ['siria', 'sirio'],
    'Irak': ['irak', 'iraq', 'iraqui'],
    'Irán': ['irani', 'iranies', 'republica islamica de iran'],
    'Yemen': ['yemen', 'yemeni'],
    'Arabia Saudí': ['arabia saud', 'saudi'],
    'Israel': ['israel'],
    'Turquía': ['turquia', 'turco', 'turkey'],
    # Sub-Saharan Africa
    'Senegal': ['senegal', 'senegales'],
    'Mali': ['republica de mali', 'malien'],
    'Mauritania': ['mauritania', 'mauritano'],
    'Nigeria': ['nigeria', 'nigeriano'],
    'Ghana': ['ghana', 'ghanes'],
    'Camerún': ['camerun', 'camerunes'],
    'Mozambique': ['mozambique', 'mozambiquen'],
    'Angola': ['angola', 'angolen'],
    'Tanzania': ['tanzania'],
    'Kenia': ['kenia', 'keniano'],
    'Etiopía': ['etiopia', 'etiope'],
    'Sudáfrica': ['sudafrica', 'sudafrican'],
    'Sudán': ['sudan', 'sudanes'],
    'Guinea': ['guinea'],
    'R.D. Congo': ['congo'],
    'Ruanda': ['ruanda'],
    'Uganda': ['uganda'],
    'Madagascar': ['madagascar'],
    'Níger': ['nigerino', 'republica del niger'],
    'Burkina Faso': ['burkina'],
    # Latin America
    'Argentina': ['argentina', 'argentino'],
    'Brasil': ['brasil', 'brasileno', 'brazil'],
    'Colombia': ['colombia', 'colombiano'],
    'México': ['mexico', 'mexicano'],
    'Perú': ['peruano', 'republica del peru'],
    'Chile': ['chile', 'chileno'],
    'Cuba': ['cubano', 'republica de cuba'],
    'Venezuela': ['venezuela', 'venezolano'],
    'Bolivia': ['bolivia', 'boliviano'],
    'Ecuador': ['ecuador', 'ecuatoriano'],
    'Paraguay': ['paraguay', 'paraguayo'],
    'Uruguay': ['uruguay', 'uruguayo'],
    'Guatemala': ['guatemala', 'guatemalteco'],
    'Honduras': ['honduras', 'hondureno'],
    'Nicaragua': ['nicaragua', 'nicaraguense'],
    'El Salvador': ['el salvador', 'salvadoreno'],
    'Haití': ['haiti', 'haitiano'],
    'Rep. Dominicana': ['republica dominicana', 'dominicano'],
    'Costa Rica': ['costa rica', 'costarricen'],
    'Panamá': ['panama', 'panameno'],
    # Asia
    'India': ['india', 'indio', 'hindi'],
    'China': ['china', 'chino'],
    'Japón': ['japon', 'japones', 'japan'],
    'Corea': ['corea', 'coreano', 'korea'],
    'Filipinas': ['filipinas', 'filipino'],
    'Indonesia': ['indonesia', 'indonesio'],
    'Vietnam': ['vietnam', 'vietnamita'],
    'Camboya': ['camboya', 'camboyano'],
    'Myanmar': ['myanmar', 'birmania'],
    'Nepal': ['nepal', 'nepali', 'nepales'],
    'Bangladesh': ['bangladesh', 'bangladesi'],
    'Pakistán': ['pakistan', 'paquistan'],
    'Tailandia': ['tailand', 'thailand'],
    'Afganistán': ['afganist', 'afghan'],
    # Europe (outside Spain)
    'Francia': ['francia', 'frances', 'french', 'france'],
    'Portugal': ['portugal', 'portugues'],
    'Alemania': ['alemania', 'aleman', 'germany'],
    'Italia': ['italia', 'italiano', 'italy'],
    'Reino Unido': ['reino unido', 'britanico', 'united kingdom'],
    'Ucrania': ['ucrania', 'ucraniano', 'ukraine'],
    'Moldavia': ['moldavia', 'moldavo'],
    'Georgia': ['georgia', 'georgiano'],
    # North America & Oceania
    'Estados Unidos': ['estados unidos', 'eeuu', 'norteameric'],
    'Canadá': ['canada', 'canadiense'],
    'Australia': ['australia', 'australiano'],
    'Rusia': ['rusia', 'ruso', 'russia'],
}

REGIONS = {
    'África': ['africa', 'subsahariana', 'sahel', 'africano'],
    'América Latina': ['latinoamerica', 'iberoameric', 'hispanoamerica', 'caribe', 'centroamerica',
                       'sudamerica', 'iberoamerican'],
    'Asia': ['sudeste asiatico', 'asia oriental', 'asia central', 'continente asiatico'],
    'Unión Europea': ['union europea', 'comision europea', 'fondo europeo', 'programa europeo', 'erasmus',
                      'horizonte europa'],
    'Oriente Medio': ['oriente medio', 'oriente proximo', 'medio oriente'],
    'Países en desarrollo': ['paises en desarrollo', 'paises empobrecidos', 'tercer mundo', 'subdesarroll'],
}

INTERNATIONAL_PHRASES = [
    'cooperacion al desarrollo', 'cooperacion internacional al desarrollo',
    'ayuda humanitaria', 'accion humanitaria', 'emergencia humanitaria',
    'accion exterior', 'politica exterior',
    'aecid', 'agencia espanola de cooperacion',
    'fiiapp', 'ongd', 'cooperacion bilateral', 'cooperacion tecnica',
    'educacion para el desarrollo', 'sensibilizacion y desarrollo',
    'voluntariado internacional', 'practicas internacionales',
]

# Administrative level → domestic destination
LEVEL_DESTINATIONS = {
    'ESTATAL': 'España (Nacional)',
    'ESTADO': 'España (Nacional)',
    'AUTONOMICO': 'España (Autonómico)',
    'AUTONOMICA': 'España (Autonómico)',
    'LOCAL': 'España (Local)',
    'OTROS': 'España (Otros)',
}

_COUNTRY_TABLE = compile_table(COUNTRIES)
_REGION_TABLE = compile_table(REGIONS)
_INTERNATIONAL_TABLE = [(INTERNATIONAL_COOPERATION, [compile_keyword(p) for p in INTERNATIONAL_PHRASES])]


def classify_destination(descripcion: Optional[str], nivel: Optional[str] = None) -> str:
    """
    Destination of a subsidy: country, then region, then generic
    international cooperation, then the domestic level.

    Examples:
        >>> classify_destination("Ayuda humanitaria para refugiados en Siria")
        'Siria'
        >>> classify_destination("Ayuda humanitaria de emergencia", "ESTATAL")
        'Cooperación Internacional'
        >>> classify_destination("Ayudas al comercio local", "LOCAL")
        'España (Local)'
    """
    folded = fold(descripcion)
    for table in (_COUNTRY_TABLE, _REGION_TABLE, _INTERNATIONAL_TABLE):
        label = first_match(folded, table)
        if label:
            return label

    return LEVEL_DESTINATIONS.get((nivel or '').strip().upper(), DOMESTIC_DEFAULT)


def is_international(destination: str) -> bool:
    return not destination.startswith(DOMESTIC_DEFAULT)


def tag_subsidy(subsidy: Subsidy) -> dict:
    """Stored fields plus the derived `sector` and `destino` tags."""
    data = subsidy.to_dict()
    data['sector'] = classify_sector(subsidy.descripcion)
    data['destino'] = classify_destination(subsidy.descripcion, subsidy.nivel)
    return data
