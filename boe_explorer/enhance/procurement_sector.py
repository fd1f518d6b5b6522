"""
Sector tag for procurement records, used by the spending summary.

The classifier reads the title, department, CPV codes and contract type
together and returns the first sector in table order with any keyword
present.
"""

from typing import Iterable, Optional

from boe_explorer.core.text import fold
from boe_explorer.enhance.keywords import compile_table, first_match

DEFAULT_SECTOR = 'Otros'

PROCUREMENT_SECTORS = {
    'Salud y Sanidad': ['salud', 'sanidad', 'sanitari', 'hospital', 'medic', 'farmac', 'vacun', 'epidem',
                        'enferm', 'clinic', 'asistencia sanitaria', 'atencion primaria', 'quirurgic',
                        'laboratorio clinico'],
    'Educación': ['educac', 'escolar', 'universit', 'formacion', 'docente', 'enseñanza', 'becas estudi',
                  'investigacion', 'i+d', 'ciencia', 'academ'],
    'Cultura y Deporte': ['cultur', 'deport', 'museo', 'bibliotec', 'arte', 'patrimonio', 'festiv', 'music',
                          'cine', 'teatro', 'ocio'],
    'Vivienda': ['viviend', 'rehabilitacion edifici', 'urbanis', 'construccion edifici', 'residenci',
                 'alquiler social'],
    'Medio Ambiente': ['medio ambiente', 'ambiental', 'ecolog', 'sostenib', 'residuo', 'reciclaj',
                       'energia renovable', 'biodiversidad', 'forestal', 'cambio climatico', 'depuracion',
                       'vertedero'],
    'Agricultura y Ganadería': ['agric', 'ganad', 'rural', 'agrar', 'pesquer', 'acuicultura', 'alimentar',
                                'pesca', 'riego', 'semilla'],
    'Industria y Comercio': ['industr', 'comerc', 'empresa', 'emprend', 'negoci', 'mercado', 'competitividad',
                             'innovaci', 'pyme', 'autonomo'],
    'Transporte e Infraestructuras': ['transport', 'infraestructur', 'carretera', 'ferrocarr', 'aeropuert',
                                      'puert', 'movilidad', 'vias', 'tren', 'autobus', 'obra publica',
                                      'paviment', 'senalizacion'],
    'Empleo y Asuntos Sociales': ['empleo', 'social', 'inclusion', 'discapacid', 'dependencia', 'igualdad',
                                  'genero', 'violencia', 'pobreza', 'exclusion', 'migrant', 'refugi'],
    'Seguridad y Defensa': ['defensa', 'militar', 'seguridad', 'policia', 'guardia civil', 'emergencia',
                            'proteccion civil', 'bombero', 'armada', 'ejercito'],
    'Justicia': ['justicia', 'judicial', 'tribunal', 'penitenciari', 'legal'],
    'Cooperación Internacional': ['cooperacion internacional', 'ayuda humanitaria', 'exterior', 'diplomatica'],
    'Digitalización': ['digital', 'telecomun', 'electroni', 'internet', 'ciberseguridad',
                       'inteligencia artificial', 'software', 'informatica', 'tecnologia informacion'],
    'Servicios Generales': ['limpieza', 'mantenimiento', 'vigilancia', 'suministro', 'mobiliario', 'oficina',
                            'mensajeria', 'catering', 'papeler'],
}

_TABLE = compile_table(PROCUREMENT_SECTORS, word_boundary_short=False)


def classify_procurement_sector(titulo: Optional[str], departamento: Optional[str] = None,
                                cpv: Optional[Iterable[str]] = None,
                                tipo_contrato: Optional[str] = None) -> str:
    """
    Examples:
        >>> classify_procurement_sector("Suministro de material quirúrgico", "Servicio Madrileño de Salud")
        'Salud y Sanidad'
        >>> classify_procurement_sector("Servicio de limpieza de oficinas", "Ayuntamiento de Soria")
        'Servicios Generales'
    """
    parts = [titulo or '', departamento or '', ' '.join(cpv or []), tipo_contrato or '']
    return first_match(fold(' '.join(parts)), _TABLE) or DEFAULT_SECTOR
