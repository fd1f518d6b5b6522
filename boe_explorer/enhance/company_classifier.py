"""Legal form of a company from the first letter of its tax id."""

from typing import Dict, Optional

UNKNOWN_FORM = 'Desconocido'

# First character of an entity tax id (NIF/CIF) -> (legal form, estimated size)
NIF_LEGAL_FORMS = {
    'A': ('Sociedad Anónima (S.A.)', 'Grande/Mediana'),
    'B': ('Sociedad Limitada (S.L.)', 'PYME típica'),
    'C': ('Sociedad Colectiva', 'Pequeña'),
    'D': ('Sociedad Comanditaria', 'Pequeña'),
    'E': ('Comunidad de Bienes', 'Micro/Pequeña'),
    'F': ('Sociedad Cooperativa', 'Variable'),
    'G': ('Asociación', 'Variable'),
    'H': ('Comunidad de Propietarios', 'N/A'),
    'J': ('Sociedad Civil', 'Pequeña'),
    'N': ('Entidad Extranjera', 'Variable'),
    'P': ('Corporación Local', 'Organismo público'),
    'Q': ('Organismo Público', 'Organismo público'),
    'R': ('Congregación Religiosa', 'Variable'),
    'S': ('Adm. del Estado', 'Organismo público'),
    'U': ('UTE (Unión Temporal)', 'Temporal/Proyecto'),
    'V': ('Otro tipo', 'Desconocido'),
    'W': ('Establecimiento no residente', 'Variable'),
}

# Personal tax ids start with a digit or X/Y/Z/K/L/M
NATURAL_PERSON = ('Persona física', 'Autónomo')


def classify_nif(nif: Optional[str]) -> Dict[str, Optional[str]]:
    """
    Examples:
        >>> classify_nif("B12345678")['tipo_sociedad']
        'Sociedad Limitada (S.L.)'
        >>> classify_nif("12345678Z")['tipo_sociedad']
        'Persona física'
        >>> classify_nif("")['tipo_sociedad']
        'Desconocido'
    """
    nif = (nif or '').strip().upper()
    if len(nif) < 2:
        return {'tipo_sociedad': UNKNOWN_FORM, 'letra_nif': '', 'tamano_estimado': None}

    letter = nif[0]
    form, size = NIF_LEGAL_FORMS.get(letter, NATURAL_PERSON)
    return {'tipo_sociedad': form, 'letra_nif': letter, 'tamano_estimado': size}
