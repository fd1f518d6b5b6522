"""
Canonical domain models for the disclosure explorer.

These models are the normalized records every component exchanges. Their
`to_dict()` output uses the persisted field names (`titulo`, `departamento`,
`seccion`, `importe`, `adjudicatario`, `nif_adjudicatario`, `fecha`,
`empresa`, `cargo`, `accion`) so stored JSON stays interchangeable with
the files already on disk.
"""

from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import Optional, List, Dict, Any


# Section label carried by procurement announcements and awards
PROCUREMENT_SECTION = "V-A"


class Severity(str, Enum):
    HIGH = "alta"
    MEDIUM = "media"


class AlertType(str, Enum):
    CAPITAL_MISMATCH = "capital_mismatch"
    RECENT_INCORPORATION = "recent_incorporation"
    POST_AWARD_DISSOLUTION = "post_award_dissolution"
    SHARED_ADMINISTRATOR = "shared_administrator"
    OFFICER_CHANGE_NEAR_AWARD = "officer_change_near_award"
    LOW_TRANSPARENCY_PROCEDURE = "low_transparency_procedure"


@dataclass
class ProcurementDetail:
    """
    Award fields extracted from a procurement notice's detail XML.

    Every field is optional: a pattern that finds nothing leaves its field
    unset. `importe` of None means "unknown", never zero.
    """
    importe: Optional[float] = None
    adjudicatario: Optional[str] = None
    nif_adjudicatario: Optional[str] = None
    tipo_contrato_detalle: Optional[str] = None
    procedimiento: Optional[str] = None
    cpv: List[str] = field(default_factory=list)
    ambito_geografico: Optional[str] = None
    es_pyme: bool = False
    modalidad: Optional[str] = None
    duracion: Optional[str] = None
    oferta_mayor: Optional[float] = None
    oferta_menor: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_DETAIL_FIELDS = {f.name for f in fields(ProcurementDetail)}


@dataclass
class BulletinDocument:
    """
    One item from the daily official bulletin summary.

    Created once per publication date by the summary parser. Procurement
    items (section V-A) later receive a `detalle` exactly once from the
    detail enricher; nothing else changes after creation.
    """
    id: str
    fecha: str  # YYYY-MM-DD
    titulo: str
    tipo: str
    departamento: str
    seccion: str  # Display label: "I", "III", "V-A", ...
    subseccion: str = ""  # Sub-heading (epigrafe), empty for flat departments
    url_pdf: Optional[str] = None
    url_html: Optional[str] = None
    url_xml: Optional[str] = None
    detalle: Optional[ProcurementDetail] = None

    @property
    def referencia(self) -> str:
        return self.id

    @property
    def is_procurement(self) -> bool:
        return self.seccion == PROCUREMENT_SECTION

    @property
    def is_enriched(self) -> bool:
        return self.detalle is not None

    def to_dict(self) -> Dict[str, Any]:
        """Flatten to the persisted shape (enrichment fields inline)."""
        data = {
            'id': self.id,
            'fecha': self.fecha,
            'titulo': self.titulo,
            'tipo': self.tipo,
            'departamento': self.departamento,
            'seccion': self.seccion,
            'subseccion': self.subseccion,
            'url_pdf': self.url_pdf,
            'url_html': self.url_html,
            'url_xml': self.url_xml,
            'referencia': self.id,
        }
        if self.detalle is not None:
            data.update(self.detalle.to_dict())
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BulletinDocument":
        detalle = None
        # A record counts as enriched once any award field was merged in
        if any(key in data for key in ('importe', 'adjudicatario', 'procedimiento', 'es_pyme')):
            values = {k: data.get(k) for k in _DETAIL_FIELDS if k in data}
            cpv = values.get('cpv')
            if isinstance(cpv, str):
                values['cpv'] = [c.strip() for c in cpv.split('\n') if c.strip()]
            elif cpv is None:
                values['cpv'] = []
            values['es_pyme'] = bool(values.get('es_pyme'))
            detalle = ProcurementDetail(**values)

        return cls(
            id=data.get('id') or data.get('referencia', ''),
            fecha=data.get('fecha', ''),
            titulo=data.get('titulo', ''),
            tipo=data.get('tipo', 'Otro'),
            departamento=data.get('departamento', ''),
            seccion=data.get('seccion', ''),
            subseccion=data.get('subseccion', '') or '',
            url_pdf=data.get('url_pdf'),
            url_html=data.get('url_html'),
            url_xml=data.get('url_xml'),
            detalle=detalle,
        )


@dataclass
class Person:
    """
    Officer named in a registry filing.

    `accion` is the act section the name was found under (Nombramientos,
    Ceses/Dimisiones, Reelecciones, Revocaciones, Constitución or General).
    """
    nombre: str
    cargo: str
    accion: str
    fecha: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'nombre': self.nombre, 'cargo': self.cargo, 'accion': self.accion}
        if self.fecha:
            data['fecha'] = self.fecha
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Person":
        return cls(
            nombre=data.get('nombre', ''),
            cargo=data.get('cargo', ''),
            accion=data.get('accion', 'General'),
            fecha=data.get('fecha'),
        )


@dataclass
class RegistryEntry:
    """
    One company block from a commercial-registry bulletin.

    Entries with no detected acts and no persons are still valid: the
    company was named even though no structured act was recognised.
    """
    numero: str
    empresa: str
    provincia: str
    fecha: Optional[str] = None
    actos: List[str] = field(default_factory=list)
    personas: List[Person] = field(default_factory=list)
    capital: Optional[float] = None
    domicilio: Optional[str] = None
    objeto_social: Optional[str] = None
    socio_unico: Optional[str] = None
    datos_registrales: Optional[str] = None
    texto: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'numero': self.numero,
            'empresa': self.empresa,
            'provincia': self.provincia,
            'fecha': self.fecha,
            'actos': list(self.actos),
            'personas': [p.to_dict() for p in self.personas],
            'capital': self.capital,
            'domicilio': self.domicilio,
            'objeto_social': self.objeto_social,
            'socio_unico': self.socio_unico,
            'datos_registrales': self.datos_registrales,
            'texto': self.texto,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryEntry":
        return cls(
            numero=str(data.get('numero', '')),
            empresa=data.get('empresa', ''),
            provincia=data.get('provincia', ''),
            fecha=data.get('fecha'),
            actos=list(data.get('actos') or []),
            personas=[Person.from_dict(p) for p in data.get('personas') or []],
            capital=data.get('capital'),
            domicilio=data.get('domicilio'),
            objeto_social=data.get('objeto_social'),
            socio_unico=data.get('socio_unico'),
            datos_registrales=data.get('datos_registrales'),
            texto=data.get('texto', ''),
        )


@dataclass
class Subsidy:
    """
    Subsidy call from the national subsidy database (BDNS).

    `presupuesto` stays None until the budget pass looks it up; a failed
    lookup stores 0 so the record is not queried again. Sector and
    destination are derived on read and never stored.
    """
    id: str
    descripcion: str
    nivel: str = ""  # ESTATAL, AUTONOMICO, LOCAL, OTROS
    entidad: str = ""  # Awarding entity (nivel2)
    organo: str = ""  # Awarding department (nivel3)
    fecha: Optional[str] = None
    numero: Optional[str] = None  # numeroConvocatoria, key for the budget API
    mrr: bool = False  # Recovery-plan funded
    codigo_invente: Optional[str] = None
    presupuesto: Optional[float] = None

    @property
    def has_budget_field(self) -> bool:
        return self.presupuesto is not None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'numero': self.numero,
            'descripcion': self.descripcion,
            'fecha': self.fecha,
            'nivel': self.nivel,
            'entidad': self.entidad,
            'organo': self.organo,
            'mrr': self.mrr,
            'codigo_invente': self.codigo_invente,
        }
        if self.presupuesto is not None:
            data['presupuesto'] = self.presupuesto
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subsidy":
        return cls(
            id=str(data.get('id', '')),
            descripcion=data.get('descripcion') or '',
            nivel=data.get('nivel') or '',
            entidad=data.get('entidad') or '',
            organo=data.get('organo') or '',
            fecha=data.get('fecha'),
            numero=data.get('numero'),
            mrr=bool(data.get('mrr')),
            codigo_invente=data.get('codigo_invente'),
            presupuesto=data.get('presupuesto'),
        )

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "Subsidy":
        """Build from one `convocatorias/ultimas` content item."""
        return cls(
            id=str(item.get('id', '')),
            descripcion=item.get('descripcion') or '',
            nivel=item.get('nivel1') or '',
            entidad=item.get('nivel2') or '',
            organo=item.get('nivel3') or '',
            fecha=item.get('fechaRecepcion'),
            numero=item.get('numeroConvocatoria'),
            mrr=bool(item.get('mrr')),
            codigo_invente=item.get('codigoInvente'),
        )


@dataclass
class CrossReference:
    """Scored candidate relationship between two records (not persisted)."""
    doc_a: str
    doc_b: str
    score: float
    categoria: str
    keywords: List[str] = field(default_factory=list)
    titulo_a: str = ""
    titulo_b: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Alert:
    """Typed red-flag finding referencing the implicated records."""
    tipo: AlertType
    severidad: Severity
    empresa: str
    descripcion: str
    importe: Optional[float] = None
    documentos: List[str] = field(default_factory=list)
    registros: List[str] = field(default_factory=list)
    datos: Dict[str, Any] = field(default_factory=dict)

    @property
    def magnitude(self) -> float:
        return self.importe or 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tipo': self.tipo.value,
            'severidad': self.severidad.value,
            'empresa': self.empresa,
            'descripcion': self.descripcion,
            'importe': self.importe,
            'documentos': list(self.documentos),
            'registros': list(self.registros),
            'datos': dict(self.datos),
        }
