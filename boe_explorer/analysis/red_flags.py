"""
Red-flag detection: procurement awards joined with registry lifecycle events.

Award winners are matched to registry companies through
canonical_company_name(); companies without a registry match are skipped.
Registry day files are bulk-loaded once for all matched companies, so the
cost grows with the number of needed days, not days x companies.

Rules:
    capital_mismatch            capital < 10k winning a contract > 100k (high)
    recent_incorporation        incorporated less than 6 months before award (high)
    post_award_dissolution      dissolution/extinction on or after award (high)
    shared_administrator        one person in 2+ awarded companies (high at 3+)
    officer_change_near_award   appointment or cessation within 60 days (medium)
    low_transparency_procedure  "negociado sin publicidad" awards (medium)
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta

from boe_explorer.analysis.company_names import build_canonical_index, canonical_company_name
from boe_explorer.core import config
from boe_explorer.core.domain_models import Alert, AlertType, BulletinDocument, RegistryEntry, Severity
from boe_explorer.core.money import format_eur_amount
from boe_explorer.core.text import fold
from boe_explorer.core.utils import to_date

logger = logging.getLogger(__name__)

APPOINTMENT_SECTIONS = {'Nombramientos', 'Reelecciones', 'Constitución'}
CESSATION_SECTIONS = {'Ceses/Dimisiones', 'Revocaciones'}
DISSOLUTION_ACTS = {'Disolución', 'Extinción'}
INCORPORATION_ACT = 'Constitución'
LOW_TRANSPARENCY_PHRASE = 'negociado sin publicidad'

SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1}

TITLE_CHARS = 100


@dataclass
class OfficerEvent:
    nombre: str
    cargo: str
    fecha: str
    tipo: str  # 'Nombramiento' or 'Cese'


@dataclass
class CompanyProfile:
    """Registry facts for one awarded company (all name variants merged)."""
    clave: str  # canonical name
    empresa: str  # award winner name as first seen
    registro: List[str] = field(default_factory=list)  # registry spellings
    contratos: List[BulletinDocument] = field(default_factory=list)
    actos: List[RegistryEntry] = field(default_factory=list)
    capital: Optional[float] = None
    fecha_constitucion: Optional[str] = None
    disolucion_fecha: Optional[str] = None
    eventos: List[OfficerEvent] = field(default_factory=list)
    personas: Dict[str, str] = field(default_factory=dict)  # UPPER name -> display name

    @property
    def importe_total(self) -> float:
        return sum(_amount(c) or 0 for c in self.contratos)

    def to_dict(self) -> Dict[str, Any]:
        nombramientos = [e for e in self.eventos if e.tipo == 'Nombramiento']
        ceses = [e for e in self.eventos if e.tipo == 'Cese']
        return {
            'adjudicatario': self.empresa,
            'registro_empresa': self.registro[0] if self.registro else None,
            'capital': self.capital,
            'fecha_constitucion': self.fecha_constitucion,
            'disuelta': self.disolucion_fecha is not None,
            'disolucion_fecha': self.disolucion_fecha,
            'total_contratos': len(self.contratos),
            'importe_total': round(self.importe_total, 2),
            'personas_activas': len(self.personas),
            'contratos': [_contract_summary(c) for c in self.contratos],
            'nombramientos': [asdict(e) for e in nombramientos[-10:]],
            'ceses': [asdict(e) for e in ceses[-10:]],
        }


def _detail_value(doc: BulletinDocument, name: str) -> Any:
    return getattr(doc.detalle, name) if doc.detalle is not None else None


def _amount(doc: BulletinDocument) -> Optional[float]:
    return _detail_value(doc, 'importe')


def _contract_summary(doc: BulletinDocument) -> Dict[str, Any]:
    return {
        'id': doc.id,
        'titulo': doc.titulo[:TITLE_CHARS],
        'importe': _amount(doc),
        'fecha': doc.fecha,
        'departamento': doc.departamento,
        'procedimiento': _detail_value(doc, 'procedimiento'),
    }


def _entry_ref(entry: RegistryEntry) -> str:
    return f"{entry.fecha}/{entry.numero}"


def summarize_company(profile: CompanyProfile) -> CompanyProfile:
    """Fill capital, lifecycle dates and officer events from the profile's acts."""
    profile.actos.sort(key=lambda e: e.fecha or '')
    for entry in profile.actos:
        if entry.capital is not None and entry.capital > 0:
            profile.capital = entry.capital
        if INCORPORATION_ACT in entry.actos and profile.fecha_constitucion is None:
            profile.fecha_constitucion = entry.fecha
        if DISSOLUTION_ACTS.intersection(entry.actos):
            profile.disolucion_fecha = entry.fecha

        for persona in entry.personas:
            fecha = persona.fecha or entry.fecha or ''
            profile.personas[persona.nombre.strip().upper()] = persona.nombre
            if persona.accion in APPOINTMENT_SECTIONS:
                profile.eventos.append(OfficerEvent(persona.nombre, persona.cargo, fecha, 'Nombramiento'))
            elif persona.accion in CESSATION_SECTIONS:
                profile.eventos.append(OfficerEvent(persona.nombre, persona.cargo, fecha, 'Cese'))
    return profile


class RedFlagEngine:
    """
    Evaluate awarded companies against the registry.

    Args:
        registry: Object exposing load_index() and load_companies(keys),
            normally a RegistryStore
    """

    def __init__(self, registry,
                 capital_threshold: float = config.RED_FLAG_CAPITAL_THRESHOLD,
                 contract_threshold: float = config.RED_FLAG_CONTRACT_THRESHOLD,
                 recent_months: int = config.RED_FLAG_RECENT_MONTHS,
                 officer_window_days: int = config.RED_FLAG_OFFICER_WINDOW_DAYS,
                 shared_admin_high: int = config.RED_FLAG_SHARED_ADMIN_HIGH,
                 max_alerts: int = config.RED_FLAG_MAX_ALERTS):
        self.registry = registry
        self.capital_threshold = capital_threshold
        self.contract_threshold = contract_threshold
        self.recent_months = recent_months
        self.officer_window_days = officer_window_days
        self.shared_admin_high = shared_admin_high
        self.max_alerts = max_alerts

    # =========================================================================
    # JOIN
    # =========================================================================

    def match_companies(self, awards: Sequence[BulletinDocument]) -> List[CompanyProfile]:
        """Group awards by canonical winner and attach registry acts."""
        grouped: Dict[str, CompanyProfile] = {}
        for doc in awards:
            winner = (_detail_value(doc, 'adjudicatario') or '').strip()
            key = canonical_company_name(winner)
            if not key:
                continue
            profile = grouped.setdefault(key, CompanyProfile(clave=key, empresa=winner))
            profile.contratos.append(doc)

        registry_names = build_canonical_index(self.registry.load_index().keys())
        matched = {}
        for key, profile in grouped.items():
            names = registry_names.get(key)
            if not names:
                logger.debug(f"No registry match for {profile.empresa}")
                continue
            profile.registro = names
            matched[key] = profile

        # One pass over the needed day files for every matched company
        acts = self.registry.load_companies([n for p in matched.values() for n in p.registro])
        for profile in matched.values():
            for name in profile.registro:
                profile.actos.extend(acts.get(name, []))
            summarize_company(profile)

        logger.info(f"Matched {len(matched)} of {len(grouped)} award winners with registry entries")
        return list(matched.values())

    # =========================================================================
    # RULES
    # =========================================================================

    def capital_alerts(self, profile: CompanyProfile) -> List[Alert]:
        if profile.capital is None or profile.capital >= self.capital_threshold:
            return []
        alerts = []
        for doc in profile.contratos:
            importe = _amount(doc)
            if importe is None or importe <= self.contract_threshold:
                continue
            ratio = round(importe / max(profile.capital, 1), 1)
            alerts.append(Alert(
                tipo=AlertType.CAPITAL_MISMATCH,
                severidad=Severity.HIGH,
                empresa=profile.empresa,
                descripcion=(f"{profile.empresa} (capital: {format_eur_amount(profile.capital)}) gana contrato "
                             f"de {format_eur_amount(importe)}, ratio {ratio:g}:1"),
                importe=importe,
                documentos=[doc.id],
                registros=[_entry_ref(e) for e in profile.actos if e.capital],
                datos={'capital': profile.capital, 'ratio': ratio, **_contract_summary(doc)},
            ))
        return alerts

    def incorporation_alerts(self, profile: CompanyProfile) -> List[Alert]:
        constituted = to_date(profile.fecha_constitucion)
        if constituted is None:
            return []
        limit = constituted + relativedelta(months=self.recent_months)
        alerts = []
        for doc in profile.contratos:
            awarded = to_date(doc.fecha)
            if awarded is None or not (constituted < awarded < limit):
                continue
            delta = relativedelta(awarded, constituted)
            months = delta.years * 12 + delta.months
            alerts.append(Alert(
                tipo=AlertType.RECENT_INCORPORATION,
                severidad=Severity.HIGH,
                empresa=profile.empresa,
                descripcion=(f"{profile.empresa} constituida el {profile.fecha_constitucion} gana contrato "
                             f"el {doc.fecha} ({months} meses después)"),
                importe=_amount(doc),
                documentos=[doc.id],
                registros=[_entry_ref(e) for e in profile.actos if INCORPORATION_ACT in e.actos],
                datos={'fecha_constitucion': profile.fecha_constitucion, 'meses_antes': months,
                       **_contract_summary(doc)},
            ))
        return alerts

    def dissolution_alerts(self, profile: CompanyProfile) -> List[Alert]:
        dissolved = to_date(profile.disolucion_fecha)
        if dissolved is None:
            return []
        alerts = []
        for doc in profile.contratos:
            awarded = to_date(doc.fecha)
            if awarded is None or dissolved < awarded:
                continue
            days = (dissolved - awarded).days
            alerts.append(Alert(
                tipo=AlertType.POST_AWARD_DISSOLUTION,
                severidad=Severity.HIGH,
                empresa=profile.empresa,
                descripcion=(f"{profile.empresa} disuelta el {profile.disolucion_fecha}, {days} días después "
                             f"de la adjudicación del {doc.fecha}"),
                importe=_amount(doc),
                documentos=[doc.id],
                registros=[_entry_ref(e) for e in profile.actos if DISSOLUTION_ACTS.intersection(e.actos)],
                datos={'disolucion_fecha': profile.disolucion_fecha, 'dias_despues': days,
                       **_contract_summary(doc)},
            ))
        return alerts

    def officer_change_alerts(self, profile: CompanyProfile) -> List[Alert]:
        alerts = []
        for doc in profile.contratos:
            awarded = to_date(doc.fecha)
            if awarded is None:
                continue
            for event in profile.eventos:
                changed = to_date(event.fecha)
                if changed is None:
                    continue
                days = abs((changed - awarded).days)
                if days > self.officer_window_days:
                    continue
                verb = 'Nombramiento de' if event.tipo == 'Nombramiento' else 'Cese de'
                alerts.append(Alert(
                    tipo=AlertType.OFFICER_CHANGE_NEAR_AWARD,
                    severidad=Severity.MEDIUM,
                    empresa=profile.empresa,
                    descripcion=(f"{verb} {event.nombre} ({event.cargo}) en {profile.empresa} el {event.fecha}, "
                                 f"{days} días del contrato ({doc.fecha})"),
                    importe=_amount(doc),
                    documentos=[doc.id],
                    datos={'persona': event.nombre, 'cargo': event.cargo, 'accion': event.tipo,
                           'fecha_cambio': event.fecha, 'dias_diferencia': days, **_contract_summary(doc)},
                ))
        return alerts

    def shared_administrator_alerts(self, profiles: Sequence[CompanyProfile]) -> Tuple[List[Alert], List[Dict]]:
        """One alert per person named in two or more awarded companies."""
        by_person: Dict[str, Dict[str, Any]] = {}
        for profile in profiles:
            for upper_name, display in profile.personas.items():
                row = by_person.setdefault(upper_name, {'nombre': display, 'empresas': {}})
                row['empresas'].setdefault(profile.clave, profile)

        alerts: List[Alert] = []
        summary: List[Dict] = []
        for row in by_person.values():
            companies: List[CompanyProfile] = list(row['empresas'].values())
            if len(companies) < 2:
                continue
            names = [p.empresa for p in companies]
            total = round(sum(p.importe_total for p in companies), 2)
            severity = Severity.HIGH if len(companies) >= self.shared_admin_high else Severity.MEDIUM
            more = '...' if len(names) > 3 else ''
            alerts.append(Alert(
                tipo=AlertType.SHARED_ADMINISTRATOR,
                severidad=severity,
                empresa=', '.join(names),
                descripcion=(f"{row['nombre']} figura en {len(names)} empresas adjudicatarias: "
                             f"{', '.join(names[:3])}{more}"),
                importe=total,
                documentos=[c.id for p in companies for c in p.contratos],
                datos={
                    'persona': row['nombre'],
                    'num_empresas': len(names),
                    'empresas': names,
                    'empresas_contratos': {p.empresa: [_contract_summary(c) for c in p.contratos]
                                           for p in companies},
                },
            ))
            summary.append({'nombre': row['nombre'], 'empresas': names})
        return alerts, summary

    def low_transparency_alerts(self, procurements: Sequence[BulletinDocument]) -> List[Alert]:
        """Awards under the negotiated-without-publicity procedure (no registry needed)."""
        alerts = []
        for doc in procurements:
            if LOW_TRANSPARENCY_PHRASE not in fold(_detail_value(doc, 'procedimiento')):
                continue
            winner = _detail_value(doc, 'adjudicatario') or ''
            alerts.append(Alert(
                tipo=AlertType.LOW_TRANSPARENCY_PROCEDURE,
                severidad=Severity.MEDIUM,
                empresa=winner,
                descripcion=f"Procedimiento negociado sin publicidad: {doc.titulo[:TITLE_CHARS]}",
                importe=_amount(doc),
                documentos=[doc.id],
                datos={**_contract_summary(doc), 'adjudicatario': winner or None,
                       'nif': _detail_value(doc, 'nif_adjudicatario')},
            ))
        return alerts

    # =========================================================================
    # REPORT
    # =========================================================================

    @staticmethod
    def sort_alerts(alerts: List[Alert]) -> List[Alert]:
        """High severity first, then largest amount first."""
        return sorted(alerts, key=lambda a: (SEVERITY_RANK.get(a.severidad, 9), -a.magnitude))

    def evaluate(self, procurements: Sequence[BulletinDocument]) -> Tuple[List[Alert], List[CompanyProfile]]:
        """All alerts (sorted, uncapped) plus the matched company profiles."""
        alerts, profiles, _ = self._evaluate(procurements)
        return alerts, profiles

    def _evaluate(self, procurements: Sequence[BulletinDocument]
                  ) -> Tuple[List[Alert], List[CompanyProfile], List[Dict]]:
        awards = [d for d in procurements if _detail_value(d, 'adjudicatario')]
        profiles = self.match_companies(awards)

        alerts: List[Alert] = []
        for profile in profiles:
            alerts.extend(self.capital_alerts(profile))
            alerts.extend(self.incorporation_alerts(profile))
            alerts.extend(self.dissolution_alerts(profile))
            alerts.extend(self.officer_change_alerts(profile))

        shared_alerts, shared = self.shared_administrator_alerts(profiles)
        alerts.extend(shared_alerts)
        alerts.extend(self.low_transparency_alerts(procurements))
        return self.sort_alerts(alerts), profiles, shared

    def report(self, procurements: Sequence[BulletinDocument]) -> Dict[str, Any]:
        """
        Full red-flag report for a set of procurement records.

        Returns:
            Dict with totals, alerts by type, the capped alert list, matched
            company profiles, shared administrators and the
            negotiated-without-publicity summary
        """
        awards = [d for d in procurements if _detail_value(d, 'adjudicatario')]
        alerts, profiles, shared = self._evaluate(procurements)

        by_type: Dict[str, int] = {}
        for alert in alerts:
            by_type[alert.tipo.value] = by_type.get(alert.tipo.value, 0) + 1

        low = [a for a in alerts if a.tipo == AlertType.LOW_TRANSPARENCY_PROCEDURE]
        logger.info(f"Red flags: {len(alerts)} alerts over {len(profiles)} matched companies")

        return {
            'total_licitaciones': len(procurements),
            'total_con_adjudicatario': len(awards),
            'empresas_cruzadas_registro': len(profiles),
            'total_alertas': len(alerts),
            'alertas_por_tipo': by_type,
            'alertas': [a.to_dict() for a in alerts[:self.max_alerts]],
            'multi_administradores': shared[:50],
            'negociado_sin_publicidad': {
                'total': len(low),
                'importe_total': round(sum(a.magnitude for a in low), 2),
                'detalle': [a.datos for a in low[:50]],
            },
            'empresas_cruzadas': [p.to_dict() for p in profiles[:30]],
        }
