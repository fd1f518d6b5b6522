#!/usr/bin/env python3
"""
BOE Explorer - analysis reports

Reads the stored bulletin, registry and subsidy data and prints a JSON
report to stdout (logs go to stderr).

Usage:
    python run_analysis.py xref --days 7 --threshold 0.3
    python run_analysis.py thematic --days 30
    python run_analysis.py red-flags --days 90
    python run_analysis.py spending --days 30
    python run_analysis.py companies --days 90
    python run_analysis.py procurements --empresa "indra sistemas" --importe-min 100000
    python run_analysis.py documents --texto "real decreto" --days 7
    python run_analysis.py subsidies --sector "Educación"
    python run_analysis.py registry "INDRA SISTEMAS"
    python run_analysis.py officers "INDRA SISTEMAS"
    python run_analysis.py status
"""

import sys
import json
import argparse
import logging
from typing import Any

from dotenv import load_dotenv
load_dotenv()

from boe_explorer.analysis.cross_reference import CrossReferenceEngine
from boe_explorer.analysis.red_flags import RedFlagEngine
from boe_explorer.analysis.reporting import (
    company_analysis, document_stats, search_documents, search_procurements, spending_summary,
)
from boe_explorer.analysis.subsidy_report import international_calls, subsidy_summary
from boe_explorer.core import config
from boe_explorer.storage.bulletin_store import BulletinStore
from boe_explorer.storage.fetch_cache import FetchCache
from boe_explorer.storage.registry_store import RegistryStore
from boe_explorer.storage.subsidy_store import SubsidyStore

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_json(data: Any):
    json.dump(data, sys.stdout, ensure_ascii=False, indent=2, default=str)
    sys.stdout.write('\n')


def cmd_xref(args, bulletin: BulletinStore, registry: RegistryStore, subsidies: SubsidyStore):
    documents = bulletin.load_last_days(args.days)
    general = [d.to_dict() for d in documents if not d.is_procurement]
    procurements = [d.to_dict() for d in documents if d.is_procurement]
    refs = CrossReferenceEngine().cross_reference(general, procurements, args.threshold, args.max_results)
    return {'total': len(refs), 'referencias': [r.to_dict() for r in refs]}


def cmd_thematic(args, bulletin, registry, subsidies):
    documents = bulletin.load_last_days(args.days)
    general = [d.to_dict() for d in documents if not d.is_procurement]
    procurements = [d.to_dict() for d in documents if d.is_procurement]
    return CrossReferenceEngine().thematic_analysis(general, procurements)


def cmd_red_flags(args, bulletin, registry, subsidies):
    return RedFlagEngine(registry).report(bulletin.load_procurements_last_days(args.days))


def cmd_spending(args, bulletin, registry, subsidies):
    return spending_summary(bulletin.load_procurements_last_days(args.days))


def cmd_companies(args, bulletin, registry, subsidies):
    return company_analysis(bulletin.load_procurements_last_days(args.days))


def cmd_procurements(args, bulletin, registry, subsidies):
    rows = search_procurements(
        bulletin.load_procurements_last_days(args.days),
        texto=args.texto, tipo=args.tipo, departamento=args.departamento, empresa=args.empresa,
        nif=args.nif, importe_min=args.importe_min, importe_max=args.importe_max,
        procedimiento=args.procedimiento, ccaa=args.ccaa,
    )
    return {'total': len(rows), 'licitaciones': rows[:args.limit]}


def cmd_documents(args, bulletin, registry, subsidies):
    documents = bulletin.load_last_days(args.days)
    found = search_documents(documents, texto=args.texto, departamento=args.departamento,
                             seccion=args.seccion, tipo=args.tipo)
    return {
        'estadisticas': document_stats(found),
        'documentos': [d.to_dict() for d in found[:args.limit]],
    }


def cmd_subsidies(args, bulletin, registry, subsidies):
    calls = subsidies.load_all()
    if args.international:
        return {'destinos': international_calls(calls)}
    return subsidy_summary(calls, meta=subsidies.load_meta(), texto=args.texto, nivel=args.nivel,
                           sector=args.sector, fecha_desde=args.desde, fecha_hasta=args.hasta)


def cmd_registry(args, bulletin, registry, subsidies):
    results = registry.search_company(args.query)
    return {'total': len(results), 'empresas': results}


def cmd_officers(args, bulletin, registry, subsidies):
    people = registry.get_officers(args.query)
    return {'empresa': args.query, 'total': len(people), 'socios': people}


def cmd_status(args, bulletin, registry, subsidies):
    return {
        'boe': bulletin.load_meta(),
        'borme': registry.status(),
        'bdns': subsidies.load_meta(),
        'tendencia': bulletin.trend(30),
        'cache': FetchCache(config.CACHE_DB, config.CACHE_TTL_MINUTES).stats() if config.CACHE_DB.exists() else None,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='BOE Explorer analysis reports (JSON)')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('xref', help='Bulletin items x procurement cross references')
    p.add_argument('--days', type=int, default=7)
    p.add_argument('--threshold', type=float, default=config.XREF_DEFAULT_THRESHOLD)
    p.add_argument('--max-results', type=int, default=config.XREF_DEFAULT_MAX_RESULTS)
    p.set_defaults(func=cmd_xref)

    p = sub.add_parser('thematic', help='Topic counts for bulletin and procurement items')
    p.add_argument('--days', type=int, default=30)
    p.set_defaults(func=cmd_thematic)

    p = sub.add_parser('red-flags', help='Procurement x registry red flags')
    p.add_argument('--days', type=int, default=90)
    p.set_defaults(func=cmd_red_flags)

    p = sub.add_parser('spending', help='Procurement spending summary')
    p.add_argument('--days', type=int, default=30)
    p.set_defaults(func=cmd_spending)

    p = sub.add_parser('companies', help='Concentration and recurrence per award winner')
    p.add_argument('--days', type=int, default=90)
    p.set_defaults(func=cmd_companies)

    p = sub.add_parser('procurements', help='Search procurement notices')
    p.add_argument('--days', type=int, default=60)
    p.add_argument('--texto', default='')
    p.add_argument('--tipo', default='')
    p.add_argument('--departamento', default='')
    p.add_argument('--empresa', default='')
    p.add_argument('--nif', default='')
    p.add_argument('--importe-min', type=float)
    p.add_argument('--importe-max', type=float)
    p.add_argument('--procedimiento', default='')
    p.add_argument('--ccaa', default='')
    p.add_argument('--limit', type=int, default=100)
    p.set_defaults(func=cmd_procurements)

    p = sub.add_parser('documents', help='Search bulletin documents')
    p.add_argument('--days', type=int, default=7)
    p.add_argument('--texto', default='')
    p.add_argument('--departamento', default='')
    p.add_argument('--seccion', default='')
    p.add_argument('--tipo', default='')
    p.add_argument('--limit', type=int, default=100)
    p.set_defaults(func=cmd_documents)

    p = sub.add_parser('subsidies', help='Subsidy summary')
    p.add_argument('--texto', default='')
    p.add_argument('--nivel', default='')
    p.add_argument('--sector', default='')
    p.add_argument('--desde', default='')
    p.add_argument('--hasta', default='')
    p.add_argument('--international', action='store_true', help='Group calls by foreign destination')
    p.set_defaults(func=cmd_subsidies)

    p = sub.add_parser('registry', help='Search companies in the registry index')
    p.add_argument('query')
    p.set_defaults(func=cmd_registry)

    p = sub.add_parser('officers', help='People named in a company\'s filings')
    p.add_argument('query')
    p.set_defaults(func=cmd_officers)

    p = sub.add_parser('status', help='Store status')
    p.set_defaults(func=cmd_status)

    return parser


def main():
    args = build_parser().parse_args()
    result = args.func(args, BulletinStore(), RegistryStore(), SubsidyStore())
    print_json(result)
    return 0


if __name__ == '__main__':
    sys.exit(main())
