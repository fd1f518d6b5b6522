#!/usr/bin/env python3
"""
Export stored procurement notices and red-flag alerts to Excel.

Usage:
    python scripts/export_to_excel.py [--days N] [--output FILENAME]

Examples:
    python scripts/export_to_excel.py                       # Last 30 stored days
    python scripts/export_to_excel.py --days 90             # Last 90 stored days
    python scripts/export_to_excel.py --output gasto.xlsx   # Custom output file
"""

import sys
import argparse
import logging
from pathlib import Path
from datetime import datetime
from typing import Any, Dict, List

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from boe_explorer.analysis.red_flags import RedFlagEngine
from boe_explorer.analysis.reporting import sector_of
from boe_explorer.core.domain_models import BulletinDocument
from boe_explorer.enhance.company_classifier import classify_nif
from boe_explorer.storage.bulletin_store import BulletinStore
from boe_explorer.storage.registry_store import RegistryStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

PROCUREMENT_COLUMNS = [
    ('fecha', 'Fecha', 12),
    ('id', 'Referencia', 22),
    ('titulo', 'Título', 60),
    ('departamento', 'Departamento', 35),
    ('tipo', 'Tipo', 15),
    ('sector', 'Sector', 22),
    ('procedimiento', 'Procedimiento', 25),
    ('importe', 'Importe (EUR)', 16),
    ('adjudicatario', 'Adjudicatario', 40),
    ('nif_adjudicatario', 'NIF', 12),
    ('tipo_sociedad', 'Forma jurídica', 22),
    ('es_pyme', 'PYME', 8),
    ('ambito_geografico', 'Ámbito', 25),
    ('url_html', 'URL', 45),
]

ALERT_COLUMNS = [
    ('severidad', 'Nivel', 8),
    ('tipo', 'Tipo', 26),
    ('empresa', 'Empresa', 40),
    ('importe', 'Importe (EUR)', 16),
    ('descripcion', 'Descripción', 80),
    ('documentos', 'Documentos', 30),
]


def procurement_rows(procurements: List[BulletinDocument]) -> List[Dict[str, Any]]:
    rows = []
    for doc in procurements:
        row = doc.to_dict()
        row['sector'] = sector_of(row)
        row['tipo_sociedad'] = classify_nif(row.get('nif_adjudicatario'))['tipo_sociedad']
        rows.append(row)
    return rows


def alert_rows(alerts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{**a, 'documentos': ', '.join(a.get('documentos', []))} for a in alerts]


def frame(rows: List[Dict[str, Any]], columns) -> pd.DataFrame:
    df = pd.DataFrame(rows, columns=[key for key, _, _ in columns])
    return df.rename(columns={key: header for key, header, _ in columns})


def style_sheet(ws, columns, wrap_column: int):
    """Header colours, column widths, wrapped long text and a frozen header row."""
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")

    for col_idx, (_, _, width) in enumerate(columns, 1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal='center', vertical='center')
        ws.column_dimensions[get_column_letter(col_idx)].width = width

    for row_idx in range(2, ws.max_row + 1):
        ws.cell(row=row_idx, column=wrap_column).alignment = Alignment(wrap_text=True, vertical='top')

    ws.freeze_panes = 'A2'


def export_to_excel(procurements: List[BulletinDocument], alerts: List[Dict[str, Any]], filename: str):
    """
    Write two sheets: procurement notices and red-flag alerts.

    Args:
        procurements: Stored procurement documents
        alerts: Alert dicts from RedFlagEngine.report()
        filename: Output Excel filename
    """
    with pd.ExcelWriter(filename, engine='openpyxl') as writer:
        frame(procurement_rows(procurements), PROCUREMENT_COLUMNS).to_excel(
            writer, index=False, sheet_name='Licitaciones')
        frame(alert_rows(alerts), ALERT_COLUMNS).to_excel(writer, index=False, sheet_name='Alertas')

        style_sheet(writer.sheets['Licitaciones'], PROCUREMENT_COLUMNS, wrap_column=3)
        style_sheet(writer.sheets['Alertas'], ALERT_COLUMNS, wrap_column=5)

    logger.info(f"Excel file saved: {filename}")


def main():
    parser = argparse.ArgumentParser(description='Export procurement notices and alerts to Excel')
    parser.add_argument('--days', type=int, default=30,
                        help='Number of stored days to export (default: 30)')
    parser.add_argument('--output', type=str, default=None,
                        help='Output Excel filename (default: auto-generated)')
    args = parser.parse_args()

    print("=" * 60)
    print("BOE EXPLORER - Excel Export")
    print("=" * 60)
    print()

    procurements = BulletinStore().load_procurements_last_days(args.days)
    if not procurements:
        logger.error(f"No procurement notices stored in the last {args.days} days")
        sys.exit(1)

    report = RedFlagEngine(RegistryStore()).report(procurements)

    if args.output:
        filename = args.output
    else:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"licitaciones_{timestamp}.xlsx"

    export_to_excel(procurements, report['alertas'], filename)

    # Summary
    print()
    print("=" * 60)
    print("SUMMARY")
    print("=" * 60)
    print(f"Procurement notices: {len(procurements)}")
    print(f"Alerts: {report['total_alertas']}")
    print(f"Output file: {filename}")
    print()


if __name__ == "__main__":
    main()
