"""Shared fixtures: upstream payload samples and isolated data directories."""

import pytest

from boe_explorer.core.domain_models import (
    BulletinDocument,
    Person,
    ProcurementDetail,
    RegistryEntry,
    Subsidy,
)
from boe_explorer.storage.bulletin_store import BulletinStore
from boe_explorer.storage.registry_store import RegistryStore
from boe_explorer.storage.subsidy_store import SubsidyStore


SUMMARY_XML = """
<response>
  <status><code>200</code><text>ok</text></status>
  <data>
    <sumario>
      <metadatos><publicacion>BOE</publicacion><fecha_publicacion>20240624</fecha_publicacion></metadatos>
      <diario numero="152">
        <seccion codigo="1" nombre="I. Disposiciones generales">
          <departamento codigo="9573" nombre="MINISTERIO DE HACIENDA">
            <epigrafe nombre="Impuestos">
              <item>
                <identificador>BOE-A-2024-12001</identificador>
                <titulo>Orden HAC/600/2024, de 18 de junio, por la que se aprueba el modelo 200.</titulo>
                <url_pdf szBytes="1024" szKBytes="1">https://www.boe.es/boe/dias/2024/06/24/pdfs/BOE-A-2024-12001.pdf</url_pdf>
                <url_html>https://www.boe.es/diario_boe/txt.php?id=BOE-A-2024-12001</url_html>
                <url_xml>https://www.boe.es/diario_boe/xml.php?id=BOE-A-2024-12001</url_xml>
              </item>
            </epigrafe>
          </departamento>
        </seccion>
        <seccion codigo="5A" nombre="V. Anuncios. A. Contratación del Sector Público">
          <departamento codigo="6110" nombre="MINISTERIO DE DEFENSA">
            <item>
              <identificador>BOE-B-2024-20001</identificador>
              <titulo>Anuncio de formalización de contratos de: Junta de Contratación del Ejército. Objeto: Suministro de repuestos para vehículos.</titulo>
              <url_pdf szBytes="2048" szKBytes="2">/boe/dias/2024/06/24/pdfs/BOE-B-2024-20001.pdf</url_pdf>
            </item>
          </departamento>
        </seccion>
      </diario>
    </sumario>
  </data>
</response>
"""

DETAIL_XML = """
<documento fecha_actualizacion="20240624">
  <metadatos><identificador>BOE-B-2024-20001</identificador></metadatos>
  <analisis>
    <modalidad codigo="F">Formalización contrato</modalidad>
    <tipo codigo="1">Suministros</tipo>
    <procedimiento codigo="3">Negociado sin publicidad</procedimiento>
    <ambito_geografico>Madrid</ambito_geografico>
    <materias_cpv>
      <materia_cpv codigo="34300000">Partes y accesorios de vehículos</materia_cpv>
    </materias_cpv>
  </analisis>
  <texto>
    <dl>
      <dt>1. Poder adjudicador:</dt>
      <dd>1.1) Nombre: Junta de Contratación del Ejército.</dd>
      <dt>12. Adjudicatarios:</dt>
      <dd>12.1) Nombre: Talleres Martínez, S.L.</dd>
      <dd>12.2) Número de identificación fiscal: B12345678.</dd>
      <dd>12.5) El adjudicatario es una PYME: Sí.</dd>
      <dt>13. Valor de la oferta de contrato:</dt>
      <dd>13.1) Valor de la oferta seleccionada: 150.000,00 euros.</dd>
      <dd>13.2) Valor de la oferta de mayor coste: 180.000,00 euros.</dd>
      <dd>13.3) Valor de la oferta de menor coste: 140.000,00 euros.</dd>
    </dl>
  </texto>
</documento>
"""

REGISTRY_TEXT = """BOLETÍN OFICIAL DEL REGISTRO MERCANTIL
Núm. 120 Lunes 24 de junio de 2024 Pág. 1234
SECCIÓN PRIMERA
Empresarios
Actos inscritos
   MADRID
123456 - CONSTRUCCIONES PEREZ SL.
Constitución. Comienzo de operaciones: 1.06.24. Objeto social: Construcción de edificios.
Domicilio: C/ MAYOR 1 (MADRID). Capital: 3.000,00 Euros. Nombramientos. Adm. Unico: PEREZ
GARCIA ANTONIO. Datos registrales. T 100 , F 1, S 8, H M 1, I/A 1 (18.06.24).
123457 - INDRA SISTEMAS SA.
Ceses/Dimisiones. Consejero: LOPEZ RUIZ MARIA. Nombramientos. Consejero: SANZ MOLINA PEDRO.
Datos registrales. T 200 , F 2.
Verificable en https://www.boe.es
"""

REGISTRY_SUMMARY = {
    'status': {'code': '200', 'text': 'ok'},
    'data': {'sumario': {'diario': [{'seccion': [
        {'codigo': 'A', 'item': [
            {'identificador': 'BORME-A-2024-120-28', 'titulo': 'MADRID',
             'url_pdf': {'szBytes': '1', 'texto': 'https://www.boe.es/borme/dias/2024/06/24/pdfs/BORME-A-2024-120-28.pdf'}},
            {'identificador': 'BORME-A-2024-120-99', 'titulo': 'ÍNDICE ALFABÉTICO DE SOCIEDADES',
             'url_pdf': {'szBytes': '1', 'texto': 'https://www.boe.es/borme/dias/2024/06/24/pdfs/BORME-A-2024-120-99.pdf'}},
        ]},
        {'codigo': 'C', 'item': {
            'identificador': 'BORME-C-2024-5000', 'titulo': 'Convocatoria de junta',
            'url_pdf': {'szBytes': '1', 'texto': 'https://www.boe.es/borme/dias/2024/06/24/pdfs/BORME-C-2024-5000.pdf'}}},
    ]}]}},
}


@pytest.fixture
def summary_xml():
    return SUMMARY_XML


@pytest.fixture
def detail_xml():
    return DETAIL_XML


@pytest.fixture
def registry_text():
    return REGISTRY_TEXT


@pytest.fixture
def registry_summary():
    return REGISTRY_SUMMARY


@pytest.fixture
def bulletin_store(tmp_path):
    return BulletinStore(tmp_path)


@pytest.fixture
def registry_store(tmp_path):
    return RegistryStore(tmp_path)


@pytest.fixture
def subsidy_store(tmp_path):
    return SubsidyStore(tmp_path)


def build_award(doc_id, fecha, adjudicatario=None, importe=None, procedimiento=None,
                departamento='MINISTERIO DE DEFENSA', tipo='Adjudicación', titulo=None, **extra):
    """Procurement document with an already merged detail block."""
    return BulletinDocument(
        id=doc_id,
        fecha=fecha,
        titulo=titulo or f"Contrato {doc_id}",
        tipo=tipo,
        departamento=departamento,
        seccion='V-A',
        detalle=ProcurementDetail(importe=importe, adjudicatario=adjudicatario,
                                  procedimiento=procedimiento, **extra),
    )


@pytest.fixture
def make_award():
    """Factory for procurement documents with an already merged detail block."""
    return build_award


@pytest.fixture
def populated_registry(registry_store):
    """
    Two companies:
        ACME SOLUCIONES SL  incorporated 2024-01-15 with 5.000 EUR capital
        BETA SERVICIOS SL   incorporated 2020, dissolved 2024-05-10
    Both list Perez Garcia Antonio as an officer.
    """
    acme = RegistryEntry(
        numero='1001', empresa='ACME SOLUCIONES SL', provincia='MADRID', fecha='2024-01-15',
        actos=['Constitución', 'Nombramientos'], capital=5000.0,
        personas=[Person('Perez Garcia Antonio', 'Administrador único', 'Nombramientos', '2024-01-15')],
    )
    beta_start = RegistryEntry(
        numero='501', empresa='BETA SERVICIOS SL', provincia='SEVILLA', fecha='2020-01-10',
        actos=['Constitución', 'Nombramientos'], capital=60000.0,
        personas=[
            Person('Lopez Ruiz Maria', 'Administrador solidario', 'Nombramientos', '2020-01-10'),
            Person('Perez Garcia Antonio', 'Administrador solidario', 'Nombramientos', '2020-01-10'),
        ],
    )
    beta_end = RegistryEntry(
        numero='2002', empresa='BETA SERVICIOS SL', provincia='SEVILLA', fecha='2024-05-10',
        actos=['Disolución', 'Extinción'],
    )
    registry_store.save_day('2020-01-10', [beta_start], 1)
    registry_store.save_day('2024-01-15', [acme], 1)
    registry_store.save_day('2024-05-10', [beta_end], 1)
    registry_store.rebuild_index()
    return registry_store


@pytest.fixture
def subsidies():
    return [
        Subsidy(id='1', descripcion='Ayuda humanitaria para refugiados en Siria', nivel='ESTATAL',
                entidad='MINISTERIO DE ASUNTOS EXTERIORES', organo='AECID', fecha='2024-06-20',
                numero='700001', presupuesto=1000000.0),
        Subsidy(id='2', descripcion='Subvenciones para la rehabilitación de viviendas', nivel='AUTONOMICO',
                entidad='COMUNIDAD DE MADRID', organo='Consejería de Vivienda', fecha='2024-05-02',
                numero='700002', mrr=True, presupuesto=250000.0),
        Subsidy(id='3', descripcion='Ayudas al comercio local', nivel='LOCAL',
                entidad='AYUNTAMIENTO DE SORIA', organo='Concejalía de Comercio', fecha='2024-06-01',
                numero='700003'),
    ]
