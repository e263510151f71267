"""
02_radar_composite.py
=====================
Etapa 2: Composites de radar ALOS PALSAR (mosaicos anuales).

- 2010: PALSAR-1
- 2015: PALSAR-2

Convierte DN a gamma-naught en decibeles y agrega la banda RAT = HH/HV.
RAT es la razon de los valores en dB (no el log de la razon); los features
del clasificador dependen de esta definicion exacta.

Sin filtro de speckle.

Outputs:
- Asset PALSAR_Composite_{site}_{year} (bandas HH, HV, RAT)
"""

import ee
import os
import sys
import argparse
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from gee_config import (
    COLLECTIONS, RADAR_YEARS, PALSAR_CALIBRATION_FACTOR, SITE, initialize_gee
)
from scripts.utils import (
    get_study_area, asset_path, export_image_to_asset, print_image_info,
    get_radar_vis_params, save_json, log, OUTPUT_DIR
)


def load_palsar_mosaic(year):
    """Mosaico anual PALSAR con bandas HH y HV (DN)."""
    return ee.Image(f"{COLLECTIONS['palsar']}/{year}").select(['HH', 'HV'])


def to_gamma_naught(dn):
    """gamma0 [dB] = 10 * log10(DN^2) + CF"""
    return dn.multiply(dn).log10().multiply(10).add(PALSAR_CALIBRATION_FACTOR)


def polarization_ratio(hh_db, hv_db):
    return hh_db.divide(hv_db).rename('RAT')


def build_radar_composite(year, mosaic=None):
    """Composite de 3 bandas: HH, HV (dB) y RAT."""
    if mosaic is None:
        mosaic = load_palsar_mosaic(year)
    hh = to_gamma_naught(mosaic.select('HH')).rename('HH')
    hv = to_gamma_naught(mosaic.select('HV')).rename('HV')
    return hh.addBands(hv).addBands(polarization_ratio(hh, hv))


def composite_asset_name(year):
    return f'PALSAR_Composite_{SITE}_{year}'


def export_radar_composite(year, composite, region):
    name = composite_asset_name(year)
    return export_image_to_asset(
        image=composite,
        description=name,
        asset_id=asset_path(name),
        region=region,
    )


def main(argv=None):
    parser = argparse.ArgumentParser(description='Composites PALSAR')
    parser.add_argument('--year', choices=[str(y) for y in RADAR_YEARS] + ['all'],
                        default='all')
    parser.add_argument('--export', action='store_true')
    args = parser.parse_args(argv)

    print("=" * 60)
    print("ETAPA 2: COMPOSITES RADAR ALOS PALSAR")
    print(f"Fecha de ejecucion: {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    print("=" * 60)

    initialize_gee()
    region = get_study_area()
    years = RADAR_YEARS if args.year == 'all' else [int(args.year)]

    composites = {}
    metadata = {}
    for year in years:
        print(f"\n  PALSAR {year}: gamma-naught + RAT")
        composite = build_radar_composite(year)
        bands = print_image_info(composite, f"  Composite PALSAR {year}")
        composites[year] = composite
        metadata[year] = {
            'bands': bands,
            'asset': asset_path(composite_asset_name(year)),
            'vis_params': get_radar_vis_params(),
        }

        if args.export:
            export_radar_composite(year, composite, region)

    save_json(metadata, os.path.join(OUTPUT_DIR, 'composites', 'radar_metadata.json'))

    if args.export:
        log(f"{len(composites)} tareas de exportacion iniciadas.")

    print("\nProximo paso: 04_classification.py")
    return composites


if __name__ == '__main__':
    composites = main()
