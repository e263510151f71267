"""
01_optical_composite.py
=======================
Etapa 1: Composites opticos Landsat con cloud masking.

Un solo pipeline parametrizado por sensor:
- landsat5: Landsat 5 TM + Landsat 7 ETM+ TOA (2009-2011) -> composite 2010
- landsat8: Landsat 8 OLI TOA (2015-2016) -> composite 2015

Cada escena pasa por tres mascaras (reflectancia positiva, azul brillante,
razones espectrales de nubes) y la coleccion se reduce por mediana.

Outputs:
- Asset Landsat_Composite_{site}_{year} (6 bandas, nombres nativos)
- outputs/composites/optical_metadata.json
"""

import ee
import os
import sys
import argparse
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from gee_config import OPTICAL_SENSORS, SITE, initialize_gee
from scripts.utils import (
    get_study_area, asset_path, export_image_to_asset, print_image_info,
    get_optical_vis_params, save_json, log, OUTPUT_DIR
)


# ============================================================
# COLECCION
# ============================================================

def load_optical_collection(sensor, region=None):
    """Une las colecciones del sensor, filtradas por fecha y area."""
    cfg = OPTICAL_SENSORS[sensor]
    collection = None
    for path in cfg['collections']:
        coll = (ee.ImageCollection(path)
                .select(cfg['bands'])
                .filterDate(cfg['start'], cfg['end']))
        if region is not None:
            coll = coll.filterBounds(region)
        collection = coll if collection is None else collection.merge(coll)
    return ee.ImageCollection(collection)


# ============================================================
# CLOUD MASKING
# ============================================================

def mask_nonpositive(image, bands):
    """Invalida pixeles con reflectancia <= 0 en cualquier banda."""
    valid = image.select(bands[0]).gt(0)
    for band in bands[1:]:
        valid = valid.And(image.select(band).gt(0))
    return image.updateMask(valid)


def mask_bright_blue(image, blue_band, threshold=0.2):
    """Nubes brillantes: azul TOA >= 0.2."""
    return image.updateMask(image.select(blue_band).lt(threshold))


def mask_cloud_ratio(image, red_band, nir_band, swir2_band):
    """
    Test de nubes por razones espectrales.

    Despejado si:
        (NDVI < 0.6 y red/swir2 < 1.0) o
        (NDVI >= 0.6 y red/swir2 < 2.5) o
        NDVI < 0.125
    """
    red = image.select(red_band)
    nir = image.select(nir_band)
    swir2 = image.select(swir2_band)

    ndvi = nir.subtract(red).divide(nir.add(red))
    red_swir2 = red.divide(swir2)

    low_veg = ndvi.lt(0.6).And(red_swir2.lt(1.0))
    high_veg = ndvi.gte(0.6).And(red_swir2.lt(2.5))
    sparse = ndvi.lt(0.125)
    clear = low_veg.Or(high_veg).Or(sparse)
    return image.updateMask(clear)


def apply_cloud_masks(image, sensor):
    """Aplica las tres mascaras en orden (se combinan con AND)."""
    cfg = OPTICAL_SENSORS[sensor]
    roles = cfg['roles']
    image = mask_nonpositive(image, cfg['bands'])
    image = mask_bright_blue(image, roles['blue'])
    image = mask_cloud_ratio(image, roles['red'], roles['nir'], roles['swir2'])
    return image


# ============================================================
# COMPOSITE
# ============================================================

def build_optical_composite(sensor, region=None):
    """
    Construye el composite de mediana de un sensor.

    Returns:
        (composite, n_images): ee.Image de 6 bandas y ee.Number con el
        tamano de la coleccion filtrada.
    """
    cfg = OPTICAL_SENSORS[sensor]
    collection = load_optical_collection(sensor, region)
    masked = collection.map(lambda img: apply_cloud_masks(img, sensor))
    composite = masked.median().select(cfg['bands'])
    return composite, collection.size()


def composite_asset_name(sensor):
    return f"Landsat_Composite_{SITE}_{OPTICAL_SENSORS[sensor]['year']}"


def export_optical_composite(sensor, composite, region):
    name = composite_asset_name(sensor)
    return export_image_to_asset(
        image=composite,
        description=name,
        asset_id=asset_path(name),
        region=region,
    )


# ============================================================
# MAIN
# ============================================================

def main(argv=None):
    parser = argparse.ArgumentParser(description='Composites opticos Landsat')
    parser.add_argument('--sensor', choices=list(OPTICAL_SENSORS) + ['all'], default='all')
    parser.add_argument('--export', action='store_true',
                        help='Exportar composites como assets GEE')
    args = parser.parse_args(argv)

    print("=" * 60)
    print("ETAPA 1: COMPOSITES OPTICOS LANDSAT")
    print(f"Fecha de ejecucion: {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    print("=" * 60)

    initialize_gee()
    region = get_study_area()
    sensors = list(OPTICAL_SENSORS) if args.sensor == 'all' else [args.sensor]

    composites = {}
    metadata = {}
    for sensor in sensors:
        cfg = OPTICAL_SENSORS[sensor]
        print(f"\n{'─' * 50}")
        print(f"Procesando: {cfg['label']}")
        print(f"  Ventana: {cfg['start']} a {cfg['end']}")
        print(f"{'─' * 50}")

        composite, n_images = build_optical_composite(sensor, region)
        n_img = n_images.getInfo()
        print(f"  Imagenes disponibles: {n_img}")
        bands = print_image_info(composite, f"  Composite {cfg['year']}")

        composites[sensor] = composite
        metadata[sensor] = {
            'label': cfg['label'],
            'year': cfg['year'],
            'start_date': cfg['start'],
            'end_date': cfg['end'],
            'n_images': n_img,
            'bands': bands,
            'asset': asset_path(composite_asset_name(sensor)),
            'vis_params': get_optical_vis_params(sensor),
        }

    save_json(metadata, os.path.join(OUTPUT_DIR, 'composites', 'optical_metadata.json'))

    if args.export:
        tasks = [export_optical_composite(s, c, region) for s, c in composites.items()]
        log(f"{len(tasks)} tareas de exportacion iniciadas.")
        print("Revisa el progreso en: https://code.earthengine.google.com/tasks")

    print("\nProximo paso: 02_radar_composite.py")
    return composites, metadata


if __name__ == '__main__':
    composites, metadata = main()
