"""
Funciones auxiliares para el proyecto de cobertura Northern Negros.
Incluye: log, errores de validacion, area de estudio, exportacion, visualizacion.
"""

import ee
import os
import sys
import json
from datetime import datetime

# Agregar directorio raiz al path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from gee_config import (
    STUDY_AREA_BBOX, ASSET_ROOT, EXPORT_SCALE, MAX_PIXELS, EXPORT_CRS,
    OPTICAL_SENSORS, LC_CLASSES
)

PROJECT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
OUTPUT_DIR = os.path.join(PROJECT_DIR, 'outputs')
LOG_PATH = os.path.join(PROJECT_DIR, 'logs', 'pipeline.log')


# ============================================================
# LOG
# ============================================================

def log(msg):
    ts = datetime.now().strftime('%H:%M:%S')
    line = f"[{ts}] {msg}"
    print(line, flush=True)
    os.makedirs(os.path.dirname(LOG_PATH), exist_ok=True)
    with open(LOG_PATH, 'a') as f:
        f.write(line + '\n')


def save_json(data, path):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w') as f:
        json.dump(data, f, indent=2, default=str)
    log(f"  >> Guardado: {path}")
    return path


# ============================================================
# ERRORES
# ============================================================

class PipelineError(Exception):
    """Error base de validacion entre etapas del pipeline."""


class MissingBandsError(PipelineError):
    def __init__(self, missing, available=None):
        self.missing = list(missing)
        self.available = list(available or [])
        super().__init__(f"Bandas faltantes: {self.missing}")


class AssetNotFoundError(PipelineError):
    def __init__(self, asset_id, reason=''):
        self.asset_id = asset_id
        msg = f"Asset no encontrado: {asset_id}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class EmptyPartitionError(PipelineError):
    def __init__(self, partition):
        self.partition = partition
        super().__init__(f"Particion vacia: {partition}")


class InsufficientSamplesError(PipelineError):
    def __init__(self, partition, counts, min_samples):
        # counts: {class_id: n} solo con las clases por debajo del minimo
        self.partition = partition
        self.counts = dict(counts)
        self.min_samples = min_samples
        super().__init__(
            f"Muestras insuficientes en {partition} (min={min_samples}): {self.counts}"
        )


# ============================================================
# VALIDACION
# ============================================================

def require_asset(asset_id):
    """Verifica que un asset exista antes de construir el grafo sobre el."""
    try:
        return ee.data.getAsset(asset_id)
    except ee.EEException as e:
        raise AssetNotFoundError(asset_id, str(e)) from e


def require_bands(image, bands):
    """Lanza MissingBandsError si la imagen no contiene todas las bandas."""
    available = image.bandNames().getInfo()
    missing = [b for b in bands if b not in available]
    if missing:
        raise MissingBandsError(missing, available)
    return available


# ============================================================
# AREA DE ESTUDIO
# ============================================================

def get_study_area():
    """Retorna el area de estudio como rectangulo GEE."""
    return ee.Geometry.Rectangle(STUDY_AREA_BBOX)


def asset_path(name):
    return f'{ASSET_ROOT}/{name}'


# ============================================================
# EXPORTACION
# ============================================================

def export_image_to_asset(image, description, asset_id, region,
                          scale=EXPORT_SCALE, max_pixels=MAX_PIXELS):
    """Exporta imagen GEE como asset."""
    task = ee.batch.Export.image.toAsset(
        image=image,
        description=description,
        assetId=asset_id,
        region=region,
        scale=scale,
        maxPixels=max_pixels,
    )
    task.start()
    log(f"Exportando a asset: {description} -> {asset_id}")
    return task


def export_image_to_drive(image, description, folder, region,
                          scale=EXPORT_SCALE, max_pixels=MAX_PIXELS):
    """Exporta imagen GEE a Google Drive."""
    task = ee.batch.Export.image.toDrive(
        image=image,
        description=description,
        folder=folder,
        region=region,
        scale=scale,
        maxPixels=max_pixels,
        crs=EXPORT_CRS
    )
    task.start()
    log(f"Exportando: {description}")
    return task


# ============================================================
# VISUALIZACION
# ============================================================

def get_optical_vis_params(sensor):
    """Falso color SWIR/NIR/Red para composites Landsat (reflectancia TOA)."""
    return {
        'bands': OPTICAL_SENSORS[sensor]['vis_bands'],
        'min': [0.05, 0.05, 0.05],
        'max': [0.30, 0.40, 0.40],
    }


def get_radar_vis_params():
    return {
        'bands': ['HH', 'HV', 'RAT'],
        'min': [-30, -30, -5],
        'max': [0, 0, 5],
    }


def get_classification_vis_params():
    """Paleta de 6 entradas: 0 = sin datos, 1-5 = clases de cobertura."""
    ids = sorted(LC_CLASSES)
    return {
        'min': ids[0],
        'max': ids[-1],
        'palette': [LC_CLASSES[i]['color'].lstrip('#') for i in ids],
    }


# ============================================================
# UTILIDADES GENERALES
# ============================================================

def print_image_info(image, name="Image"):
    """Imprime informacion basica de una imagen GEE."""
    band_names = image.bandNames().getInfo()
    print(f"\n{name}:")
    print(f"  Bandas ({len(band_names)}): {band_names}")
    return band_names
