"""
03_feature_stack.py
===================
Etapa 3: Stack de features por epoca.

Stack (30 bandas):
- 6 bandas opticas renombradas a nombres TM (B1-B5, B7)
- 5 indices: EVI, LSWI, NDTI, NDVI, SATVI
- 3 bandas radar: HH, HV, RAT
- 16 texturas GLCM (8 por polarizacion, ventana 3x3)

Los indices se escriben sobre los nombres comunes, asi que resuelven igual
para Landsat 5/7 y Landsat 8.
"""

import ee
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from gee_config import (
    EPOCHS, OPTICAL_SENSORS, COMMON_OPTICAL_BANDS, RADAR_BANDS, FEATURE_BANDS,
    TEXTURE_BANDS, TEXTURE_RESCALE, GLCM_SIZE
)
from scripts.utils import asset_path, require_asset, require_bands
import importlib as _il
_optical_mod = _il.import_module('scripts.01_optical_composite')
_radar_mod = _il.import_module('scripts.02_radar_composite')


# ============================================================
# CARGA DE COMPOSITES
# ============================================================

def load_composites(epoch, check_assets=True):
    """Carga los composites optico y radar exportados para una epoca."""
    info = EPOCHS[epoch]
    sensor = info['optical']
    optical_id = asset_path(_optical_mod.composite_asset_name(sensor))
    radar_id = asset_path(_radar_mod.composite_asset_name(info['radar_year']))

    if check_assets:
        require_asset(optical_id)
        require_asset(radar_id)

    # Renombrado posicional de bandas nativas a nombres TM
    native = OPTICAL_SENSORS[sensor]['bands']
    optical = ee.Image(optical_id).select(native, COMMON_OPTICAL_BANDS)
    radar = ee.Image(radar_id)
    return optical, radar


# ============================================================
# INDICES ESPECTRALES
# ============================================================

def evi(image):
    """EVI (Huete et al. 2002): 2.5 * (NIR - R) / (NIR + 6R - 7.5B + 1)"""
    blue = image.select('B1')
    red = image.select('B3')
    nir = image.select('B4')
    return (nir.subtract(red)
            .divide(nir.add(red.multiply(6)).subtract(blue.multiply(7.5)).add(1))
            .multiply(2.5)
            .rename('EVI'))


def lswi(image):
    return image.normalizedDifference(['B4', 'B5']).rename('LSWI')


def ndti(image):
    return image.normalizedDifference(['B5', 'B7']).rename('NDTI')


def ndvi(image):
    return image.normalizedDifference(['B4', 'B3']).rename('NDVI')


def satvi(image):
    """SATVI: ((SWIR1 - R) / (SWIR1 + R + 0.1)) * (1.1 - SWIR2 / 2)"""
    red = image.select('B3')
    swir1 = image.select('B5')
    swir2 = image.select('B7')
    ratio = swir1.subtract(red).divide(swir1.add(red).add(0.1))
    return ratio.multiply(swir2.divide(2).multiply(-1).add(1.1)).rename('SATVI')


def add_spectral_indices(image):
    return image.addBands([evi(image), lswi(image), ndti(image), ndvi(image), satvi(image)])


# ============================================================
# TEXTURAS
# ============================================================

def rescale_for_texture(radar):
    """GLCM requiere enteros: int32(1000 * sigma0)."""
    hh = radar.select('HH').multiply(TEXTURE_RESCALE).int32().rename('HH')
    hv = radar.select('HV').multiply(TEXTURE_RESCALE).int32().rename('HV')
    return hh.addBands(hv)


def compute_textures(radar, size=GLCM_SIZE):
    dual = rescale_for_texture(radar)
    return dual.glcmTexture(size=size, average=True).select(TEXTURE_BANDS)


# ============================================================
# STACK
# ============================================================

def assemble_feature_stack(optical, radar, validate=True):
    """
    Optico + indices + radar + texturas, en el orden de FEATURE_BANDS.

    Con validate, las bandas de entrada se verifican antes de armar el grafo:
    un select sobre bandas ausentes solo falla al evaluar en GEE.
    """
    if validate:
        require_bands(optical, COMMON_OPTICAL_BANDS)
        require_bands(radar, RADAR_BANDS)
    return (add_spectral_indices(optical)
            .addBands(radar)
            .addBands(compute_textures(radar))
            .select(FEATURE_BANDS))


def build_feature_stack(epoch, check_assets=True, validate=True):
    optical, radar = load_composites(epoch, check_assets=check_assets)
    return assemble_feature_stack(optical, radar, validate=validate)
