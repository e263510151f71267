"""
05_postprocessing.py
====================
Etapa 5: Post-procesamiento y exportacion de mapas clasificados.

1. Desplazamiento +1 (0 queda reservado para sin datos)
2. Filtro modal 3x3 (ruido salt-and-pepper)
3. Mascara tierra/agua Hansen GFC (datamask == 1), agua -> 0
4. Export uint8 a Google Drive

Incluye la misma cadena en version local (numpy/scipy/rasterio) para
re-procesar GeoTIFFs ya exportados.
"""

import ee
import os
import sys
import argparse
import numpy as np
from scipy import ndimage

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from gee_config import COLLECTIONS, DRIVE_FOLDER, SITE, LC_CLASSES
from scripts.utils import export_image_to_drive, log

NODATA = 0


# ============================================================
# GEE
# ============================================================

def shift_labels(classified):
    return classified.add(1)


def mode_filter(image, radius=1):
    """Filtro modal con kernel cuadrado de radio 1 (3x3)."""
    return image.reduceNeighborhood(
        reducer=ee.Reducer.mode(),
        kernel=ee.Kernel.square(radius),
    )


def get_land_mask(region):
    """Hansen GFC datamask: 1 = tierra, 0 = sin datos, 2 = agua."""
    gfc = ee.Image(COLLECTIONS['hansen']).clip(region)
    return gfc.select('datamask').eq(1)


def apply_land_mask(image, land_mask):
    return image.updateMask(land_mask).unmask(NODATA)


def postprocess_classification(classified, region, land_mask=None):
    if land_mask is None:
        land_mask = get_land_mask(region)
    filtered = mode_filter(shift_labels(classified))
    return apply_land_mask(filtered, land_mask).uint8()


def classification_name(year):
    return f'Classification_{SITE}_{year}'


def export_classification(image, year, region, folder=DRIVE_FOLDER):
    return export_image_to_drive(
        image=image.uint8(),
        description=classification_name(year),
        folder=folder,
        region=region,
    )


# ============================================================
# LOCAL
# ============================================================

def shift_labels_array(labels):
    """+1 sobre clases crudas 0-4; valores fuera de rango se rechazan."""
    shifted = np.asarray(labels).astype(np.int64) + 1
    top = max(LC_CLASSES)
    if shifted.size and (shifted.min() < 1 or shifted.max() > top):
        raise ValueError(
            f"Clases fuera de rango 0-{top - 1}: [{shifted.min() - 1}, {shifted.max() - 1}]"
        )
    return shifted.astype(np.uint8)


def modal_filter_array(labels, size=3, nodata=NODATA):
    """
    Filtro modal sobre un arreglo 2D de clases.

    Los pixeles nodata no votan; los empates se resuelven hacia la clase
    de menor id; sin vecinos validos el resultado es nodata.
    """
    labels = np.asarray(labels)
    classes = [c for c in np.unique(labels) if c != nodata]
    out = np.full(labels.shape, nodata, dtype=labels.dtype)
    if not classes:
        return out

    kernel = np.ones((size, size), dtype=np.int32)
    counts = np.stack([
        ndimage.convolve((labels == c).astype(np.int32), kernel,
                         mode='constant', cval=0)
        for c in classes
    ])
    best = counts.argmax(axis=0)
    has_vote = counts.max(axis=0) > 0
    out[has_vote] = np.asarray(classes, dtype=labels.dtype)[best[has_vote]]
    return out


def apply_land_mask_array(labels, land_mask, nodata=NODATA):
    """Pixeles con mascara distinta de 1 (agua / sin datos) -> nodata."""
    labels = np.asarray(labels)
    return np.where(np.asarray(land_mask) == 1, labels, nodata).astype(labels.dtype)


def postprocess_array(classified, land_mask=None):
    """Cadena local equivalente: +1, modal 3x3, mascara de tierra."""
    filtered = modal_filter_array(shift_labels_array(classified))
    if land_mask is not None:
        filtered = apply_land_mask_array(filtered, land_mask)
    return filtered


def postprocess_geotiff(src_path, dst_path, land_mask_path=None, shift=True):
    """
    Re-procesa un GeoTIFF clasificado (clases 0-4 si shift=True, 1-5 si no).
    La mascara de tierra debe estar en la misma grilla.
    """
    import rasterio

    with rasterio.open(src_path) as src:
        labels = src.read(1)
        profile = src.profile

    land_mask = None
    if land_mask_path:
        with rasterio.open(land_mask_path) as msk:
            land_mask = msk.read(1)
        if land_mask.shape != labels.shape:
            raise ValueError(
                f"Grilla distinta: clasificacion {labels.shape}, mascara {land_mask.shape}"
            )

    if shift:
        result = postprocess_array(labels, land_mask)
    else:
        result = modal_filter_array(labels.astype(np.uint8))
        if land_mask is not None:
            result = apply_land_mask_array(result, land_mask)

    profile.update(dtype='uint8', count=1, nodata=NODATA)
    os.makedirs(os.path.dirname(os.path.abspath(dst_path)), exist_ok=True)
    with rasterio.open(dst_path, 'w', **profile) as dst:
        dst.write(result.astype(np.uint8), 1)
    log(f"  >> Guardado: {dst_path}")
    return result


def main(argv=None):
    parser = argparse.ArgumentParser(description='Post-procesamiento local de GeoTIFFs')
    parser.add_argument('src')
    parser.add_argument('dst')
    parser.add_argument('--land-mask', default=None)
    parser.add_argument('--no-shift', action='store_true',
                        help='La entrada ya tiene clases 1-5')
    args = parser.parse_args(argv)

    result = postprocess_geotiff(args.src, args.dst, args.land_mask,
                                 shift=not args.no_shift)
    values, counts = np.unique(result, return_counts=True)
    for v, n in zip(values, counts):
        name = LC_CLASSES.get(int(v), {}).get('name', '?')
        print(f"  {int(v)} {name:<12} {int(n):>10} px")
    return result


if __name__ == '__main__':
    main()
