#!/usr/bin/env python3
"""
Classification maps and class-area summaries from exported GeoTIFFs.

Reads the Classification_{site}_{year}.tif files exported by stage 5
(downloaded from Google Drive), renders each one with the fixed 6-entry
palette and legend, and writes a per-class area table.

Usage:
    python scripts/06_classification_maps.py data/exports
"""

import os
import sys
import glob
import argparse
import numpy as np
import pandas as pd

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from gee_config import LC_CLASSES, EXPORT_SCALE
from scripts.utils import OUTPUT_DIR, log
from scripts.figure_style import (
    setup_journal_style, class_colormap, class_legend_handles,
    format_coord_labels, add_scalebar, save_map_figure, SINGLE_COL_WIDTH
)


def pixel_area_ha(scale=EXPORT_SCALE):
    return scale * scale / 10000.0


def class_area_summary(labels, area_ha=None):
    """Pixel count and area (ha) for every class id in LC_CLASSES."""
    area_ha = pixel_area_ha() if area_ha is None else area_ha
    labels = np.asarray(labels)
    rows = []
    for class_id in sorted(LC_CLASSES):
        n = int((labels == class_id).sum())
        rows.append({
            'class_id': class_id,
            'name': LC_CLASSES[class_id]['name'],
            'pixels': n,
            'area_ha': round(n * area_ha, 2),
        })
    df = pd.DataFrame(rows)
    mapped = df.loc[df['class_id'] != 0, 'pixels'].sum()
    df['pct_mapped'] = np.where(
        df['class_id'] != 0,
        (df['pixels'] / mapped * 100).round(2) if mapped else 0.0,
        np.nan,
    )
    return df


def plot_classification_map(raster_path, output_path, title=None):
    import rasterio
    from rasterio.plot import plotting_extent

    plt = setup_journal_style()
    with rasterio.open(raster_path) as src:
        labels = src.read(1)
        extent = plotting_extent(src)

    cmap, norm = class_colormap()
    fig, ax = plt.subplots(figsize=(SINGLE_COL_WIDTH * 1.6, SINGLE_COL_WIDTH * 1.6))
    ax.imshow(labels, cmap=cmap, norm=norm, extent=extent, interpolation='nearest')
    ax.set_title(title or os.path.splitext(os.path.basename(raster_path))[0])
    format_coord_labels(ax)
    west, east, south, north = extent
    add_scalebar(ax, west + 0.65 * (east - west), south + 0.06 * (north - south))
    ax.legend(handles=class_legend_handles(), title='Land Cover Classification',
              loc='lower left', fontsize=6)
    saved = save_map_figure(fig, output_path)
    plt.close(fig)
    return saved, labels


def main(argv=None):
    parser = argparse.ArgumentParser(description='Classification maps')
    parser.add_argument('input_dir', help='Directory with Classification_*.tif')
    parser.add_argument('--output-dir', default=os.path.join(OUTPUT_DIR, 'maps'))
    args = parser.parse_args(argv)

    rasters = sorted(glob.glob(os.path.join(args.input_dir, 'Classification_*.tif')))
    if not rasters:
        print(f"No Classification_*.tif in {args.input_dir}")
        return {}

    summaries = {}
    for path in rasters:
        name = os.path.splitext(os.path.basename(path))[0]
        print(f"\n--- {name} ---")
        _, labels = plot_classification_map(path, os.path.join(args.output_dir, name))
        summary = class_area_summary(labels)
        csv_path = os.path.join(args.output_dir, f'{name}_areas.csv')
        summary.to_csv(csv_path, index=False)
        log(f"  >> Guardado: {csv_path}")
        print(summary.to_string(index=False))
        summaries[name] = summary

    return summaries


if __name__ == '__main__':
    main()
