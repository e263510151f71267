"""
run_pipeline.py
===============
Script maestro: pipeline completo de cobertura Landsat + PALSAR.

Stages:
  1. optical   - composites Landsat 5/7 (2010) y Landsat 8 (2015)
  2. radar     - composites PALSAR-1 (2010) y PALSAR-2 (2015)
  3. classify  - stack de features, Random Forest, accuracy,
                 post-procesamiento y export de mapas

Las etapas 1-2 exportan assets; la etapa 3 los lee. Si los assets aun se
estan generando, correr la etapa 3 despues de que terminen las tareas.
"""

import os
import sys
import argparse
from datetime import datetime

PROJECT_DIR = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_DIR)

from gee_config import OPTICAL_SENSORS, RADAR_YEARS, EPOCHS, initialize_gee
from scripts.utils import PipelineError, get_study_area, save_json, log, OUTPUT_DIR

import importlib
optical_mod = importlib.import_module('scripts.01_optical_composite')
radar_mod = importlib.import_module('scripts.02_radar_composite')
classification_mod = importlib.import_module('scripts.04_classification')
post_mod = importlib.import_module('scripts.05_postprocessing')

STAGES = ['optical', 'radar', 'classify']


def stage_optical(region, export):
    log("STAGE 1: Composites opticos")
    tasks = []
    for sensor, cfg in OPTICAL_SENSORS.items():
        composite, n_images = optical_mod.build_optical_composite(sensor, region)
        log(f"  {cfg['label']}: {n_images.getInfo()} imagenes")
        if export:
            tasks.append(optical_mod.export_optical_composite(sensor, composite, region))
    return tasks


def stage_radar(region, export):
    log("STAGE 2: Composites PALSAR")
    tasks = []
    for year in RADAR_YEARS:
        composite = radar_mod.build_radar_composite(year)
        log(f"  PALSAR {year}: {composite.bandNames().getInfo()}")
        if export:
            tasks.append(radar_mod.export_radar_composite(year, composite, region))
    return tasks


def stage_classify(region, export, epochs, roi=None, min_samples=None):
    log("STAGE 3: Clasificacion + post-procesamiento")
    points = classification_mod.load_roi_points(roi)
    results = {}
    for year in epochs:
        kwargs = {'region': region}
        if min_samples is not None:
            kwargs['min_samples'] = min_samples
        res = classification_mod.run_epoch(year, points, **kwargs)
        classification_mod.save_epoch_metrics(year, res['metrics'])
        oa = res['metrics']['overall_accuracy']
        log(f"  {year}: OA={oa:.4f}" if oa is not None else f"  {year}: OA=n/a")
        if export:
            post_mod.export_classification(res['filtered'], year, region)
        results[year] = res['metrics']
    return results


def main(argv=None):
    parser = argparse.ArgumentParser(description='Pipeline Landsat + PALSAR')
    parser.add_argument('--stages', nargs='+', choices=STAGES, default=STAGES)
    parser.add_argument('--epochs', nargs='+', type=int, choices=list(EPOCHS),
                        default=list(EPOCHS))
    parser.add_argument('--roi', default=None)
    parser.add_argument('--min-samples', type=int, default=None)
    parser.add_argument('--export', action='store_true')
    args = parser.parse_args(argv)

    log("=" * 60)
    log(f"PIPELINE LANDSAT + PALSAR  {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    log(f"Stages: {args.stages}  Epocas: {args.epochs}  Export: {args.export}")
    log("=" * 60)

    initialize_gee()
    region = get_study_area()

    summary = {
        "started": datetime.now().isoformat(),
        "stages": args.stages,
        "epochs": args.epochs,
        "export": args.export,
    }
    status = 0
    try:
        if 'optical' in args.stages:
            summary["optical_tasks"] = len(stage_optical(region, args.export))
        if 'radar' in args.stages:
            summary["radar_tasks"] = len(stage_radar(region, args.export))
        if 'classify' in args.stages:
            summary["accuracy"] = stage_classify(
                region, args.export, args.epochs, args.roi, args.min_samples)
    except PipelineError as e:
        log(f"ERROR ({type(e).__name__}): {e}")
        summary["error"] = {"type": type(e).__name__, "message": str(e)}
        status = 1

    summary["finished"] = datetime.now().isoformat()
    save_json(summary, os.path.join(OUTPUT_DIR, 'pipeline_summary.json'))
    if status == 0:
        log("Pipeline completado.")
    return status


if __name__ == '__main__':
    sys.exit(main())
