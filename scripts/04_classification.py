"""
04_classification.py
=====================
Etapa 4: Clasificacion supervisada Random Forest y evaluacion de accuracy.

Por epoca (2010, 2015):
1. Split del ROI por columna aleatoria (seed fija): train <= 0.7 < test
2. Muestreo del stack de features en los puntos
3. Entrenamiento smileRandomForest (100 arboles, minLeaf 10, bag 0.5)
4. Clasificacion de los puntos de test y matriz de confusion
5. OA, consumer's, producer's, F1 (calculados localmente con numpy)
6. Clasificacion pixel a pixel del stack

Outputs:
- outputs/classification/accuracy_{site}_{year}.json
- outputs/classification/class_metrics_{site}_{year}.csv
"""

import ee
import os
import sys
import argparse
import numpy as np
import pandas as pd
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from gee_config import (
    EPOCHS, FEATURE_BANDS, RF_PARAMS, CLASS_LABEL, SEED, SPLIT_THRESHOLD,
    EXPORT_SCALE, COLLECTIONS, MIN_SAMPLES_PER_CLASS, TRAINING_CLASS_IDS,
    LC_CLASSES, SITE, initialize_gee
)
from scripts.utils import (
    EmptyPartitionError, InsufficientSamplesError, PipelineError,
    get_study_area, get_classification_vis_params, require_bands, save_json, log,
    OUTPUT_DIR
)
import importlib as _il
_stack_mod = _il.import_module('scripts.03_feature_stack')
_post_mod = _il.import_module('scripts.05_postprocessing')

LOCAL_VECTOR_SUFFIXES = ('.geojson', '.json', '.shp', '.gpkg')


# ============================================================
# ROI
# ============================================================

def load_roi_points(source=None, label=CLASS_LABEL):
    """
    Carga los puntos ROI etiquetados.

    Args:
        source: asset GEE o archivo vectorial local (.geojson/.shp/.gpkg).
            Por defecto el asset de COLLECTIONS['roi'].
        label: columna con el id de clase

    Returns:
        ee.FeatureCollection
    """
    source = source or COLLECTIONS['roi']
    if not source.lower().endswith(LOCAL_VECTOR_SUFFIXES):
        return ee.FeatureCollection(source)

    import geopandas as gpd
    gdf = gpd.read_file(source)
    if label not in gdf.columns:
        raise PipelineError(f"El archivo {source} no tiene la columna '{label}'")
    if gdf.crs is not None:
        gdf = gdf.to_crs('EPSG:4326')
    counts = summarize_roi_classes(gdf, label)
    print(f"  ROI local: {len(gdf)} puntos, por clase: {counts}")
    return ee.FeatureCollection(gdf[[label, 'geometry']].__geo_interface__)


def summarize_roi_classes(gdf, label=CLASS_LABEL):
    counts = gdf[label].value_counts().sort_index()
    return {int(k): int(v) for k, v in counts.items()}


def split_roi(points, seed=SEED, threshold=SPLIT_THRESHOLD):
    """Split reproducible: random <= threshold -> train, > threshold -> test."""
    points = points.randomColumn('random', seed)
    training = points.filter(ee.Filter.lte('random', threshold))
    testing = points.filter(ee.Filter.gt('random', threshold))
    return training, testing


def sample_stack(stack, points, bands=FEATURE_BANDS, label=CLASS_LABEL):
    """Extrae valores del stack en los puntos (conserva label y random)."""
    return stack.select(bands).sampleRegions(
        collection=points,
        properties=[label, 'random'],
        scale=EXPORT_SCALE
    )


def check_class_samples(histogram, partition, min_samples=MIN_SAMPLES_PER_CLASS,
                        classes=None):
    """
    Verifica conteos por clase de una particion.

    Args:
        histogram: {class_id: n} (claves str como las devuelve
            aggregate_histogram().getInfo())
        partition: nombre de la particion para el mensaje de error
        min_samples: minimo de muestras por clase
        classes: clases esperadas; por defecto las presentes en el histograma
    """
    counts = {int(float(k)): int(v) for k, v in (histogram or {}).items()}
    if sum(counts.values()) == 0:
        raise EmptyPartitionError(partition)

    expected = classes if classes is not None else sorted(counts)
    short = {c: counts.get(c, 0) for c in expected if counts.get(c, 0) < min_samples}
    if short:
        raise InsufficientSamplesError(partition, short, min_samples)
    return counts


# ============================================================
# RANDOM FOREST
# ============================================================

def train_classifier(training, bands=FEATURE_BANDS, label=CLASS_LABEL):
    classifier = ee.Classifier.smileRandomForest(**RF_PARAMS).train(
        features=training.select(list(bands) + [label]),
        classProperty=label,
        inputProperties=list(bands)
    )
    return classifier


def feature_importance(classifier):
    """Importancia de variables del RF (ee.Dictionary banda -> importancia)."""
    return ee.Dictionary(classifier.explain().get('importance'))


def classify_stack(stack, classifier, bands=FEATURE_BANDS):
    return stack.select(bands).classify(classifier)


def evaluate_classifier(classifier, testing, label=CLASS_LABEL):
    """Clasifica los puntos de test y calcula metricas sobre la error matrix."""
    validated = testing.classify(classifier)
    error_matrix = validated.errorMatrix(label, 'classification')
    matrix = error_matrix.array().getInfo()
    return compute_accuracy_metrics(matrix)


# ============================================================
# METRICAS
# ============================================================

def _safe_ratio(num, den):
    return float(num) / float(den) if den else None


def compute_accuracy_metrics(matrix, class_ids=None):
    """
    Metricas desde una matriz de confusion cuadrada.

    Filas = clase de referencia, columnas = clase predicha (convencion
    de errorMatrix). Consumer's accuracy = diag / suma de columna
    (precision); producer's accuracy = diag / suma de fila (recall).
    F1 queda en None si precision + recall = 0 o alguna no esta definida.
    """
    cm = np.asarray(matrix, dtype=float)
    if cm.ndim != 2 or cm.shape[0] != cm.shape[1]:
        raise ValueError(f"La matriz de confusion debe ser cuadrada, shape={cm.shape}")

    n = cm.shape[0]
    if class_ids is None:
        class_ids = list(range(n))

    total = cm.sum()
    diag = np.diag(cm)
    row_sums = cm.sum(axis=1)
    col_sums = cm.sum(axis=0)

    oa = _safe_ratio(diag.sum(), total)

    kappa = None
    if total:
        expected = float((row_sums * col_sums).sum()) / total ** 2
        if expected < 1:
            kappa = (oa - expected) / (1 - expected)

    class_metrics = {}
    for i, class_id in enumerate(class_ids):
        ua = _safe_ratio(diag[i], col_sums[i])
        pa = _safe_ratio(diag[i], row_sums[i])
        if ua is None or pa is None or ua + pa == 0:
            f1 = None
        else:
            f1 = 2 * ua * pa / (ua + pa)
        class_metrics[class_id] = {
            'consumers_accuracy': ua,
            'producers_accuracy': pa,
            'f1_score': f1,
            'n_reference': int(row_sums[i]),
            'n_predicted': int(col_sums[i]),
        }

    return {
        'overall_accuracy': oa,
        'kappa': kappa,
        'n_samples': int(total),
        'confusion_matrix': cm.astype(int).tolist(),
        'class_order': list(class_ids),
        'class_metrics': class_metrics,
    }


def metrics_table(metrics):
    """Tabla por clase; ids de entrenamiento (0-4) con nombre tras el +1."""
    rows = []
    for class_id, m in metrics['class_metrics'].items():
        rows.append({
            'class_id': class_id,
            'name': LC_CLASSES.get(class_id + 1, {}).get('name', f'Class {class_id}'),
            **m,
        })
    return pd.DataFrame(rows)


def print_metrics(metrics, year):
    print(f"\n  Error Matrix, {year}:")
    for row in metrics['confusion_matrix']:
        print("    " + " ".join(f"{v:>5}" for v in row))
    oa = metrics['overall_accuracy']
    if oa is not None:
        print(f"  OA, {year}: {oa:.4f} ({oa * 100:.1f}%)")
    table = metrics_table(metrics)
    print(f"  UA (consumer's), PA (producer's), F1 por clase, {year}:")
    print(table[['class_id', 'name', 'consumers_accuracy',
                 'producers_accuracy', 'f1_score']].to_string(index=False))


# ============================================================
# EPOCA COMPLETA
# ============================================================

def run_epoch(year, points, stack=None, min_samples=MIN_SAMPLES_PER_CLASS,
              region=None):
    """
    Ejecuta split, muestreo, entrenamiento, evaluacion y clasificacion.

    Returns:
        dict con classifier, classified (crudo 0-4), filtered (post-procesado),
        metrics y conteos.
    """
    info = EPOCHS[year]
    region = region or get_study_area()
    print(f"\n{'═' * 50}")
    print(f"CLASIFICANDO: {year} ({info['label']})")
    print(f"{'═' * 50}")

    print("  [1/5] Stack de features...")
    if stack is None:
        stack = _stack_mod.build_feature_stack(year, validate=True)
    else:
        require_bands(stack, FEATURE_BANDS)

    print("  [2/5] Split train/test y muestreo...")
    train_points, test_points = split_roi(points)
    training = sample_stack(stack, train_points)
    testing = sample_stack(stack, test_points)

    train_hist = training.aggregate_histogram(CLASS_LABEL).getInfo()
    test_hist = testing.aggregate_histogram(CLASS_LABEL).getInfo()
    train_counts = check_class_samples(train_hist, 'training', min_samples,
                                       classes=TRAINING_CLASS_IDS)
    test_counts = check_class_samples(test_hist, 'testing', 1)
    n_train = sum(train_counts.values())
    n_test = sum(test_counts.values())
    print(f"  Training, n = {n_train}")
    print(f"  Testing, n = {n_test}")

    print(f"  [3/5] Random Forest (ntree={RF_PARAMS['numberOfTrees']})...")
    classifier = train_classifier(training)

    importance = feature_importance(classifier).getInfo()
    sorted_imp = sorted(importance.items(), key=lambda x: x[1], reverse=True)
    print("    Feature importance (top 5):")
    for feat, imp in sorted_imp[:5]:
        print(f"      {feat}: {imp:.2f}")

    print("  [4/5] Evaluacion en test...")
    metrics = evaluate_classifier(classifier, testing)
    metrics['n_training'] = n_train
    metrics['n_testing'] = n_test
    metrics['feature_importance'] = dict(sorted_imp)
    print_metrics(metrics, year)

    print("  [5/5] Clasificando stack y post-procesando...")
    classified = classify_stack(stack, classifier)
    filtered = _post_mod.postprocess_classification(classified, region)

    return {
        'year': year,
        'classifier': classifier,
        'classified': classified,
        'filtered': filtered,
        'metrics': metrics,
    }


def save_epoch_metrics(year, metrics, output_dir=None):
    output_dir = output_dir or os.path.join(OUTPUT_DIR, 'classification')
    json_path = save_json(metrics, os.path.join(output_dir, f'accuracy_{SITE}_{year}.json'))
    csv_path = os.path.join(output_dir, f'class_metrics_{SITE}_{year}.csv')
    metrics_table(metrics).to_csv(csv_path, index=False)
    log(f"  >> Guardado: {csv_path}")
    return json_path, csv_path


# ============================================================
# MAIN
# ============================================================

def main(argv=None):
    parser = argparse.ArgumentParser(description='Clasificacion RF Landsat + PALSAR')
    parser.add_argument('--epoch', choices=[str(y) for y in EPOCHS] + ['all'], default='all')
    parser.add_argument('--roi', default=None, help='Asset GEE o archivo vectorial local')
    parser.add_argument('--min-samples', type=int, default=MIN_SAMPLES_PER_CLASS)
    parser.add_argument('--export', action='store_true',
                        help='Exportar clasificaciones a Google Drive')
    args = parser.parse_args(argv)

    print("=" * 60)
    print("ETAPA 4: CLASIFICACION RANDOM FOREST")
    print(f"Fecha: {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    print("=" * 60)

    initialize_gee()
    region = get_study_area()
    points = load_roi_points(args.roi)
    years = list(EPOCHS) if args.epoch == 'all' else [int(args.epoch)]

    results = {}
    for year in years:
        res = run_epoch(year, points, min_samples=args.min_samples, region=region)
        save_epoch_metrics(year, res['metrics'])
        if args.export:
            _post_mod.export_classification(res['filtered'], year, region)
        results[year] = res

    save_json(
        {'vis_params': get_classification_vis_params(),
         'legend': {str(k): v for k, v in LC_CLASSES.items()}},
        os.path.join(OUTPUT_DIR, 'classification', 'display.json'),
    )

    print("\n" + "=" * 60)
    print("RESUMEN DE CLASIFICACION")
    print("=" * 60)
    print(f"\n{'Epoca':<10} {'OA':>8} {'Kappa':>8} {'Train':>8} {'Test':>8}")
    print("─" * 46)
    for year, res in results.items():
        m = res['metrics']
        oa = m['overall_accuracy'] or 0.0
        kappa = m['kappa'] if m['kappa'] is not None else float('nan')
        print(f"{year:<10} {oa:>7.1%} {kappa:>8.4f} {m['n_training']:>8} {m['n_testing']:>8}")

    return results


if __name__ == '__main__':
    results = main()
