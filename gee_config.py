import ee
import os
from dotenv import load_dotenv

load_dotenv()

GEE_PROJECT_ID = os.getenv('GEE_PROJECT_ID')

# Nombre del sitio: se usa en todos los nombres de assets y exports
SITE = os.getenv('SITE_NAME', 'NNegros')
ASSET_ROOT = os.getenv('GEE_ASSET_ROOT', 'users/dondealban')
DRIVE_FOLDER = os.getenv('GEE_DRIVE_FOLDER', 'Google Earth Engine')


def initialize_gee(project=None):
    """Inicializa Earth Engine con el proyecto de .env (o el indicado)."""
    project = project or GEE_PROJECT_ID
    try:
        ee.Initialize(project=project)
        print(f"GEE inicializado: {project}")
    except Exception as e:
        print(f"Error GEE: {e}")
        raise


# ============================================================
# AREA DE ESTUDIO: Northern Negros, Philippines
# ============================================================

# [west, south, east, north]
STUDY_AREA_BBOX = [122.78, 10.3, 123.58, 11.0]

# ============================================================
# PARAMETROS GENERALES
# ============================================================

SEED = 2015
SPLIT_THRESHOLD = 0.7

EXPORT_SCALE = 30
MAX_PIXELS = 3e8
EXPORT_CRS = 'EPSG:4326'

# ============================================================
# COLECCIONES GEE
# ============================================================

COLLECTIONS = {
    'landsat5': 'LANDSAT/LT05/C02/T1_TOA',
    'landsat7': 'LANDSAT/LE07/C02/T1_TOA',
    'landsat8': 'LANDSAT/LC08/C02/T1_TOA',
    'palsar': 'JAXA/ALOS/PALSAR/YEARLY/SAR',
    'hansen': 'UMD/hansen/global_forest_change_2015',
    'roi': 'users/dondealban/Philippines/ALOSKC4/NNG/nnegros-landcover-roi-final',
}

# ============================================================
# SENSORES OPTICOS
# ============================================================

# Cada generacion de sensor produce un composite de 6 bandas con nombres nativos.
OPTICAL_SENSORS = {
    'landsat5': {
        'label': 'Landsat 5 TM + Landsat 7 ETM+',
        'collections': [COLLECTIONS['landsat5'], COLLECTIONS['landsat7']],
        'bands': ['B1', 'B2', 'B3', 'B4', 'B5', 'B7'],
        'roles': {
            'blue': 'B1', 'green': 'B2', 'red': 'B3',
            'nir': 'B4', 'swir1': 'B5', 'swir2': 'B7',
        },
        'start': '2009-01-01',
        'end': '2011-12-31',
        'year': 2010,
        'vis_bands': ['B5', 'B4', 'B3'],
    },
    'landsat8': {
        'label': 'Landsat 8 OLI',
        'collections': [COLLECTIONS['landsat8']],
        'bands': ['B2', 'B3', 'B4', 'B5', 'B6', 'B7'],
        'roles': {
            'blue': 'B2', 'green': 'B3', 'red': 'B4',
            'nir': 'B5', 'swir1': 'B6', 'swir2': 'B7',
        },
        'start': '2015-01-01',
        'end': '2016-12-31',
        'year': 2015,
        'vis_bands': ['B6', 'B5', 'B4'],
    },
}

# Nombres comunes (TM) a los que se renombran todos los composites opticos
COMMON_OPTICAL_BANDS = ['B1', 'B2', 'B3', 'B4', 'B5', 'B7']

# ============================================================
# RADAR (ALOS PALSAR)
# ============================================================

RADAR_YEARS = [2010, 2015]
RADAR_BANDS = ['HH', 'HV', 'RAT']

# Calibracion gamma-naught: 10*log10(DN^2) + CF
PALSAR_CALIBRATION_FACTOR = -83.0

# Factor para pasar sigma0 (dB) a entero antes de GLCM
TEXTURE_RESCALE = 1000
GLCM_SIZE = 1  # ventana 3x3
GLCM_MEASURES = ['asm', 'contrast', 'corr', 'var', 'idm', 'savg', 'ent', 'diss']
TEXTURE_BANDS = [f'{pol}_{m}' for pol in ['HH', 'HV'] for m in GLCM_MEASURES]

# ============================================================
# INDICES Y STACK DE FEATURES
# ============================================================

INDEX_BANDS = ['EVI', 'LSWI', 'NDTI', 'NDVI', 'SATVI']

FEATURE_BANDS = COMMON_OPTICAL_BANDS + INDEX_BANDS + RADAR_BANDS + TEXTURE_BANDS

# ============================================================
# EPOCAS DE CLASIFICACION
# ============================================================

EPOCHS = {
    2010: {
        'label': 'Epoca 1: Landsat 5/7 + PALSAR-1',
        'optical': 'landsat5',
        'radar_year': 2010,
    },
    2015: {
        'label': 'Epoca 2: Landsat 8 + PALSAR-2',
        'optical': 'landsat8',
        'radar_year': 2015,
    },
}

# ============================================================
# PARAMETROS RANDOM FOREST
# ============================================================

RF_PARAMS = {
    'numberOfTrees': 100,
    'variablesPerSplit': None,
    'minLeafPopulation': 10,
    'bagFraction': 0.5,
    'seed': SEED,
}

CLASS_LABEL = 'ClassID2'
MIN_SAMPLES_PER_CLASS = int(os.getenv('MIN_SAMPLES_PER_CLASS', '1'))

# ============================================================
# CLASES DE COBERTURA (despues del desplazamiento +1)
# ============================================================

LC_CLASSES = {
    0: {'name': 'No data', 'color': '#ffffff'},
    1: {'name': 'Forestland', 'color': '#246a24'},
    2: {'name': 'Settlement', 'color': '#ff0000'},
    3: {'name': 'Cropland', 'color': '#a65400'},
    4: {'name': 'Wetland', 'color': '#66ccff'},
    5: {'name': 'Grassland', 'color': '#ffff66'},
}

# Etiquetas del ROI antes del desplazamiento
TRAINING_CLASS_IDS = [0, 1, 2, 3, 4]
