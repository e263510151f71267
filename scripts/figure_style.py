"""
Shared figure style for classification maps.
Provides: rcParams, size constants, class palette/legend helpers, save helpers.
"""

import os
import sys

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import matplotlib.colors as mcolors
import matplotlib.patches as mpatches

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from gee_config import LC_CLASSES


# ============================================================
# SIZE CONSTANTS
# ============================================================

SINGLE_COL_WIDTH = 3.54  # 90 mm

DPI_SAVE = 600
DPI_DISPLAY = 150


# ============================================================
# MATPLOTLIB RCPARAMS SETUP
# ============================================================

def setup_journal_style():
    """Configure matplotlib rcParams for journal figures (Times font)."""
    plt.rcParams.update({
        'font.family': 'serif',
        'font.serif': ['Times New Roman', 'Times', 'DejaVu Serif'],
        'font.size': 8,
        'axes.labelsize': 9,
        'axes.titlesize': 10,
        'xtick.labelsize': 8,
        'ytick.labelsize': 8,
        'legend.fontsize': 7,
        'legend.title_fontsize': 8,

        'axes.linewidth': 0.6,
        'xtick.direction': 'out',
        'ytick.direction': 'out',

        'legend.frameon': True,
        'legend.framealpha': 0.9,
        'legend.edgecolor': '0.8',

        'figure.dpi': DPI_DISPLAY,
        'savefig.dpi': DPI_SAVE,
        'savefig.bbox': 'tight',
        'savefig.pad_inches': 0.05,
    })
    return plt


# ============================================================
# CLASS PALETTE
# ============================================================

def class_colormap():
    """Discrete colormap + norm so that class id k maps to LC_CLASSES[k]."""
    ids = sorted(LC_CLASSES)
    cmap = mcolors.ListedColormap([LC_CLASSES[i]['color'] for i in ids])
    bounds = [i - 0.5 for i in ids] + [ids[-1] + 0.5]
    norm = mcolors.BoundaryNorm(bounds, cmap.N)
    return cmap, norm


def class_legend_handles(include_nodata=True):
    handles = []
    for class_id in sorted(LC_CLASSES):
        if class_id == 0 and not include_nodata:
            continue
        info = LC_CLASSES[class_id]
        handles.append(mpatches.Patch(facecolor=info['color'], edgecolor='0.5',
                                      linewidth=0.4, label=info['name']))
    return handles


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def add_scalebar(ax, lon, lat, length_km=10, fontsize=7):
    """Add a simple scale bar to a map axis (approximate for low latitudes)."""
    deg_per_km = 1.0 / 111.32  # approximate at equator
    bar_length_deg = length_km * deg_per_km

    ax.plot([lon, lon + bar_length_deg], [lat, lat],
            'k-', linewidth=2, transform=ax.transData)
    ax.text(lon + bar_length_deg / 2, lat - 0.015,
            f'{length_km} km', ha='center', va='top', fontsize=fontsize)


def format_coord_labels(ax):
    """Format axis tick labels as geographic coordinates."""
    from matplotlib.ticker import FuncFormatter

    def lon_formatter(x, pos):
        if x < 0:
            return f'{abs(x):.1f}°W'
        return f'{x:.1f}°E'

    def lat_formatter(y, pos):
        if y < 0:
            return f'{abs(y):.1f}°S'
        return f'{y:.1f}°N'

    ax.xaxis.set_major_formatter(FuncFormatter(lon_formatter))
    ax.yaxis.set_major_formatter(FuncFormatter(lat_formatter))


def save_map_figure(fig, filepath, also_pdf=False):
    """Save map figure (raster content) as PNG at 600 DPI."""
    base, _ = os.path.splitext(filepath)
    os.makedirs(os.path.dirname(os.path.abspath(base)), exist_ok=True)
    fig.savefig(base + '.png', dpi=DPI_SAVE, facecolor='white')
    print(f"  [OK] {base}.png")
    if also_pdf:
        fig.savefig(base + '.pdf', dpi=300)
        print(f"  [OK] {base}.pdf")
    return base + '.png'
