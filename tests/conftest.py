import importlib

import numpy as np
import pytest


GLCM_OUTPUTS = ['asm', 'contrast', 'corr', 'var', 'idm', 'savg', 'svar', 'sent',
                'ent', 'dvar', 'dent', 'imcorr1', 'imcorr2', 'maxcorr', 'diss',
                'inertia', 'shade', 'prom']


class _Info:
    def __init__(self, value):
        self._value = value

    def getInfo(self):
        return self._value


class FakeImage:
    """
    numpy-backed stand-in for the subset of ee.Image used by the pipeline.
    Binary operations act on the first band of each operand, like the
    single-band images the pipeline builds.
    """

    def __init__(self, bands, mask=None):
        self.bands = {k: np.asarray(v, dtype=float) for k, v in bands.items()}
        shape = next(iter(self.bands.values())).shape
        self.mask = np.ones(shape, dtype=bool) if mask is None else np.asarray(mask, bool)

    # -- helpers --
    def values(self, name=None):
        name = name or next(iter(self.bands))
        return self.bands[name]

    def _first(self):
        return next(iter(self.bands.items()))

    def _binary(self, other, op):
        name, a = self._first()
        if isinstance(other, FakeImage):
            _, b = other._first()
            mask = self.mask & other.mask
        else:
            b = other
            mask = self.mask
        with np.errstate(divide='ignore', invalid='ignore'):
            out = op(a, b)
        return FakeImage({name: np.asarray(out, dtype=float)}, mask)

    # -- band handling --
    def select(self, selectors, new_names=None):
        if isinstance(selectors, str):
            selectors = [selectors]
        bands = {}
        for i, sel in enumerate(selectors):
            key = new_names[i] if new_names else sel
            bands[key] = self.bands[sel]
        return FakeImage(bands, self.mask)

    def rename(self, *names):
        if len(names) == 1 and isinstance(names[0], (list, tuple)):
            names = names[0]
        return FakeImage(dict(zip(names, self.bands.values())), self.mask)

    def addBands(self, others):
        if isinstance(others, FakeImage):
            others = [others]
        bands = dict(self.bands)
        mask = self.mask.copy()
        for other in others:
            bands.update(other.bands)
            mask &= other.mask
        return FakeImage(bands, mask)

    def bandNames(self):
        return _Info(list(self.bands))

    # -- arithmetic / comparison --
    def add(self, other):
        return self._binary(other, np.add)

    def subtract(self, other):
        return self._binary(other, np.subtract)

    def multiply(self, other):
        return self._binary(other, np.multiply)

    def divide(self, other):
        return self._binary(other, np.divide)

    def gt(self, other):
        return self._binary(other, lambda a, b: (a > b).astype(float))

    def gte(self, other):
        return self._binary(other, lambda a, b: (a >= b).astype(float))

    def lt(self, other):
        return self._binary(other, lambda a, b: (a < b).astype(float))

    def eq(self, other):
        return self._binary(other, lambda a, b: (a == b).astype(float))

    def And(self, other):
        return self._binary(other, lambda a, b: ((a != 0) & (b != 0)).astype(float))

    def Or(self, other):
        return self._binary(other, lambda a, b: ((a != 0) | (b != 0)).astype(float))

    def log10(self):
        name, a = self._first()
        return FakeImage({name: np.log10(a)}, self.mask)

    def int32(self):
        return FakeImage({k: np.trunc(v) for k, v in self.bands.items()}, self.mask)

    def uint8(self):
        return FakeImage({k: np.trunc(v) for k, v in self.bands.items()}, self.mask)

    def normalizedDifference(self, bands):
        a, b = self.bands[bands[0]], self.bands[bands[1]]
        return FakeImage({'nd': (a - b) / (a + b)}, self.mask)

    # -- masks --
    def updateMask(self, other):
        _, m = other._first()
        return FakeImage(self.bands, self.mask & other.mask & (m != 0))

    def unmask(self, value=0):
        bands = {k: np.where(self.mask, v, value) for k, v in self.bands.items()}
        return FakeImage(bands)

    def glcmTexture(self, size=1, average=True):
        shape = self.mask.shape
        bands = {f'{b}_{m}': np.zeros(shape) for b in self.bands for m in GLCM_OUTPUTS}
        return FakeImage(bands, self.mask)


@pytest.fixture
def fake_image():
    return FakeImage


@pytest.fixture(autouse=True)
def _tmp_log(tmp_path, monkeypatch):
    from scripts import utils
    monkeypatch.setattr(utils, 'LOG_PATH', str(tmp_path / 'logs' / 'pipeline.log'))
    monkeypatch.setattr(utils, 'OUTPUT_DIR', str(tmp_path / 'outputs'))


@pytest.fixture
def load_stage():
    def _load(name):
        return importlib.import_module(f'scripts.{name}')
    return _load
