from unittest import mock

import numpy as np
import pytest

from gee_config import FEATURE_BANDS, TEXTURE_BANDS, COMMON_OPTICAL_BANDS


@pytest.fixture
def radar(load_stage):
    return load_stage('02_radar_composite')


@pytest.fixture
def stack_mod(load_stage):
    return load_stage('03_feature_stack')


def _optical(fake_image):
    return fake_image({
        'B1': [0.05, 0.04],
        'B2': [0.08, 0.06],
        'B3': [0.06, 0.10],
        'B4': [0.40, 0.25],
        'B5': [0.20, 0.22],
        'B7': [0.10, 0.15],
    })


# ============================================================
# RADAR
# ============================================================

def test_gamma_naught_decibels(radar, fake_image):
    dn = fake_image({'HH': [10000.0, 1000.0]})
    out = radar.to_gamma_naught(dn)
    np.testing.assert_allclose(out.values(), [-3.0, -23.0])


def test_radar_composite_bands_and_ratio_of_decibels(radar, fake_image):
    mosaic = fake_image({'HH': [10000.0, 3000.0], 'HV': [1000.0, 2000.0]})
    comp = radar.build_radar_composite(2010, mosaic=mosaic)

    assert list(comp.bands) == ['HH', 'HV', 'RAT']
    hh = 10 * np.log10(np.array([10000.0, 3000.0]) ** 2) - 83
    hv = 10 * np.log10(np.array([1000.0, 2000.0]) ** 2) - 83
    np.testing.assert_allclose(comp.values('HH'), hh)
    np.testing.assert_allclose(comp.values('HV'), hv)
    np.testing.assert_allclose(comp.values('RAT'), hh / hv)
    # not the log of the ratio
    assert not np.allclose(comp.values('RAT'), hh - hv)


def test_load_palsar_mosaic_path(radar, monkeypatch):
    mock_ee = mock.MagicMock()
    monkeypatch.setattr(radar, 'ee', mock_ee)
    radar.load_palsar_mosaic(2015)
    mock_ee.Image.assert_called_once_with('JAXA/ALOS/PALSAR/YEARLY/SAR/2015')
    mock_ee.Image.return_value.select.assert_called_once_with(['HH', 'HV'])


def test_radar_asset_name(radar):
    assert radar.composite_asset_name(2010) == 'PALSAR_Composite_NNegros_2010'


# ============================================================
# INDICES
# ============================================================

def test_spectral_indices(stack_mod, fake_image):
    img = _optical(fake_image)
    b = {k: img.values(k) for k in img.bands}

    np.testing.assert_allclose(
        stack_mod.evi(img).values(),
        2.5 * (b['B4'] - b['B3']) / (b['B4'] + 6 * b['B3'] - 7.5 * b['B1'] + 1))
    np.testing.assert_allclose(
        stack_mod.lswi(img).values(), (b['B4'] - b['B5']) / (b['B4'] + b['B5']))
    np.testing.assert_allclose(
        stack_mod.ndti(img).values(), (b['B5'] - b['B7']) / (b['B5'] + b['B7']))
    np.testing.assert_allclose(
        stack_mod.ndvi(img).values(), (b['B4'] - b['B3']) / (b['B4'] + b['B3']))
    np.testing.assert_allclose(
        stack_mod.satvi(img).values(),
        ((b['B5'] - b['B3']) / (b['B5'] + b['B3'] + 0.1)) * (1.1 - b['B7'] / 2))


def test_add_spectral_indices_names(stack_mod, fake_image):
    out = stack_mod.add_spectral_indices(_optical(fake_image))
    assert list(out.bands)[-5:] == ['EVI', 'LSWI', 'NDTI', 'NDVI', 'SATVI']


def test_rescale_for_texture_truncates_to_integers(stack_mod, fake_image):
    radar = fake_image({'HH': [-7.6543, -12.0001], 'HV': [-15.5, -20.25], 'RAT': [0.5, 0.6]})
    out = stack_mod.rescale_for_texture(radar)
    assert list(out.bands) == ['HH', 'HV']
    np.testing.assert_array_equal(out.values('HH'), [-7654, -12000])
    np.testing.assert_array_equal(out.values('HV'), [-15500, -20250])


def test_compute_textures_uses_3x3_averaged_glcm(stack_mod):
    radar = mock.MagicMock()
    stack_mod.compute_textures(radar)
    dual = radar.select.return_value.multiply.return_value.int32.return_value \
        .rename.return_value.addBands.return_value
    dual.glcmTexture.assert_called_once_with(size=1, average=True)
    dual.glcmTexture.return_value.select.assert_called_once_with(TEXTURE_BANDS)


# ============================================================
# STACK
# ============================================================

def test_assemble_feature_stack_band_order(stack_mod, fake_image):
    optical = _optical(fake_image)
    radar = fake_image({'HH': [-8.0, -9.0], 'HV': [-15.0, -16.0], 'RAT': [0.53, 0.56]})
    stack = stack_mod.assemble_feature_stack(optical, radar, validate=True)
    assert list(stack.bands) == FEATURE_BANDS
    assert len(FEATURE_BANDS) == 30


def test_load_composites_renames_landsat8_bands(stack_mod, monkeypatch):
    mock_ee = mock.MagicMock()
    checked = []
    monkeypatch.setattr(stack_mod, 'ee', mock_ee)
    monkeypatch.setattr(stack_mod, 'require_asset', checked.append)

    stack_mod.load_composites(2015)

    assert checked == [
        'users/dondealban/Landsat_Composite_NNegros_2015',
        'users/dondealban/PALSAR_Composite_NNegros_2015',
    ]
    mock_ee.Image.return_value.select.assert_called_once_with(
        ['B2', 'B3', 'B4', 'B5', 'B6', 'B7'], COMMON_OPTICAL_BANDS)


def test_assemble_feature_stack_rejects_missing_radar_band(stack_mod, fake_image):
    from scripts.utils import MissingBandsError
    radar = fake_image({'HH': [-8.0, -9.0], 'RAT': [0.53, 0.56]})

    with pytest.raises(MissingBandsError) as exc:
        stack_mod.assemble_feature_stack(_optical(fake_image), radar)
    assert exc.value.missing == ['HV']


def test_build_feature_stack_validates_by_default(stack_mod, fake_image, monkeypatch):
    from scripts.utils import MissingBandsError
    optical = fake_image({'B1': [0.05], 'B2': [0.08], 'B3': [0.06], 'B4': [0.4]})
    radar = fake_image({'HH': [-8.0], 'HV': [-15.0], 'RAT': [0.53]})
    monkeypatch.setattr(stack_mod, 'load_composites',
                        lambda epoch, check_assets=True: (optical, radar))

    with pytest.raises(MissingBandsError) as exc:
        stack_mod.build_feature_stack(2010)
    assert exc.value.missing == ['B5', 'B7']
