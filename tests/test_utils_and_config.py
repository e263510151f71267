from unittest import mock

import ee
import pytest

import gee_config
from scripts import utils


# ============================================================
# CONFIG
# ============================================================

def test_feature_bands_complete_and_unique():
    assert len(gee_config.TEXTURE_BANDS) == 16
    assert len(gee_config.FEATURE_BANDS) == 30
    assert len(set(gee_config.FEATURE_BANDS)) == 30
    assert gee_config.FEATURE_BANDS[:6] == gee_config.COMMON_OPTICAL_BANDS


def test_sensors_share_band_count_with_common_names():
    for cfg in gee_config.OPTICAL_SENSORS.values():
        assert len(cfg['bands']) == len(gee_config.COMMON_OPTICAL_BANDS)
        assert set(cfg['roles'].values()) == set(cfg['bands'])


def test_epochs_reference_known_sensors_and_years():
    for info in gee_config.EPOCHS.values():
        assert info['optical'] in gee_config.OPTICAL_SENSORS
        assert info['radar_year'] in gee_config.RADAR_YEARS


def test_class_table_and_palette():
    assert sorted(gee_config.LC_CLASSES) == [0, 1, 2, 3, 4, 5]
    vis = utils.get_classification_vis_params()
    assert vis['min'] == 0 and vis['max'] == 5
    assert vis['palette'] == ['ffffff', '246a24', 'ff0000', 'a65400', '66ccff', 'ffff66']


# ============================================================
# VALIDATION
# ============================================================

def test_require_bands(fake_image):
    img = fake_image({'B1': [1.0], 'HH': [2.0]})
    assert utils.require_bands(img, ['HH']) == ['B1', 'HH']
    with pytest.raises(utils.MissingBandsError) as exc:
        utils.require_bands(img, ['HH', 'HV', 'RAT'])
    assert exc.value.missing == ['HV', 'RAT']


def test_require_asset_wraps_engine_error(monkeypatch):
    def missing(asset_id):
        raise ee.EEException(f"Asset '{asset_id}' not found.")

    monkeypatch.setattr(ee.data, 'getAsset', missing)
    with pytest.raises(utils.AssetNotFoundError) as exc:
        utils.require_asset('users/x/nothing')
    assert exc.value.asset_id == 'users/x/nothing'
    assert isinstance(exc.value, utils.PipelineError)


def test_require_asset_returns_metadata(monkeypatch):
    monkeypatch.setattr(ee.data, 'getAsset', lambda asset_id: {'id': asset_id, 'type': 'IMAGE'})
    assert utils.require_asset('users/x/img')['type'] == 'IMAGE'


# ============================================================
# EXPORT / LOG
# ============================================================

def test_export_image_to_drive_parameters(monkeypatch):
    mock_ee = mock.MagicMock()
    monkeypatch.setattr(utils, 'ee', mock_ee)

    task = utils.export_image_to_drive('img', 'Classification_NNegros_2015', 'GEE', 'box')

    mock_ee.batch.Export.image.toDrive.assert_called_once_with(
        image='img', description='Classification_NNegros_2015', folder='GEE',
        region='box', scale=30, maxPixels=3e8, crs='EPSG:4326')
    task.start.assert_called_once_with()


def test_export_image_to_asset_parameters(monkeypatch):
    mock_ee = mock.MagicMock()
    monkeypatch.setattr(utils, 'ee', mock_ee)

    utils.export_image_to_asset('img', 'PALSAR_Composite_NNegros_2010',
                                'users/dondealban/PALSAR_Composite_NNegros_2010', 'box')

    kwargs = mock_ee.batch.Export.image.toAsset.call_args.kwargs
    assert kwargs['assetId'] == 'users/dondealban/PALSAR_Composite_NNegros_2010'
    assert kwargs['scale'] == 30
    assert kwargs['maxPixels'] == 3e8


def test_log_appends_timestamped_lines(tmp_path, capsys):
    utils.log('hola')
    utils.log('mundo')
    with open(utils.LOG_PATH) as f:
        lines = f.read().splitlines()
    assert [l.split('] ', 1)[1] for l in lines] == ['hola', 'mundo']
    assert 'hola' in capsys.readouterr().out


def test_insufficient_samples_message():
    err = utils.InsufficientSamplesError('training', {3: 1}, 5)
    assert 'training' in str(err) and '5' in str(err)
