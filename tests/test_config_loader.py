import os

import pytest

from config import CONFIG_ENV_PREFIX, flatten_to_env, get_config_section, load_config, reload_config
from reader_service.services.reader.config_schema import load_reader_config


def _clear_env(prefix: str):
    to_delete = [key for key in os.environ if key.startswith(prefix)]
    for key in to_delete:
        del os.environ[key]


@pytest.fixture(autouse=True)
def reset_config_env():
    original_env = os.environ.copy()
    try:
        yield
    finally:
        _clear_env(CONFIG_ENV_PREFIX)
        os.environ.clear()
        os.environ.update(original_env)
        reload_config()


def test_load_config_includes_defaults():
    reload_config()
    config = load_config()
    assert config['reader']['default_translation'] == 'jps-1985'
    assert config['services']['sefaria_api_url'] == 'https://www.sefaria.org/api'
    assert config['reader']['sync']['sentinel_margin_px'] == 1200


def test_env_override_via_prefix():
    os.environ[f'{CONFIG_ENV_PREFIX}READER__DEFAULT_TRANSLATION'] = 'jps-1917'
    os.environ[f'{CONFIG_ENV_PREFIX}READER__SYNC__SENTINEL_MARGIN_PX'] = '800'
    os.environ[f'{CONFIG_ENV_PREFIX}READER__CROSS_BOOK_COLLECTIONS'] = 'Tanakh,Mishnah'
    reload_config()
    config = load_config()
    assert config['reader']['default_translation'] == 'jps-1917'
    assert config['reader']['sync']['sentinel_margin_px'] == 800
    # Sibling keys survive a nested override.
    assert config['reader']['sync']['visibility_top_percent'] == 20

    reader = load_reader_config()
    assert reader.cross_book_collections == ['tanakh', 'mishnah']
    assert reader.allows_cross_book('Mishnah')
    assert not reader.allows_cross_book('Talmud')


def test_get_config_section():
    reload_config()
    assert get_config_section('reader.translations')['jps-1917'].startswith('The Holy Scriptures')
    assert get_config_section('reader.missing', 'fallback') == 'fallback'
    assert get_config_section('reader.default_translation.deeper', 'fallback') == 'fallback'


def test_reader_config_overrides_and_version_titles():
    reload_config()
    reader = load_reader_config({'default_translation': 'jps-1917'})
    assert reader.default_translation == 'jps-1917'
    assert reader.version_title('sefaria-community') == 'Sefaria Community Translation'
    assert reader.version_title('unknown') == 'unknown'
    # Long opaque ids are overlaid on the default version.
    assert reader.version_title('x' * 32) == 'The Holy Scriptures: A New Translation (JPS 1917)'


def test_flatten_to_env_round_trip():
    sample = {
        'reader': {
            'default_translation': 'jps-1985',
            'cross_book_collections': ['tanakh', 'torah'],
            'sync': {
                'visibility_top_percent': 20.5,
            },
        },
        'services': {
            'redis_url': 'redis://localhost:6379/0',
        },
    }
    flattened = flatten_to_env(sample)
    assert flattened['READER__DEFAULT_TRANSLATION'] == 'jps-1985'
    assert flattened['READER__CROSS_BOOK_COLLECTIONS'] == 'tanakh,torah'
    assert flattened['READER__SYNC__VISIBILITY_TOP_PERCENT'] == '20.5'
    assert flattened['SERVICES__REDIS_URL'] == 'redis://localhost:6379/0'


def test_overrides_file_is_merged_over_defaults(tmp_path, monkeypatch):
    import config

    (tmp_path / 'defaults.toml').write_text(
        (config._CONFIG_DIR / 'defaults.toml').read_text(encoding='utf-8'), encoding='utf-8'
    )
    (tmp_path / 'overrides.toml').write_text('[reader.sync]\nsentinel_margin_px = 600\n', encoding='utf-8')
    monkeypatch.setattr(config, '_CONFIG_DIR', tmp_path)

    merged = reload_config()
    assert merged['reader']['sync']['sentinel_margin_px'] == 600
    assert merged['reader']['sync']['visibility_bottom_percent'] == 60
    assert merged['reader']['default_translation'] == 'jps-1985'


def test_broken_overrides_file_is_skipped(tmp_path, monkeypatch):
    import config

    (tmp_path / 'defaults.toml').write_text('[reader]\ndefault_translation = "jps-1985"\n', encoding='utf-8')
    (tmp_path / 'overrides.toml').write_text('[reader\nbroken', encoding='utf-8')
    monkeypatch.setattr(config, '_CONFIG_DIR', tmp_path)

    assert reload_config()['reader']['default_translation'] == 'jps-1985'
