# tests/test_market_config.py
import copy
import os

import pytest
import yaml

from caddylink.exceptions import ConfigurationError
from caddylink.utils.market_config_loader import (
    MarketConfigLoader, read_market_config, validate_market_config,
)

SHIPPED = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                       'config', 'market_config.yaml')


@pytest.fixture
def shipped():
    with open(SHIPPED, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f)


@pytest.fixture
def config_path(app):
    """切換 MARKET_CONFIG_PATH，測試結束後還原成預設設定檔"""

    def _use(path):
        app.config['MARKET_CONFIG_PATH'] = str(path)
        return MarketConfigLoader.reload()

    yield _use
    app.config['MARKET_CONFIG_PATH'] = None
    MarketConfigLoader.reload()


def _write(tmp_path, cfg):
    path = tmp_path / 'market_config.yaml'
    path.write_text(yaml.safe_dump(cfg, allow_unicode=True), encoding='utf-8')
    return path


def test_shipped_config_is_valid():
    cfg = read_market_config(SHIPPED)
    assert cfg['cancellation']['default_penalty_percent'] == 20


def test_missing_section(shipped):
    del shipped['settlement']
    with pytest.raises(ConfigurationError) as exc:
        validate_market_config(shipped)
    assert exc.value.errors == ['missing section: settlement']


def test_tier_gap_is_reported(shipped):
    shipped['payout']['tiers'][1]['rank_from'] = 12
    with pytest.raises(ConfigurationError) as exc:
        validate_market_config(shipped)
    assert exc.value.errors[0].startswith('payout.tiers:')


@pytest.mark.parametrize('section, key, value', [
    ('cancellation', 'default_penalty_percent', 150),
    ('cancellation', 'default_penalty_percent', 'twenty'),
    ('settlement', 'max_attempts', 0),
    ('settlement', 'batch_size', 2.5),
    ('settlement', 'backoff_seconds', -1),
])
def test_numeric_settings_are_checked(shipped, section, key, value):
    shipped[section][key] = value
    with pytest.raises(ConfigurationError) as exc:
        validate_market_config(shipped)
    assert any(e.startswith(f'{section}.{key}') for e in exc.value.errors)


def test_every_problem_is_listed(shipped):
    shipped['settlement']['max_attempts'] = 0
    del shipped['contract_templates']['amateur_caddy']
    shipped['contract_templates']['tour_pro_sponsor']['expenses'] = 'none'

    with pytest.raises(ConfigurationError) as exc:
        validate_market_config(shipped)

    assert len(exc.value.errors) == 3
    assert 'contract_templates.amateur_caddy is missing' in exc.value.errors


def test_template_duration_must_be_positive(shipped):
    shipped['contract_templates']['tour_pro_caddy']['conditions']['duration'] = 0
    with pytest.raises(ConfigurationError):
        validate_market_config(shipped)


def test_bad_yaml(tmp_path):
    path = tmp_path / 'broken.yaml'
    path.write_text('payout: [unclosed', encoding='utf-8')
    with pytest.raises(ConfigurationError):
        read_market_config(path)


def test_reload_uses_configured_path(shipped, tmp_path, config_path):
    custom = copy.deepcopy(shipped)
    custom['cancellation']['default_penalty_percent'] = 35

    config_path(_write(tmp_path, custom))

    assert MarketConfigLoader.get('cancellation.default_penalty_percent') == 35
    assert MarketConfigLoader.path == str(tmp_path / 'market_config.yaml')


def test_invalid_file_fails_at_load(shipped, tmp_path, config_path):
    shipped['payout']['tiers'] = [{'rank_from': 1, 'rank_to': 'ten', 'rate': 10}]
    with pytest.raises(ConfigurationError):
        config_path(_write(tmp_path, shipped))


def test_dotted_get_defaults():
    assert MarketConfigLoader.get('settlement.no_such_key', 7) == 7
    assert MarketConfigLoader.get('system.active_user_threshold_days') == 7
