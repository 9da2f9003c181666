# caddylink/utils/market_config_loader.py
"""
業務規則設定檔 (config/market_config.yaml) 載入器

搜尋順序:
1. Flask 設定 / 環境變數 'MARKET_CONFIG_PATH'
2. 專案根目錄下的 config/market_config.yaml
3. 當前工作目錄下的 config/market_config.yaml

載入時一併檢查內容，格式錯誤直接拋出 ConfigurationError，
不讓錯誤的費率表或重試策略等到結算、分潤計算時才被發現:
- payout / cancellation / settlement / contract_templates 區段必須存在
- 分潤費率表從第 1 名起連續 (與 PayoutCalculator 使用同一套檢查)
- 違約金預設比例介於 0~100，結算重試參數為正數
- 每種合約種類都有範本，且條款結構完整
"""
import logging
import os
import yaml
from flask import current_app, has_app_context

from caddylink.exceptions import ConfigurationError, ValidationError
from caddylink.models.contract import KIND_PARTIES

logger = logging.getLogger(__name__)

CONFIG_RELATIVE_PATH = os.path.join('config', 'market_config.yaml')

REQUIRED_SECTIONS = ('payout', 'cancellation', 'settlement', 'contract_templates')

# 合約範本內必須是巢狀物件的條款
TEMPLATE_SECTIONS = ('win_bonus', 'tournament_bonus', 'expenses', 'conditions')

# 區段.鍵 -> (最小值, 最大值, 是否須為整數)；未設定時由程式預設值補上
NUMERIC_SETTINGS = {
    'cancellation.default_penalty_percent': (0, 100, False),
    'cancellation.settlement_delay_seconds': (0, None, False),
    'settlement.max_attempts': (1, None, True),
    'settlement.backoff_seconds': (0, None, False),
    'settlement.batch_size': (1, None, True),
    'settlement.running_timeout_seconds': (1, None, False),
}


def _check_numeric(cfg, errors):
    for key_path, (minimum, maximum, integer) in NUMERIC_SETTINGS.items():
        section, key = key_path.split('.')
        value = cfg[section].get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int if integer else (int, float)):
            errors.append(f'{key_path} must be {"an integer" if integer else "a number"}')
        elif value < minimum or (maximum is not None and value > maximum):
            upper = f' and <= {maximum}' if maximum is not None else ''
            errors.append(f'{key_path} must be >= {minimum}{upper}')


def _check_templates(templates, errors):
    for kind in KIND_PARTIES:
        terms = templates.get(kind)
        if not isinstance(terms, dict):
            errors.append(f'contract_templates.{kind} is missing')
            continue
        for section in TEMPLATE_SECTIONS:
            if not isinstance(terms.get(section), dict):
                errors.append(f'contract_templates.{kind}.{section} must be a mapping')
        conditions = terms.get('conditions')
        duration = conditions.get('duration') if isinstance(conditions, dict) else None
        if isinstance(duration, bool) or not isinstance(duration, int) or duration < 1:
            errors.append(f'contract_templates.{kind}.conditions.duration must be a positive integer')


def validate_market_config(cfg):
    """檢查設定內容，回傳原本的 dict；有誤時一次列出全部問題"""
    if not isinstance(cfg, dict):
        raise ConfigurationError('Market config must be a mapping')

    missing = [f'missing section: {s}' for s in REQUIRED_SECTIONS if not isinstance(cfg.get(s), dict)]
    if missing:
        raise ConfigurationError('Invalid market config', errors=missing)

    # 延遲 import: calculator 本身也透過本模組讀取費率表
    from caddylink.utils.calculator import PayoutCalculator

    errors = []
    try:
        PayoutCalculator.validate_tiers(cfg['payout'].get('tiers'))
    except ValidationError as e:
        errors.append(f'payout.tiers: {e.message}')

    _check_numeric(cfg, errors)
    _check_templates(cfg['contract_templates'], errors)

    if errors:
        raise ConfigurationError('Invalid market config', errors=errors)
    return cfg


def read_market_config(path):
    """讀取並檢查單一設定檔 (不影響 MarketConfigLoader 的快取)"""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            cfg = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f'Error parsing YAML config at {path}: {e}')
    return validate_market_config(cfg or {})


def _configured_path():
    if has_app_context() and current_app.config.get('MARKET_CONFIG_PATH'):
        return current_app.config['MARKET_CONFIG_PATH']
    return os.getenv('MARKET_CONFIG_PATH')


def _candidate_paths():
    configured = _configured_path()
    if configured:
        path = os.path.abspath(configured)
        if os.path.exists(path):
            yield path
        else:
            logger.warning("[Config] MARKET_CONFIG_PATH (%s) 找不到檔案，將嘗試自動搜尋。", configured)

    # 往上三層: caddylink/utils/market_config_loader.py -> root
    project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    yield os.path.join(project_root, CONFIG_RELATIVE_PATH)
    yield os.path.join(os.getcwd(), CONFIG_RELATIVE_PATH)


class MarketConfigLoader:
    """已檢查過的業務規則設定 (Singleton)"""
    _config = None
    path = None

    @classmethod
    def load(cls):
        if cls._config is None:
            path = next((p for p in _candidate_paths() if os.path.exists(p)), None)
            if path is None:
                raise FileNotFoundError(
                    "Market config file not found. "
                    "Set 'MARKET_CONFIG_PATH' or ensure 'config/market_config.yaml' exists in project root."
                )
            cls._config = read_market_config(path)
            cls.path = path
            logger.info("[Config] Market config loaded from %s", path)
        return cls._config

    @classmethod
    def get(cls, key_path=None, default=None):
        """
        取得設定值，支援點號路徑存取。
        Example: MarketConfigLoader.get('cancellation.default_penalty_percent', 20)
        設定檔不存在時回傳 default；設定檔格式錯誤則拋出 ConfigurationError。
        """
        try:
            cfg = cls.load()
        except FileNotFoundError as e:
            logger.error("[Config] %s", e)
            return default

        if not key_path:
            return cfg

        val = cfg
        for k in key_path.split('.'):
            if not isinstance(val, dict) or val.get(k) is None:
                return default
            val = val[k]
        return val

    @classmethod
    def reload(cls):
        """強制重新讀取 (設定檔變更或測試切換設定時使用)"""
        cls._config = None
        cls.path = None
        return cls.load()
