# config.py
import os
from dotenv import load_dotenv

# 取得目前檔案的目錄
basedir = os.path.abspath(os.path.dirname(__file__))

# 載入 .env 檔案
load_dotenv(os.path.join(basedir, '.env'))

class Config:
    # 1. 安全密鑰
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-fallback-key'

    # 2. 資料庫連線設定
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'caddylink.db')

    # 3. 效能設定
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # 4. 排程器 (結算佇列 / 合約到期)
    SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'true').lower() == 'true'

    # 5. 日誌等級
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # 6. 業務規則設定檔 (費率表、違約金預設值、重試策略)
    MARKET_CONFIG_PATH = os.environ.get('MARKET_CONFIG_PATH')

class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SCHEDULER_ENABLED = False
    LOG_LEVEL = 'WARNING'
