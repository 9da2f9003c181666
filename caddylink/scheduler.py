# caddylink/scheduler.py
import os
import atexit
import logging
import socket
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from caddylink.utils.market_config_loader import MarketConfigLoader

logger = logging.getLogger(__name__)
logging.getLogger('apscheduler').setLevel(logging.INFO)

# 全域變數，用於持有 Socket 鎖，防止被垃圾回收關閉
_scheduler_lock_socket = None

# 專用的鎖定 Port
LOCK_PORT = 49510

def init_scheduler(app):
    """
    初始化排程器
    使用 Socket Bind 機制確保在多進程環境 (如 Flask Debug Mode) 下，
    只有一個進程能啟動排程器 (Singleton)。
    """
    global _scheduler_lock_socket

    try:
        _scheduler_lock_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        # 如果這個 Port 已經被綁定 (代表另一個進程已經啟動了排程器)，這裡會拋出異常
        _scheduler_lock_socket.bind(('127.0.0.1', LOCK_PORT))
    except OSError:
        logger.info("[Scheduler] Process %s skipped (lock held elsewhere).", os.getpid())
        return None

    # coalesce: 錯過多次執行時合併為一次
    job_defaults = {
        'coalesce': True,
        'max_instances': 1,
        'misfire_grace_time': 3600
    }

    scheduler = BackgroundScheduler(job_defaults=job_defaults)

    # 定義需要 App Context 的包裝函式
    def run_job_with_app_context(func):
        with app.app_context():
            try:
                func()
            except Exception:
                logger.exception("[Scheduler] Job %s failed", getattr(func, '__name__', func))

    # 延遲 import 避免循環引用
    from caddylink.services.settlement_service import SettlementService
    from caddylink.services.contract_service import ContractService

    # --- Job 1: 違約金結算佇列 ---
    interval = MarketConfigLoader.get('scheduler.settlement_interval_seconds', 10)
    scheduler.add_job(
        func=lambda: run_job_with_app_context(SettlementService.process_due_jobs),
        trigger=IntervalTrigger(seconds=interval),
        id='settlement_worker',
        name='Penalty Settlement Worker',
        replace_existing=True
    )

    # --- Job 2: 每日合約到期結案 ---
    scheduler.add_job(
        func=lambda: run_job_with_app_context(ContractService.complete_expired),
        trigger=CronTrigger(
            hour=MarketConfigLoader.get('scheduler.expiry_hour', 0),
            minute=MarketConfigLoader.get('scheduler.expiry_minute', 10)
        ),
        id='contract_expiry',
        name='Daily Contract Expiry',
        replace_existing=True
    )

    scheduler.start()
    logger.info("[Scheduler] CaddyLink scheduler started (PID: %s) on port %s", os.getpid(), LOCK_PORT)

    # 註冊關閉事件
    atexit.register(lambda: scheduler.shutdown())
    return scheduler
