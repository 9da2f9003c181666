# caddylink/services/settlement_service.py
"""
違約金背景結算 (非同步階段)

SettlementJob 佇列存放在資料庫，由排程器定期呼叫 process_due_jobs。
- 以條件式 UPDATE 認領工作 (queued -> running)，同一工作不會被兩個 worker 同時處理
- 扣款以 contract_id 作為冪等鍵，重送不會重複扣款
- 失敗時以指數退避重試，超過上限後標記為 failed，等待營運人員 resubmit
- 合約本身維持 cancelled，不因扣款失敗而回復
"""
import logging
from datetime import datetime, timedelta
from flask import current_app

from caddylink import db
from caddylink.exceptions import InvalidStateError, NotFoundError, SettlementFailure
from caddylink.models.contract import (
    CANCEL_COMPLETED, CANCEL_FAILED, CANCEL_PENDING, CANCEL_PROCESSING
)
from caddylink.models.settlement import (
    SettlementJob, JOB_DONE, JOB_FAILED, JOB_QUEUED, JOB_RUNNING
)
from caddylink.services.notification_service import party_user_id
from caddylink.utils.market_config_loader import MarketConfigLoader

logger = logging.getLogger(__name__)


class SettlementService:

    @staticmethod
    def _gateway():
        return current_app.extensions['payment_gateway']

    @staticmethod
    def _notifier():
        return current_app.extensions['notifier']

    @staticmethod
    def recover_stale_jobs(now=None):
        """
        將卡在 running 過久的工作放回佇列 (例如 worker 行程中途結束)
        重送安全: 閘道以冪等鍵去重。
        """
        now = now or datetime.utcnow()
        timeout = MarketConfigLoader.get('settlement.running_timeout_seconds', 300)
        rows = SettlementJob.query.filter(
            SettlementJob.status == JOB_RUNNING,
            SettlementJob.updated_at <= now - timedelta(seconds=timeout)
        ).update({'status': JOB_QUEUED, 'next_run_at': now, 'updated_at': now}, synchronize_session=False)
        db.session.commit()
        if rows:
            logger.warning("[Settlement] Re-queued %d stale running jobs", rows)
        return rows

    @staticmethod
    def process_due_jobs(now=None):
        """
        [系統排程] 處理到期的結算工作
        回傳各結果的件數統計。
        """
        now = now or datetime.utcnow()
        batch_size = MarketConfigLoader.get('settlement.batch_size', 50)
        stats = {'processed': 0, 'completed': 0, 'retried': 0, 'failed': 0}

        SettlementService.recover_stale_jobs(now)

        due_ids = [
            job.id for job in SettlementJob.query.filter(
                SettlementJob.status == JOB_QUEUED,
                SettlementJob.next_run_at <= now
            ).order_by(SettlementJob.next_run_at).limit(batch_size).all()
        ]

        for job_id in due_ids:
            outcome = SettlementService.run_job(job_id, now)
            if outcome:
                stats['processed'] += 1
                stats[outcome] += 1

        if stats['processed']:
            logger.info("[Settlement] Batch done: %s", stats)
        return stats

    @staticmethod
    def _claim(job_id, now):
        rows = SettlementJob.query.filter_by(id=job_id, status=JOB_QUEUED).update(
            {
                'status': JOB_RUNNING,
                'attempts': SettlementJob.attempts + 1,
                'updated_at': now,
            },
            synchronize_session=False
        )
        db.session.commit()
        return rows == 1

    @staticmethod
    def run_job(job_id, now=None):
        """處理單一結算工作，回傳 'completed' / 'retried' / 'failed'，未認領成功則回傳 None"""
        now = now or datetime.utcnow()
        if not SettlementService._claim(job_id, now):
            return None

        job = db.session.get(SettlementJob, job_id)
        cancellation = job.cancellation
        contract = cancellation.contract

        cancellation.status = CANCEL_PROCESSING
        db.session.commit()

        payee_id = party_user_id(contract, cancellation.beneficiary)
        logger.info(
            "[Settlement] %s attempt %d/%d: %s -> %s (user %s)",
            contract.id, job.attempts, job.max_attempts,
            f'{cancellation.penalty_amount:,}', cancellation.beneficiary, payee_id
        )

        try:
            result = SettlementService._gateway().charge(
                cancellation.penalty_amount,
                f'user:{payee_id}',
                idempotency_key=job.idempotency_key,
            )
        except Exception as e:
            return SettlementService._record_failure(job, cancellation, e, now)

        cancellation.status = CANCEL_COMPLETED
        cancellation.payment_id = result.payment_id
        cancellation.add_note(f'위약금 결제 완료 - {cancellation.penalty_amount:,}원')
        job.status = JOB_DONE
        job.last_error = None
        db.session.commit()
        logger.info("[Settlement] %s completed (%s)", contract.id, result.payment_id)

        SettlementService._dispatch_notifications(contract, cancellation)
        return 'completed'

    @staticmethod
    def _record_failure(job, cancellation, error, now):
        failure = SettlementFailure(
            f'Penalty payment failed for {job.contract_id}: {error}',
            contract_id=job.contract_id, attempt=job.attempts
        )
        job.last_error = failure.message

        if job.attempts >= job.max_attempts:
            job.status = JOB_FAILED
            cancellation.status = CANCEL_FAILED
            cancellation.add_note('위약금 결제 실패 - 운영자 확인 필요')
            db.session.commit()
            logger.error("[Settlement] %s failed permanently after %d attempts: %s",
                         job.contract_id, job.attempts, error)
            return 'failed'

        backoff = MarketConfigLoader.get('settlement.backoff_seconds', 30)
        job.status = JOB_QUEUED
        job.next_run_at = now + timedelta(seconds=backoff * (2 ** (job.attempts - 1)))
        db.session.commit()
        logger.warning("[Settlement] %s attempt %d failed, retry at %s: %s",
                       job.contract_id, job.attempts, job.next_run_at.isoformat(), error)
        return 'retried'

    @staticmethod
    def _dispatch_notifications(contract, cancellation):
        """通知失敗不影響結算結果"""
        try:
            SettlementService._notifier().notify(contract, cancellation)
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception("[Settlement] Notification dispatch failed for %s", contract.id)

    @staticmethod
    def list_jobs(status=None):
        query = SettlementJob.query
        if status:
            query = query.filter(SettlementJob.status == status)
        return query.order_by(SettlementJob.created_at.desc()).all()

    @staticmethod
    def resubmit(contract_id, now=None):
        """營運人員重新送出失敗的結算"""
        now = now or datetime.utcnow()
        job = SettlementJob.query.filter_by(idempotency_key=contract_id).first()
        if not job:
            raise NotFoundError(f'No settlement for contract {contract_id}')
        if job.status != JOB_FAILED:
            raise InvalidStateError(
                f'Only failed settlements can be resubmitted (current: {job.status})',
                current_status=job.status
            )

        job.status = JOB_QUEUED
        job.attempts = 0
        job.next_run_at = now
        job.last_error = None
        job.cancellation.status = CANCEL_PENDING
        job.cancellation.add_note('위약금 결제 재요청')
        db.session.commit()
        logger.info("[Settlement] %s resubmitted", contract_id)
        return job
