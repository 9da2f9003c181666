# caddylink/services/cancellation_service.py
"""
合約解約流程 (同步階段)

1. 檢查合約存在、輸入合法、狀態為 active
2. 依 (解約方, 合約種類) 查表決定違約金受領方
3. 以條件式 UPDATE (status='active' 才更新) 原子性地將合約改為 cancelled
4. 同一交易內寫入解約紀錄 (pending) 與結算工作，提交後立即回傳

實際扣款由 SettlementService 在背景處理，呼叫端不等待。
"""
import logging
from datetime import datetime, timedelta
from sqlalchemy.exc import IntegrityError

from caddylink import db
from caddylink.exceptions import (
    InvalidStateError, NotFoundError, UnsupportedCombinationError, ValidationError
)
from caddylink.models.contract import (
    Contract, ContractCancellation, CANCEL_PENDING, WHO_CANCELLED,
    KIND_TOUR_PRO_CADDY, KIND_AMATEUR_CADDY, KIND_TOUR_PRO_SPONSOR,
    STATUS_ACTIVE, STATUS_CANCELLED
)
from caddylink.models.settlement import SettlementJob, JOB_QUEUED
from caddylink.utils.calculator import compute_penalty
from caddylink.utils.market_config_loader import MarketConfigLoader

logger = logging.getLogger(__name__)

# (解約方, 合約種類) -> 違約金受領方
# 表中沒有的組合 (例如桿弟解除贊助合約) 一律拒絕
BENEFICIARY_TABLE = {
    ('golfer', KIND_TOUR_PRO_CADDY): 'caddy',
    ('golfer', KIND_AMATEUR_CADDY): 'caddy',
    ('golfer', KIND_TOUR_PRO_SPONSOR): 'sponsor',
    ('caddy', KIND_TOUR_PRO_CADDY): 'golfer',
    ('caddy', KIND_AMATEUR_CADDY): 'golfer',
    ('sponsor', KIND_TOUR_PRO_SPONSOR): 'golfer',
}

DEFAULT_PENALTY_PERCENT = 20


def determine_beneficiary(who_cancelled, contract_kind):
    beneficiary = BENEFICIARY_TABLE.get((who_cancelled, contract_kind))
    if beneficiary is None:
        raise UnsupportedCombinationError(
            f'{who_cancelled} cannot cancel a {contract_kind} contract',
            who_cancelled=who_cancelled, kind=contract_kind
        )
    return beneficiary


def _status_error(contract):
    if contract.status == STATUS_CANCELLED:
        return InvalidStateError('Contract is already cancelled', current_status=contract.status)
    return InvalidStateError('Only active contracts can be cancelled', current_status=contract.status)


class CancellationService:

    @staticmethod
    def resolve_penalty_percent(contract, penalty_percent=None):
        """未指定時使用合約約定比例，合約也沒有時使用系統預設 (20%)"""
        if penalty_percent is None:
            if contract.penalty_rate is not None:
                return contract.penalty_rate
            return MarketConfigLoader.get('cancellation.default_penalty_percent', DEFAULT_PENALTY_PERCENT)

        if isinstance(penalty_percent, bool) or not isinstance(penalty_percent, (int, float)):
            raise ValidationError('penaltyPercent must be a number')
        if penalty_percent < 0 or penalty_percent > 100:
            raise ValidationError('penaltyPercent must be between 0 and 100')
        return penalty_percent

    @staticmethod
    def cancel_contract(contract_id, who_cancelled, reason, penalty_percent=None, now=None):
        now = now or datetime.utcnow()
        logger.info("[Cancel] Request for %s by %s", contract_id, who_cancelled)

        contract = db.session.get(Contract, contract_id)
        if not contract:
            raise NotFoundError(f'Contract {contract_id} not found')

        # 1. 狀態檢查 (快速失敗; 真正的保護在下方條件式 UPDATE)
        if contract.status != STATUS_ACTIVE:
            raise _status_error(contract)

        # 2. 輸入檢查
        if who_cancelled not in WHO_CANCELLED:
            raise ValidationError(f'whoCancelled must be one of {", ".join(WHO_CANCELLED)}')
        if not isinstance(reason, str) or not reason.strip():
            raise ValidationError('reason is required')
        percent = CancellationService.resolve_penalty_percent(contract, penalty_percent)

        beneficiary = determine_beneficiary(who_cancelled, contract.kind)
        penalty_amount = compute_penalty(contract.base_salary, percent)

        # 3. Compare-and-swap: 只有仍為 active 的那一列會被更新
        rows = Contract.query.filter_by(id=contract_id, status=STATUS_ACTIVE).update(
            {'status': STATUS_CANCELLED, 'updated_at': now},
            synchronize_session=False
        )
        if rows != 1:
            db.session.rollback()
            db.session.refresh(contract)
            raise _status_error(contract)

        # 4. 同一交易內建立解約紀錄與結算工作
        cancellation = ContractCancellation(
            contract_id=contract_id,
            who_cancelled=who_cancelled,
            reason=reason.strip(),
            penalty_percent=percent,
            penalty_amount=penalty_amount,
            beneficiary=beneficiary,
            status=CANCEL_PENDING,
            cancelled_at=now,
            notes=f'계약 파기 처리 중 - 위약금 {penalty_amount:,}원',
        )
        db.session.add(cancellation)
        db.session.flush()

        delay = MarketConfigLoader.get('cancellation.settlement_delay_seconds', 3)
        job = SettlementJob(
            idempotency_key=contract_id,
            cancellation_id=cancellation.id,
            status=JOB_QUEUED,
            attempts=0,
            max_attempts=MarketConfigLoader.get('settlement.max_attempts', 3),
            next_run_at=now + timedelta(seconds=delay),
        )
        db.session.add(job)

        try:
            db.session.commit()
        except IntegrityError:
            # 另一個請求已為同一份合約建立解約紀錄
            db.session.rollback()
            raise InvalidStateError('Contract is already cancelled', current_status=STATUS_CANCELLED)

        # 重新載入，讓呼叫端看到 cancelled 狀態
        db.session.refresh(contract)
        logger.info(
            "[Cancel] %s cancelled: penalty %s (%s%%) -> %s, settlement queued",
            contract_id, f'{penalty_amount:,}', percent, beneficiary
        )
        return cancellation
