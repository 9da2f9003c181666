# caddylink/services/payment_gateway.py
"""
金流閘道 (PG) 客戶端。
實際 PG 尚未串接，MockPaymentGateway 模擬扣款並依冪等鍵回傳同一筆 payment_id。
"""
import logging
import random
import string
import time
from dataclasses import dataclass

from caddylink.exceptions import PaymentGatewayError
from caddylink.utils.market_config_loader import MarketConfigLoader

logger = logging.getLogger(__name__)


@dataclass
class PaymentResult:
    payment_id: str
    status: str
    amount: int
    payee_ref: str


class PaymentGateway:
    """介面: charge(amount, payee_ref, idempotency_key) -> PaymentResult"""

    def charge(self, amount, payee_ref, idempotency_key):
        raise NotImplementedError


class MockPaymentGateway(PaymentGateway):

    def __init__(self, failure_rate=0.0, prefix='penalty', rng=None):
        self.failure_rate = failure_rate
        self.prefix = prefix
        self.rng = rng or random.Random()
        # 冪等鍵 -> 已成功的付款結果
        self._settled = {}

    @classmethod
    def from_config(cls):
        conf = MarketConfigLoader.get('payment_gateway', {}) or {}
        return cls(
            failure_rate=float(conf.get('failure_rate', 0.0)),
            prefix=conf.get('payment_id_prefix', 'penalty'),
        )

    def _new_payment_id(self):
        suffix = ''.join(self.rng.choice(string.ascii_lowercase + string.digits) for _ in range(9))
        return f'{self.prefix}_{int(time.time() * 1000)}_{suffix}'

    def charge(self, amount, payee_ref, idempotency_key):
        # 同一冪等鍵重送時直接回傳既有結果，避免重複扣款
        if idempotency_key in self._settled:
            logger.info("[PG] Idempotent replay for %s", idempotency_key)
            return self._settled[idempotency_key]

        if self.failure_rate and self.rng.random() < self.failure_rate:
            raise PaymentGatewayError(f'Mock gateway declined payment for {idempotency_key}')

        result = PaymentResult(
            payment_id=self._new_payment_id(),
            status='succeeded',
            amount=amount,
            payee_ref=payee_ref,
        )
        self._settled[idempotency_key] = result
        logger.info("[PG] Charged %s -> %s (%s)", f'{amount:,}', payee_ref, result.payment_id)
        return result
