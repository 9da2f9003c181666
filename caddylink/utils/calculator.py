# caddylink/utils/calculator.py

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

from caddylink.exceptions import ValidationError
from caddylink.utils.market_config_loader import MarketConfigLoader

# 設定檔缺漏時使用的預設費率表
DEFAULT_PAYOUT_TIERS = [
    {'rank_from': 1, 'rank_to': 10, 'rate': 10.0},
    {'rank_from': 11, 'rank_to': 30, 'rate': 7.0},
    {'rank_from': 31, 'rank_to': 50, 'rate': 5.0},
    {'rank_from': 51, 'rank_to': None, 'rate': 3.0},
]


def _round_currency(value: Decimal) -> int:
    """四捨五入至整數貨幣單位"""
    return int(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _to_decimal(value, field: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValidationError(f'{field} must be a number')
    return Decimal(str(value))


def compute_penalty(base_amount, percent) -> int:
    """
    違約金 = round(base_amount * percent / 100)
    base_amount 不可為負，percent 須介於 0~100。
    """
    base = _to_decimal(base_amount, 'base_amount')
    pct = _to_decimal(percent, 'percent')

    if base < 0:
        raise ValidationError('base_amount must be >= 0')
    if pct < 0 or pct > 100:
        raise ValidationError('percent must be between 0 and 100')

    return _round_currency(base * pct / Decimal(100))


class PayoutCalculator:
    """
    名次 -> 桿弟分潤比例計算器。
    費率表由設定檔 payout.tiers 載入，載入時檢查區間連續且不重疊。
    """

    def __init__(self, tiers: Optional[List[Dict]] = None):
        if tiers is None:
            tiers = MarketConfigLoader.get('payout.tiers', DEFAULT_PAYOUT_TIERS)
        self.tiers = self.validate_tiers(tiers)

    @staticmethod
    def validate_tiers(tiers: List[Dict]) -> List[Dict]:
        if not isinstance(tiers, list) or not tiers:
            raise ValidationError('payout tier table must be a non-empty list')

        normalized = []
        expected_from = 1
        for idx, tier in enumerate(tiers):
            if not isinstance(tier, dict):
                raise ValidationError(f'payout tier #{idx + 1} must be a mapping')
            rank_from = tier.get('rank_from')
            rank_to = tier.get('rank_to')
            rate = tier.get('rate')

            if isinstance(rank_from, bool) or not isinstance(rank_from, int) or rank_from != expected_from:
                raise ValidationError(
                    f'payout tier #{idx + 1} must start at rank {expected_from}, got {rank_from}'
                )
            if rank_to is not None and (isinstance(rank_to, bool) or not isinstance(rank_to, int)):
                raise ValidationError(f'payout tier #{idx + 1} rank_to must be an integer or null')
            if rank_to is not None and rank_to < rank_from:
                raise ValidationError(f'payout tier #{idx + 1} has rank_to < rank_from')
            if isinstance(rate, bool) or not isinstance(rate, (int, float)) or rate < 0 or rate > 100:
                raise ValidationError(f'payout tier #{idx + 1} rate must be between 0 and 100')
            # 開放區間只能是最後一段
            if rank_to is None and idx != len(tiers) - 1:
                raise ValidationError('only the last payout tier may be open-ended')

            normalized.append({'rank_from': rank_from, 'rank_to': rank_to, 'rate': float(rate)})
            if rank_to is not None:
                expected_from = rank_to + 1

        return normalized

    def rate_for_rank(self, rank: int) -> float:
        for tier in self.tiers:
            if rank >= tier['rank_from'] and (tier['rank_to'] is None or rank <= tier['rank_to']):
                return tier['rate']
        return 0.0

    def compute(self, rank, prize_amount) -> Tuple[float, int]:
        if isinstance(rank, bool) or not isinstance(rank, int) or rank < 1:
            raise ValidationError('rank must be a positive integer')
        prize = _to_decimal(prize_amount, 'prize_amount')
        if prize < 0:
            raise ValidationError('prize_amount must be >= 0')

        rate = self.rate_for_rank(rank)
        amount = _round_currency(prize * Decimal(str(rate)) / Decimal(100))
        return rate, amount


def compute_payout(rank, prize_amount) -> Tuple[float, int]:
    """回傳 (分潤比例 %, 分潤金額)"""
    return PayoutCalculator().compute(rank, prize_amount)
