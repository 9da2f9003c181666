# caddylink/services/contract_service.py
import logging
from datetime import datetime
from sqlalchemy import or_
from caddylink import db
from caddylink.exceptions import NotFoundError, ValidationError, InvalidStateError
from caddylink.models.user import User
from caddylink.models.contract import (
    Contract, CONTRACT_TYPES, KIND_PARTIES, PARTY_FIELDS,
    STATUS_ACTIVE, STATUS_COMPLETED, STATUS_PENDING
)

logger = logging.getLogger(__name__)

# 當事人欄位 -> 會員角色
PARTY_ROLES = {
    'tour_pro_id': 'tour_pro',
    'amateur_id': 'amateur',
    'caddy_id': 'caddy',
    'sponsor_id': 'sponsor',
}

# 可由 API 直接寫入的合約欄位
WRITABLE_FIELDS = (
    'kind', 'contract_type', 'title', 'tournament_id',
    'tour_pro_id', 'amateur_id', 'caddy_id', 'sponsor_id',
    'base_salary', 'tournament_count',
    'win_bonus_percentage', 'win_bonus_min_amount', 'win_bonus_max_amount',
    'tournament_bonus_first', 'tournament_bonus_second', 'tournament_bonus_third',
    'tournament_bonus_top10', 'tournament_bonus_participation',
    'domestic_transportation', 'domestic_accommodation', 'domestic_meals',
    'jeju_transportation', 'jeju_accommodation', 'jeju_meals',
    'overseas_transportation', 'overseas_accommodation', 'overseas_meals', 'overseas_visa',
    'duration_months', 'penalty_rate', 'notice_period_days',
    'renewal_terms', 'special_conditions', 'start_date', 'end_date',
)


# 數值條款: 欄位 -> (最小值, 最大值, 是否須為整數)
NUMERIC_TERMS = {
    'base_salary': (0, None, True),
    'tournament_count': (1, None, True),
    'win_bonus_percentage': (0, 100, False),
    'win_bonus_min_amount': (0, None, True),
    'win_bonus_max_amount': (0, None, True),
    'tournament_bonus_first': (0, None, True),
    'tournament_bonus_second': (0, None, True),
    'tournament_bonus_third': (0, None, True),
    'tournament_bonus_top10': (0, None, True),
    'tournament_bonus_participation': (0, None, True),
    'duration_months': (1, None, True),
    'penalty_rate': (0, 100, False),
    'notice_period_days': (0, None, True),
}

# 可為空值的數值條款 (未約定時由系統預設補上)
NULLABLE_TERMS = ('penalty_rate',)

EXPENSE_FLAGS = (
    'domestic_transportation', 'domestic_accommodation', 'domestic_meals',
    'jeju_transportation', 'jeju_accommodation', 'jeju_meals',
    'overseas_transportation', 'overseas_accommodation', 'overseas_meals', 'overseas_visa',
)


def _is_number(value, integer=False):
    # bool 是 int 的子類別，需排除
    if isinstance(value, bool):
        return False
    return isinstance(value, int) if integer else isinstance(value, (int, float))


class ContractValidator:

    @staticmethod
    def _check_numeric(contract, errors):
        for field, (minimum, maximum, integer) in NUMERIC_TERMS.items():
            value = getattr(contract, field)
            if value is None:
                if field not in NULLABLE_TERMS:
                    errors.append(f'{field} is required')
                continue
            if not _is_number(value, integer):
                errors.append(f'{field} must be {"an integer" if integer else "a number"}')
            elif maximum is None and value < minimum:
                errors.append(f'{field} must be >= {minimum}')
            elif maximum is not None and not minimum <= value <= maximum:
                errors.append(f'{field} must be between {minimum} and {maximum}')

    @staticmethod
    def validate(contract):
        """回傳錯誤訊息列表 (空列表代表通過)"""
        errors = []

        if not isinstance(contract.kind, str) or contract.kind not in KIND_PARTIES:
            errors.append(f'Unknown contract kind: {contract.kind}')
        else:
            expected = set(KIND_PARTIES[contract.kind])
            for field in PARTY_FIELDS:
                value = getattr(contract, field)
                if field in expected and value is None:
                    errors.append(f'{field} is required for {contract.kind} contracts')
                elif field not in expected and value is not None:
                    errors.append(f'{field} is not allowed on {contract.kind} contracts')
                elif value is not None and not _is_number(value, integer=True):
                    errors.append(f'{field} must be a user id')

        if contract.tournament_id is not None and not _is_number(contract.tournament_id, integer=True):
            errors.append('tournament_id must be a tournament id')

        if contract.contract_type not in CONTRACT_TYPES:
            errors.append(f'Unknown contract type: {contract.contract_type}')

        if not contract.start_date or not contract.end_date:
            errors.append('start_date and end_date are required')
        elif contract.start_date >= contract.end_date:
            errors.append('start_date must be earlier than end_date')

        ContractValidator._check_numeric(contract, errors)

        for field in EXPENSE_FLAGS:
            if not isinstance(getattr(contract, field), bool):
                errors.append(f'{field} must be true or false')

        for field in ('title', 'renewal_terms'):
            value = getattr(contract, field)
            if value is not None and not isinstance(value, str):
                errors.append(f'{field} must be a string')

        conditions = contract.special_conditions
        if not isinstance(conditions, list) or not all(isinstance(c, str) for c in conditions):
            errors.append('special_conditions must be a list of strings')

        return errors

    @staticmethod
    def ensure_valid(contract):
        errors = ContractValidator.validate(contract)
        if errors:
            raise ValidationError('Invalid contract', errors=errors)


def parse_datetime(value, field):
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an ISO-8601 date')


class ContractService:

    @staticmethod
    def get_contract(contract_id):
        contract = db.session.get(Contract, contract_id)
        if not contract:
            raise NotFoundError(f'Contract {contract_id} not found')
        return contract

    @staticmethod
    def check_parties(contract):
        """當事人必須存在且角色符合欄位"""
        for field, user_id in contract.party_ids.items():
            user = db.session.get(User, user_id)
            if not user:
                raise NotFoundError(f'User {user_id} ({field}) not found')
            if user.role != PARTY_ROLES[field]:
                raise ValidationError(f'User {user_id} is a {user.role}, expected {PARTY_ROLES[field]}')

    @staticmethod
    def save_new_contract(contract, commit=True):
        """
        驗證並寫入一份新合約 (一律以 pending 建立)
        commit=False 時只 flush，由呼叫端與其他變更一起提交。
        """
        if contract.status is None:
            contract.status = STATUS_PENDING
        if contract.special_conditions is None:
            contract.special_conditions = []
        ContractValidator.ensure_valid(contract)
        ContractService.check_parties(contract)

        db.session.add(contract)
        if commit:
            db.session.commit()
        else:
            db.session.flush()
        logger.info("[Contract] Created %s (%s, %s)", contract.id, contract.kind, contract.contract_type)
        return contract

    @staticmethod
    def create_contract(data):
        unknown = set(data) - set(WRITABLE_FIELDS)
        if unknown:
            raise ValidationError(f'Unknown contract fields: {", ".join(sorted(unknown))}')

        values = dict(data)
        values['start_date'] = parse_datetime(values.get('start_date'), 'start_date')
        values['end_date'] = parse_datetime(values.get('end_date'), 'end_date')

        contract = Contract(**values)
        # 未指定的欄位在 flush 前仍為 None，先補上預設值再驗證
        for column in Contract.__table__.columns:
            if getattr(contract, column.key) is None and column.default is not None \
                    and column.key not in ('id', 'status') and not callable(column.default.arg):
                setattr(contract, column.key, column.default.arg)
        return ContractService.save_new_contract(contract)

    @staticmethod
    def list_contracts(status=None, contract_type=None, kind=None, user_id=None):
        query = Contract.query
        if status:
            query = query.filter(Contract.status == status)
        if contract_type:
            query = query.filter(Contract.contract_type == contract_type)
        if kind:
            query = query.filter(Contract.kind == kind)
        if user_id is not None:
            query = query.filter(or_(*[getattr(Contract, f) == user_id for f in PARTY_FIELDS]))
        return query.order_by(Contract.created_at.desc()).all()

    @staticmethod
    def _transition(contract_id, target_status):
        contract = ContractService.get_contract(contract_id)
        try:
            contract.status = target_status
            db.session.commit()
        except InvalidStateError:
            db.session.rollback()
            raise
        logger.info("[Contract] %s -> %s", contract.id, target_status)
        return contract

    @staticmethod
    def accept_contract(contract_id):
        """pending -> active"""
        return ContractService._transition(contract_id, STATUS_ACTIVE)

    @staticmethod
    def complete_contract(contract_id):
        """active -> completed"""
        return ContractService._transition(contract_id, STATUS_COMPLETED)

    @staticmethod
    def complete_expired(now=None):
        """
        [系統排程] 合約期滿自動結案
        以條件式 UPDATE 推進，避免與解約流程同時修改同一筆合約。
        """
        now = now or datetime.utcnow()
        expired_ids = [
            c.id for c in Contract.query.filter(
                Contract.status == STATUS_ACTIVE,
                Contract.end_date <= now
            ).all()
        ]

        completed = []
        for contract_id in expired_ids:
            rows = Contract.query.filter_by(id=contract_id, status=STATUS_ACTIVE).update(
                {'status': STATUS_COMPLETED, 'updated_at': now},
                synchronize_session=False
            )
            if rows:
                completed.append(contract_id)
        db.session.commit()

        if completed:
            logger.info("[Contract] %d contracts reached term end and were completed", len(completed))
        return completed
