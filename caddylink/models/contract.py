# caddylink/models/contract.py
import uuid
from datetime import datetime
from sqlalchemy.orm import validates
from caddylink import db
from caddylink.exceptions import InvalidStateError

# --- 合約狀態 ---
STATUS_PENDING = 'pending'
STATUS_ACTIVE = 'active'
STATUS_COMPLETED = 'completed'
STATUS_CANCELLED = 'cancelled'

# 只允許往前推進; completed / cancelled 為終止狀態
STATUS_TRANSITIONS = {
    STATUS_PENDING: {STATUS_ACTIVE},
    STATUS_ACTIVE: {STATUS_COMPLETED, STATUS_CANCELLED},
    STATUS_COMPLETED: set(),
    STATUS_CANCELLED: set(),
}

CONTRACT_TYPES = ('tournament', 'annual', 'training', 'sponsorship')

# --- 合約種類 (明確標記雙方角色，不再由欄位有無推斷) ---
KIND_TOUR_PRO_CADDY = 'tour_pro_caddy'
KIND_TOUR_PRO_SPONSOR = 'tour_pro_sponsor'
KIND_AMATEUR_CADDY = 'amateur_caddy'

# kind -> (requester 欄位, provider 欄位)
KIND_PARTIES = {
    KIND_TOUR_PRO_CADDY: ('tour_pro_id', 'caddy_id'),
    KIND_TOUR_PRO_SPONSOR: ('sponsor_id', 'tour_pro_id'),
    KIND_AMATEUR_CADDY: ('amateur_id', 'caddy_id'),
}

PARTY_FIELDS = ('tour_pro_id', 'amateur_id', 'caddy_id', 'sponsor_id')


def _new_contract_id():
    return f'ctr_{uuid.uuid4().hex[:20]}'


class Contract(db.Model):
    __tablename__ = 'contracts'
    __table_args__ = {'comment': '媒合合約資料表'}

    id = db.Column(db.String(32), primary_key=True, default=_new_contract_id)
    kind = db.Column(db.String(32), nullable=False, index=True, comment='合約種類(角色組合)')
    contract_type = db.Column(db.String(20), nullable=False, comment='tournament, annual, training, sponsorship')
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True, comment='pending, active, completed, cancelled')
    title = db.Column(db.String(200), nullable=True, comment='合約標題')

    # 當事人 (依 kind 只會填其中兩個)
    tour_pro_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, comment='投巡選手')
    amateur_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, comment='業餘選手')
    caddy_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, comment='桿弟')
    sponsor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, comment='贊助商')
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournaments.id'), nullable=True, comment='對應賽事')

    # 基本報酬與賽事數
    base_salary = db.Column(db.BigInteger, nullable=False, default=0, comment='基本報酬')
    tournament_count = db.Column(db.Integer, nullable=False, default=1, comment='合約期間參賽數')

    # 冠軍獎金分成
    win_bonus_percentage = db.Column(db.Float, nullable=False, default=0)
    win_bonus_min_amount = db.Column(db.BigInteger, nullable=False, default=0)
    win_bonus_max_amount = db.Column(db.BigInteger, nullable=False, default=0)

    # 名次獎金
    tournament_bonus_first = db.Column(db.BigInteger, nullable=False, default=0)
    tournament_bonus_second = db.Column(db.BigInteger, nullable=False, default=0)
    tournament_bonus_third = db.Column(db.BigInteger, nullable=False, default=0)
    tournament_bonus_top10 = db.Column(db.BigInteger, nullable=False, default=0)
    tournament_bonus_participation = db.Column(db.BigInteger, nullable=False, default=0)

    # 費用負擔 (國內 / 濟州 / 海外)
    domestic_transportation = db.Column(db.Boolean, nullable=False, default=False)
    domestic_accommodation = db.Column(db.Boolean, nullable=False, default=False)
    domestic_meals = db.Column(db.Boolean, nullable=False, default=False)
    jeju_transportation = db.Column(db.Boolean, nullable=False, default=False)
    jeju_accommodation = db.Column(db.Boolean, nullable=False, default=False)
    jeju_meals = db.Column(db.Boolean, nullable=False, default=False)
    overseas_transportation = db.Column(db.Boolean, nullable=False, default=False)
    overseas_accommodation = db.Column(db.Boolean, nullable=False, default=False)
    overseas_meals = db.Column(db.Boolean, nullable=False, default=False)
    overseas_visa = db.Column(db.Boolean, nullable=False, default=False)

    # 合約條件
    duration_months = db.Column(db.Integer, nullable=False, default=1, comment='合約月數')
    penalty_rate = db.Column(db.Float, nullable=True, default=20, comment='違約金比例(%)')
    notice_period_days = db.Column(db.Integer, nullable=False, default=7, comment='解約通知期(天)')
    renewal_terms = db.Column(db.String(200), nullable=True)
    special_conditions = db.Column(db.JSON, nullable=False, default=list)

    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    cancellation = db.relationship('ContractCancellation', backref='contract', uselist=False, lazy=True)

    @validates('status')
    def validate_status(self, key, new_status):
        """所有狀態變更都必須符合 STATUS_TRANSITIONS"""
        if new_status not in STATUS_TRANSITIONS:
            raise InvalidStateError(f'Unknown contract status: {new_status}')
        current = self.status
        if current is None or current == new_status:
            return new_status
        if new_status not in STATUS_TRANSITIONS[current]:
            raise InvalidStateError(
                f'Contract {self.id} cannot move from {current} to {new_status}',
                current_status=current
            )
        return new_status

    @property
    def party_ids(self):
        """回傳 {欄位名稱: user_id}，只含有值的當事人"""
        return {f: getattr(self, f) for f in PARTY_FIELDS if getattr(self, f) is not None}

    @property
    def requester_id(self):
        fields = KIND_PARTIES.get(self.kind)
        return getattr(self, fields[0]) if fields else None

    @property
    def provider_id(self):
        fields = KIND_PARTIES.get(self.kind)
        return getattr(self, fields[1]) if fields else None

    @property
    def golfer_id(self):
        return self.tour_pro_id or self.amateur_id

    def to_dict(self, include_terms=True):
        data = {
            'id': self.id,
            'kind': self.kind,
            'type': self.contract_type,
            'status': self.status,
            'title': self.title,
            'tour_pro_id': self.tour_pro_id,
            'amateur_id': self.amateur_id,
            'caddy_id': self.caddy_id,
            'sponsor_id': self.sponsor_id,
            'tournament_id': self.tournament_id,
            'requester_id': self.requester_id,
            'provider_id': self.provider_id,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'cancellation': self.cancellation.to_dict() if self.cancellation else None,
        }
        if include_terms:
            data['terms'] = self.terms_dict()
        return data

    def terms_dict(self):
        """巢狀格式的合約條件 (與合約範本相同結構)"""
        return {
            'base_salary': self.base_salary,
            'tournament_count': self.tournament_count,
            'win_bonus': {
                'percentage': self.win_bonus_percentage,
                'min_amount': self.win_bonus_min_amount,
                'max_amount': self.win_bonus_max_amount,
            },
            'tournament_bonus': {
                'first': self.tournament_bonus_first,
                'second': self.tournament_bonus_second,
                'third': self.tournament_bonus_third,
                'top10': self.tournament_bonus_top10,
                'participation': self.tournament_bonus_participation,
            },
            'expenses': {
                'domestic': {
                    'transportation': self.domestic_transportation,
                    'accommodation': self.domestic_accommodation,
                    'meals': self.domestic_meals,
                },
                'jeju': {
                    'transportation': self.jeju_transportation,
                    'accommodation': self.jeju_accommodation,
                    'meals': self.jeju_meals,
                },
                'overseas': {
                    'transportation': self.overseas_transportation,
                    'accommodation': self.overseas_accommodation,
                    'meals': self.overseas_meals,
                    'visa': self.overseas_visa,
                },
            },
            'conditions': {
                'duration': self.duration_months,
                'notice_period': self.notice_period_days,
                'penalty_rate': self.penalty_rate,
                'renewal_terms': self.renewal_terms,
            },
            'special_conditions': list(self.special_conditions or []),
        }

    def __repr__(self):
        return f'<Contract {self.id} {self.kind} ({self.status})>'


# --- 解約紀錄 ---
WHO_CANCELLED = ('golfer', 'caddy', 'sponsor')

CANCEL_PENDING = 'pending'
CANCEL_PROCESSING = 'processing'
CANCEL_COMPLETED = 'completed'
CANCEL_FAILED = 'failed'


class ContractCancellation(db.Model):
    __tablename__ = 'contract_cancellations'
    __table_args__ = {'comment': '合約解約與違約金結算紀錄'}

    id = db.Column(db.Integer, primary_key=True)
    contract_id = db.Column(db.String(32), db.ForeignKey('contracts.id'), nullable=False, unique=True)

    who_cancelled = db.Column(db.String(20), nullable=False, comment='golfer, caddy, sponsor')
    reason = db.Column(db.Text, nullable=False)
    penalty_percent = db.Column(db.Float, nullable=False)
    penalty_amount = db.Column(db.BigInteger, nullable=False)
    beneficiary = db.Column(db.String(20), nullable=False, comment='違約金受領方')

    # 結算狀態: pending -> processing -> completed | failed
    status = db.Column(db.String(20), nullable=False, default=CANCEL_PENDING)
    payment_id = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    cancelled_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def add_note(self, note):
        self.notes = f'{self.notes}\n{note}' if self.notes else note

    def to_dict(self):
        return {
            'contract_id': self.contract_id,
            'who_cancelled': self.who_cancelled,
            'reason': self.reason,
            'penalty_percent': self.penalty_percent,
            'penalty_amount': self.penalty_amount,
            'beneficiary': self.beneficiary,
            'status': self.status,
            'payment_id': self.payment_id,
            'notes': self.notes,
            'date': self.cancelled_at.isoformat() if self.cancelled_at else None,
        }

    def __repr__(self):
        return f'<ContractCancellation {self.contract_id} {self.penalty_amount} -> {self.beneficiary} ({self.status})>'
