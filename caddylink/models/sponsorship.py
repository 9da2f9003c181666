# caddylink/models/sponsorship.py
from datetime import datetime
from sqlalchemy.orm import validates
from caddylink import db
from caddylink.exceptions import InvalidStateError

# --- 贊助提案狀態 ---
PROPOSAL_PROPOSED = 'proposed'
PROPOSAL_ACCEPTED = 'accepted'
PROPOSAL_REJECTED = 'rejected'
PROPOSAL_COUNTER = 'counter_proposed'

# 選手可重複還價; accepted / rejected 為終止狀態
PROPOSAL_TRANSITIONS = {
    PROPOSAL_PROPOSED: {PROPOSAL_ACCEPTED, PROPOSAL_REJECTED, PROPOSAL_COUNTER},
    PROPOSAL_COUNTER: {PROPOSAL_ACCEPTED, PROPOSAL_REJECTED, PROPOSAL_COUNTER},
    PROPOSAL_ACCEPTED: set(),
    PROPOSAL_REJECTED: set(),
}

# 贊助商 logo 曝光位置
EXPOSURE_ITEMS = ('golf_bag', 'hat', 'shirt', 'pants')


class SponsorshipProposal(db.Model):
    __tablename__ = 'sponsorship_proposals'
    __table_args__ = {'comment': '贊助提案'}

    id = db.Column(db.Integer, primary_key=True)
    sponsor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True, comment='提案贊助商')
    player_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True, comment='受邀投巡選手')
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournaments.id'), nullable=True)

    exposure_items = db.Column(db.JSON, nullable=False, default=list, comment='golf_bag, hat, shirt, pants')
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    amount = db.Column(db.BigInteger, nullable=False, comment='提案金額')
    is_tournament_based = db.Column(db.Boolean, nullable=False, default=False, comment='是否以賽事為單位')
    message = db.Column(db.Text, nullable=False)

    status = db.Column(db.String(20), nullable=False, default=PROPOSAL_PROPOSED, index=True,
                       comment='proposed, accepted, rejected, counter_proposed')
    counter_amount = db.Column(db.BigInteger, nullable=True, comment='選手還價金額')
    counter_message = db.Column(db.Text, nullable=True)

    # 接受後產生的贊助合約
    contract_id = db.Column(db.String(32), db.ForeignKey('contracts.id'), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @validates('status')
    def validate_status(self, key, new_status):
        if new_status not in PROPOSAL_TRANSITIONS:
            raise InvalidStateError(f'Unknown proposal status: {new_status}')
        current = self.status
        if current is None:
            return new_status
        if new_status not in PROPOSAL_TRANSITIONS[current]:
            raise InvalidStateError(
                f'Proposal {self.id} cannot move from {current} to {new_status}',
                current_status=current
            )
        return new_status

    @property
    def agreed_amount(self):
        """有還價時以選手最後提出的金額為準"""
        return self.counter_amount if self.counter_amount is not None else self.amount

    def to_dict(self):
        return {
            'id': self.id,
            'sponsor_id': self.sponsor_id,
            'player_id': self.player_id,
            'tournament_id': self.tournament_id,
            'exposure_items': list(self.exposure_items or []),
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'amount': self.amount,
            'is_tournament_based': self.is_tournament_based,
            'message': self.message,
            'status': self.status,
            'counter_amount': self.counter_amount,
            'counter_message': self.counter_message,
            'agreed_amount': self.agreed_amount,
            'contract_id': self.contract_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<SponsorshipProposal {self.id} {self.status}>'
