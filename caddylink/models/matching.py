# caddylink/models/matching.py
from datetime import datetime
from sqlalchemy.orm import validates
from caddylink import db
from caddylink.exceptions import InvalidStateError

# --- 媒合需求狀態 ---
REQUEST_PENDING = 'pending'
REQUEST_MATCHED = 'matched'
REQUEST_COMPLETED = 'completed'
REQUEST_CANCELLED = 'cancelled'

REQUEST_TRANSITIONS = {
    REQUEST_PENDING: {REQUEST_MATCHED, REQUEST_CANCELLED},
    REQUEST_MATCHED: {REQUEST_COMPLETED, REQUEST_CANCELLED},
    REQUEST_COMPLETED: set(),
    REQUEST_CANCELLED: set(),
}

# 可被媒合的對象角色 (贊助商走贊助提案流程)
TARGET_TYPES = ('tour_pro', 'amateur', 'agency', 'caddy')


class MatchingRequest(db.Model):
    """媒合需求: 選手徵求桿弟、經紀公司徵求選手等公開需求"""
    __tablename__ = 'matching_requests'
    __table_args__ = {'comment': '媒合需求'}

    id = db.Column(db.Integer, primary_key=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    requester_type = db.Column(db.String(20), nullable=False, comment='發起人角色')
    target_type = db.Column(db.String(20), nullable=False, index=True, comment='tour_pro, amateur, agency, caddy')
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    location = db.Column(db.String(100), nullable=False, index=True)
    date = db.Column(db.DateTime, nullable=False, comment='需求日期')
    budget = db.Column(db.BigInteger, nullable=False, default=0, comment='預算')
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournaments.id'), nullable=True)

    status = db.Column(db.String(20), nullable=False, default=REQUEST_PENDING, index=True,
                       comment='pending, matched, completed, cancelled')
    matched_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, comment='接案會員')

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @validates('status')
    def validate_status(self, key, new_status):
        if new_status not in REQUEST_TRANSITIONS:
            raise InvalidStateError(f'Unknown matching request status: {new_status}')
        current = self.status
        if current is None or current == new_status:
            return new_status
        if new_status not in REQUEST_TRANSITIONS[current]:
            raise InvalidStateError(
                f'Matching request {self.id} cannot move from {current} to {new_status}',
                current_status=current
            )
        return new_status

    def to_dict(self):
        return {
            'id': self.id,
            'requester_id': self.requester_id,
            'requester_type': self.requester_type,
            'target_type': self.target_type,
            'title': self.title,
            'description': self.description,
            'location': self.location,
            'date': self.date.isoformat() if self.date else None,
            'budget': self.budget,
            'tournament_id': self.tournament_id,
            'status': self.status,
            'matched_user_id': self.matched_user_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<MatchingRequest {self.id} {self.target_type} {self.status}>'
