# caddylink/models/notification.py
from datetime import datetime
from caddylink import db

class Notification(db.Model):
    """通知寄件匣 (實際發送由外部通知服務負責)"""
    __tablename__ = 'notifications'
    __table_args__ = {'comment': '通知寄件匣'}

    id = db.Column(db.Integer, primary_key=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    contract_id = db.Column(db.String(32), db.ForeignKey('contracts.id'), nullable=True, index=True)
    template_kind = db.Column(db.String(40), nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    delivered = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'recipient_id': self.recipient_id,
            'contract_id': self.contract_id,
            'template_kind': self.template_kind,
            'payload': self.payload,
            'delivered': self.delivered,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Notification {self.template_kind} -> {self.recipient_id}>'
