# caddylink/models/settlement.py
from datetime import datetime
from caddylink import db

JOB_QUEUED = 'queued'
JOB_RUNNING = 'running'
JOB_DONE = 'done'
JOB_FAILED = 'failed'

class SettlementJob(db.Model):
    """
    違約金結算佇列 (存在資料庫，行程重啟後仍可繼續)
    idempotency_key 固定為 contract_id，同一份合約只會有一筆結算。
    """
    __tablename__ = 'settlement_jobs'
    __table_args__ = {'comment': '違約金結算工作佇列'}

    id = db.Column(db.Integer, primary_key=True)
    idempotency_key = db.Column(db.String(32), db.ForeignKey('contracts.id'), nullable=False, unique=True, comment='冪等鍵 (= contract_id)')
    cancellation_id = db.Column(db.Integer, db.ForeignKey('contract_cancellations.id'), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=JOB_QUEUED, index=True, comment='queued, running, done, failed')
    attempts = db.Column(db.Integer, nullable=False, default=0, comment='已嘗試次數')
    max_attempts = db.Column(db.Integer, nullable=False, default=3)
    next_run_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    last_error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    cancellation = db.relationship('ContractCancellation', backref=db.backref('settlement_job', uselist=False), lazy=True)

    @property
    def contract_id(self):
        return self.idempotency_key

    def to_dict(self):
        return {
            'id': self.id,
            'contract_id': self.contract_id,
            'status': self.status,
            'attempts': self.attempts,
            'max_attempts': self.max_attempts,
            'next_run_at': self.next_run_at.isoformat() if self.next_run_at else None,
            'last_error': self.last_error,
            'cancellation_status': self.cancellation.status if self.cancellation else None,
            'penalty_amount': self.cancellation.penalty_amount if self.cancellation else None,
        }

    def __repr__(self):
        return f'<SettlementJob {self.idempotency_key} {self.status} ({self.attempts}/{self.max_attempts})>'
