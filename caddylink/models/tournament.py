# caddylink/models/tournament.py
from datetime import datetime
from caddylink import db

class Tournament(db.Model):
    __tablename__ = 'tournaments'
    __table_args__ = {'comment': '賽事資料表'}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    association = db.Column(db.String(20), nullable=True, comment='KLPGA, KPGA ...')
    start_date = db.Column(db.DateTime, nullable=True)
    end_date = db.Column(db.DateTime, nullable=True)
    location = db.Column(db.String(100), nullable=True)
    prize_money = db.Column(db.BigInteger, nullable=False, default=0, comment='總獎金')
    status = db.Column(db.String(20), nullable=False, default='completed', comment='upcoming, ongoing, completed')

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    results = db.relationship('TournamentResult', backref='tournament', lazy='dynamic', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'association': self.association,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'location': self.location,
            'prize_money': self.prize_money,
            'status': self.status,
            'results_count': self.results.count(),
        }

    def __repr__(self):
        return f'<Tournament {self.name}>'

class TournamentResult(db.Model):
    __tablename__ = 'tournament_results'
    __table_args__ = {'comment': '賽事成績'}

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournaments.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, comment='對應會員 (可為空)')
    player_name = db.Column(db.String(64), nullable=False)
    rank = db.Column(db.Integer, nullable=False, comment='名次 (1 起算)')
    score = db.Column(db.Integer, nullable=True, comment='總桿數 (相對標準桿)')
    prize_amount = db.Column(db.BigInteger, nullable=False, default=0)

    def to_dict(self):
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'player_id': self.player_id,
            'player_name': self.player_name,
            'rank': self.rank,
            'score': self.score,
            'prize_amount': self.prize_amount,
        }

    def __repr__(self):
        return f'<TournamentResult T{self.tournament_id} #{self.rank} {self.player_name}>'

class CaddyPayout(db.Model):
    """
    桿弟分潤 (由 TournamentResult 推導，不獨立編輯)
    """
    __tablename__ = 'caddy_payouts'
    __table_args__ = {'comment': '桿弟賽事分潤'}

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournaments.id'), nullable=False, index=True)
    result_id = db.Column(db.Integer, db.ForeignKey('tournament_results.id'), nullable=False, unique=True)

    player_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    player_name = db.Column(db.String(64), nullable=False)
    caddy_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    caddy_name = db.Column(db.String(64), nullable=True)

    rank = db.Column(db.Integer, nullable=False)
    prize_amount = db.Column(db.BigInteger, nullable=False)
    payout_rate = db.Column(db.Float, nullable=False)
    payout_amount = db.Column(db.BigInteger, nullable=False)

    paid_status = db.Column(db.Boolean, nullable=False, default=False)
    paid_date = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    result = db.relationship('TournamentResult', backref=db.backref('payout', uselist=False), lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'result_id': self.result_id,
            'player_id': self.player_id,
            'player_name': self.player_name,
            'caddy_id': self.caddy_id,
            'caddy_name': self.caddy_name,
            'rank': self.rank,
            'prize_amount': self.prize_amount,
            'payout_rate': self.payout_rate,
            'payout_amount': self.payout_amount,
            'paid_status': self.paid_status,
            'paid_date': self.paid_date.isoformat() if self.paid_date else None,
            'notes': self.notes,
        }

    def __repr__(self):
        return f'<CaddyPayout R{self.result_id} {self.payout_rate}% {self.payout_amount}>'
