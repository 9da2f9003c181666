# 專案路徑: caddylink/routes/admin.py
# 模組名稱: 管理後台 API
# 描述: 賽事成績登錄、違約金結算監控與重送、儀表板統計。

from datetime import datetime, timedelta
from flask import Blueprint, jsonify, request
from sqlalchemy import func
from caddylink import db
from caddylink.models.contract import Contract, ContractCancellation
from caddylink.models.settlement import SettlementJob
from caddylink.models.tournament import CaddyPayout
from caddylink.models.user import User
from caddylink.routes import json_body
from caddylink.services.settlement_service import SettlementService
from caddylink.services.tournament_service import TournamentService
from caddylink.utils.market_config_loader import MarketConfigLoader

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')

@admin_bp.route('/dashboard', methods=['GET'])
def dashboard():
    """
    儀表板統計: 會員數、合約狀態分布、結算佇列、未付分潤
    """
    active_days = MarketConfigLoader.get('system.active_user_threshold_days', 7)
    threshold_date = datetime.utcnow() - timedelta(days=active_days)

    users_by_role = dict(db.session.query(User.role, func.count(User.id)).group_by(User.role).all())
    contracts_by_status = dict(
        db.session.query(Contract.status, func.count(Contract.id)).group_by(Contract.status).all()
    )
    settlements_by_status = dict(
        db.session.query(SettlementJob.status, func.count(SettlementJob.id)).group_by(SettlementJob.status).all()
    )
    penalty_total = db.session.query(func.sum(ContractCancellation.penalty_amount)).scalar() or 0
    unpaid_payouts = db.session.query(func.sum(CaddyPayout.payout_amount))\
        .filter(CaddyPayout.paid_status.is_(False)).scalar() or 0

    return jsonify({
        'success': True,
        'users': {
            'total': sum(users_by_role.values()),
            'new_recent': User.query.filter(User.created_at >= threshold_date).count(),
            'by_role': users_by_role,
        },
        'contracts': contracts_by_status,
        'settlements': settlements_by_status,
        'penalty_total': int(penalty_total),
        'unpaid_payout_total': int(unpaid_payouts),
    })

@admin_bp.route('/tournaments', methods=['GET'])
def list_tournaments():
    tournaments = TournamentService.list_tournaments()
    return jsonify({'success': True, 'data': [t.to_dict() for t in tournaments]})

@admin_bp.route('/tournaments/<int:tournament_id>/results', methods=['GET'])
def get_tournament_results(tournament_id):
    results = TournamentService.get_results(tournament_id)
    return jsonify({'success': True, 'data': [r.to_dict() for r in results]})

@admin_bp.route('/tournaments/results', methods=['POST'])
def save_tournament_results():
    """
    登錄賽事成績
    Payload: { "tournament_name": "...", "results": [{ "player_name": ..., "rank": 1, "score": -14, "prize_amount": ... }] }
    """
    data = json_body()

    tournament = TournamentService.save_results(
        data.get('tournament_name'),
        data.get('results'),
        association=data.get('association', 'KLPGA'),
        location=data.get('location'),
    )
    return jsonify({'success': True, 'tournament': tournament.to_dict()}), 201

@admin_bp.route('/settlements', methods=['GET'])
def list_settlements():
    """違約金結算佇列 (?status=failed 可篩選需人工處理的項目)"""
    jobs = SettlementService.list_jobs(status=request.args.get('status'))
    return jsonify({'success': True, 'data': [j.to_dict() for j in jobs]})

@admin_bp.route('/settlements/process', methods=['POST'])
def process_settlements():
    """手動觸發一次結算批次"""
    stats = SettlementService.process_due_jobs()
    return jsonify({'success': True, 'stats': stats})

@admin_bp.route('/settlements/<contract_id>/resubmit', methods=['POST'])
def resubmit_settlement(contract_id):
    job = SettlementService.resubmit(contract_id)
    return jsonify({'success': True, 'data': job.to_dict()})
