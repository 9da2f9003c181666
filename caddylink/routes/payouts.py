# caddylink/routes/payouts.py
from flask import Blueprint, jsonify, request
from caddylink.exceptions import ValidationError
from caddylink.routes import json_body
from caddylink.services.payout_service import PayoutService

payouts_bp = Blueprint('payouts', __name__, url_prefix='/api/payouts')

@payouts_bp.route('/calculate', methods=['POST'])
def calculate_payouts():
    """
    桿弟分潤計算
    Query: ?tournamentId=1
    """
    tournament_id = request.args.get('tournamentId', type=int)
    if tournament_id is None:
        raise ValidationError('tournamentId is required')

    payouts, summary = PayoutService.calculate_for_tournament(tournament_id)
    return jsonify({
        'success': True,
        'payouts': [p.to_dict() for p in payouts],
        'summary': summary,
        'message': f'{len(payouts)} caddy payouts calculated'
    })

@payouts_bp.route('/<int:tournament_id>', methods=['GET'])
def get_tournament_payouts(tournament_id):
    payouts, summary = PayoutService.list_for_tournament(tournament_id)
    return jsonify({
        'success': True,
        'payouts': [p.to_dict() for p in payouts],
        'summary': summary
    })

@payouts_bp.route('/confirm/<int:payout_id>', methods=['POST'])
def confirm_payout(payout_id):
    data = json_body(required=False)
    payout = PayoutService.confirm_payout(payout_id, notes=data.get('notes'))
    return jsonify({
        'success': True,
        'payout': payout.to_dict(),
        'message': 'Payout marked as paid'
    })
