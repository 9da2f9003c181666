# 專案路徑: caddylink/routes/sponsorship.py
# 模組名稱: 贊助提案 API
# 描述: 贊助商向投巡選手提案，選手接受 / 拒絕 / 還價；接受後產生贊助合約。

from flask import Blueprint, jsonify, request
from caddylink.routes import json_body
from caddylink.services.sponsorship_service import SponsorshipService

sponsorship_bp = Blueprint('sponsorship', __name__, url_prefix='/api/sponsorship')

RESPONSE_MESSAGES = {
    'accept': '스폰서십 제안이 수락되었습니다.',
    'reject': '스폰서십 제안이 거절되었습니다.',
    'counter_propose': '스폰서십 제안이 수정 제안되었습니다.',
}

@sponsorship_bp.route('/proposals', methods=['GET'])
def list_proposals():
    """
    提案列表
    篩選: status, sponsorId, playerId, exposureItem, isTournamentBased (true/false)；分頁: page, limit
    """
    tournament_based = request.args.get('isTournamentBased')
    proposals, pagination = SponsorshipService.list_proposals(
        status=request.args.get('status'),
        sponsor_id=request.args.get('sponsorId', type=int),
        player_id=request.args.get('playerId', type=int),
        exposure_item=request.args.get('exposureItem'),
        is_tournament_based=None if tournament_based is None else tournament_based.lower() == 'true',
        page=request.args.get('page', 1, type=int),
        limit=request.args.get('limit', 20, type=int),
    )
    return jsonify({
        'success': True,
        'data': [p.to_dict() for p in proposals],
        'pagination': pagination,
    })

@sponsorship_bp.route('/proposals', methods=['POST'])
def create_proposal():
    """
    贊助商提案
    Payload: { "sponsorId": 1, "playerId": 2, "exposureItems": ["hat", "golf_bag"],
               "startDate": "2024-03-01", "endDate": "2024-05-01", "amount": 20000000,
               "isTournamentBased": false, "tournamentId": null, "message": "..." }
    """
    data = json_body()
    proposal = SponsorshipService.create_proposal(
        data.get('sponsorId'),
        data.get('playerId'),
        data.get('exposureItems'),
        data.get('startDate'),
        data.get('endDate'),
        data.get('amount'),
        data.get('message'),
        is_tournament_based=data.get('isTournamentBased', False),
        tournament_id=data.get('tournamentId'),
    )
    return jsonify({
        'success': True,
        'data': proposal.to_dict(),
        'message': '스폰서십 제안이 전송되었습니다.',
    }), 201

@sponsorship_bp.route('/proposals/<int:proposal_id>', methods=['GET'])
def get_proposal(proposal_id):
    proposal = SponsorshipService.get_proposal(proposal_id)
    return jsonify({'success': True, 'data': proposal.to_dict()})

@sponsorship_bp.route('/proposals/<int:proposal_id>/response', methods=['POST'])
def respond_to_proposal(proposal_id):
    """
    選手回覆
    Payload: { "playerId": 2, "action": "accept" | "reject" | "counter_propose",
               "counterAmount": 25000000, "counterMessage": "..." }
    """
    data = json_body()
    action = data.get('action')
    proposal = SponsorshipService.respond(
        proposal_id,
        data.get('playerId'),
        action,
        counter_amount=data.get('counterAmount'),
        counter_message=data.get('counterMessage'),
    )
    return jsonify({
        'success': True,
        'data': proposal.to_dict(),
        'message': RESPONSE_MESSAGES[action],
    })
