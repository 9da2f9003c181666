# caddylink/routes/contracts.py
from flask import Blueprint, jsonify, request
from caddylink import db
from caddylink.exceptions import NotFoundError, ValidationError
from caddylink.models.tournament import Tournament
from caddylink.models.user import User
from caddylink.routes import json_body
from caddylink.services.cancellation_service import CancellationService
from caddylink.services.contract_service import ContractService
from caddylink.services.contract_template import ContractTemplateGenerator

contracts_bp = Blueprint('contracts', __name__, url_prefix='/api/contracts')

def _load_user(user_id, label):
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise ValidationError(f'{label} party id must be an integer')
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(f'{label} user {user_id} not found')
    return user

@contracts_bp.route('', methods=['GET'])
def list_contracts():
    """
    合約列表，支援 status / type / kind / user_id 篩選
    """
    user_id = request.args.get('user_id', type=int)
    contracts = ContractService.list_contracts(
        status=request.args.get('status'),
        contract_type=request.args.get('type'),
        kind=request.args.get('kind'),
        user_id=user_id,
    )
    return jsonify({
        'success': True,
        'data': [c.to_dict(include_terms=False) for c in contracts],
        'total': len(contracts)
    })

@contracts_bp.route('/<contract_id>', methods=['GET'])
def get_contract(contract_id):
    contract = ContractService.get_contract(contract_id)
    return jsonify({'success': True, 'data': contract.to_dict()})

@contracts_bp.route('/create', methods=['POST'])
def create_contract():
    """
    建立合約 (pending)
    Payload A (範本): { "role1": "tour_pro", "role2": "caddy", "party1_id": 1, "party2_id": 2,
                        "tournament_id": 3, "custom_terms": {...} }
    Payload B (直接指定欄位): { "contract": { "kind": ..., "base_salary": ..., ... } }
    """
    data = json_body()

    if 'contract' in data:
        if not isinstance(data['contract'], dict):
            raise ValidationError('contract must be an object')
        contract = ContractService.create_contract(data['contract'])
        return jsonify({'success': True, 'data': contract.to_dict()}), 201

    if not isinstance(data.get('role1'), str) or not isinstance(data.get('role2'), str):
        raise ValidationError('role1 and role2 are required')

    party1 = _load_user(data.get('party1_id'), data['role1'])
    party2 = _load_user(data.get('party2_id'), data['role2'])

    tournament = None
    if data.get('tournament_id') is not None:
        if isinstance(data['tournament_id'], bool) or not isinstance(data['tournament_id'], int):
            raise ValidationError('tournament_id must be an integer')
        tournament = db.session.get(Tournament, data['tournament_id'])
        if not tournament:
            raise NotFoundError(f'Tournament {data["tournament_id"]} not found')

    contract = ContractTemplateGenerator.generate(
        data['role1'], data['role2'], party1, party2,
        tournament=tournament,
        custom_terms=data.get('custom_terms'),
    )
    ContractService.save_new_contract(contract)
    return jsonify({'success': True, 'data': contract.to_dict()}), 201

@contracts_bp.route('/<contract_id>/accept', methods=['POST'])
def accept_contract(contract_id):
    contract = ContractService.accept_contract(contract_id)
    return jsonify({'success': True, 'data': contract.to_dict(include_terms=False)})

@contracts_bp.route('/<contract_id>/complete', methods=['POST'])
def complete_contract(contract_id):
    contract = ContractService.complete_contract(contract_id)
    return jsonify({'success': True, 'data': contract.to_dict(include_terms=False)})

@contracts_bp.route('/<contract_id>/summary', methods=['GET'])
def contract_summary(contract_id):
    contract = ContractService.get_contract(contract_id)
    roles = {'tour_pro': contract.tour_pro_id, 'amateur': contract.amateur_id,
             'caddy': contract.caddy_id, 'sponsor': contract.sponsor_id}
    parties = {role: db.session.get(User, uid) for role, uid in roles.items() if uid is not None}
    tournament = db.session.get(Tournament, contract.tournament_id) if contract.tournament_id else None

    summary = ContractTemplateGenerator.generate_summary(contract, parties, tournament)
    return jsonify({'success': True, 'summary': summary})

@contracts_bp.route('/cancel', methods=['POST'])
def cancel_contract():
    """
    合約解約
    Payload: { "contractId": "...", "whoCancelled": "golfer", "reason": "...", "penaltyPercent": 20 }
    違約金結算在背景進行，這裡只回傳 pending 狀態的解約紀錄。
    """
    data = json_body()
    if not isinstance(data.get('contractId'), str) or not data['contractId']:
        raise ValidationError('contractId is required')

    cancellation = CancellationService.cancel_contract(
        data['contractId'],
        data.get('whoCancelled'),
        data.get('reason'),
        penalty_percent=data.get('penaltyPercent'),
    )

    return jsonify({
        'success': True,
        'contractId': data['contractId'],
        'cancellation': cancellation.to_dict(),
        'newStatus': 'cancelled'
    })
