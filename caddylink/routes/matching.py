# 專案路徑: caddylink/routes/matching.py
# 模組名稱: 媒合需求 API
# 描述: 公開媒合需求的刊登、查詢、接案、結案與取消。

from flask import Blueprint, jsonify, request
from caddylink.routes import json_body
from caddylink.services.matching_service import MatchingService

matching_bp = Blueprint('matching', __name__, url_prefix='/api/matching')

@matching_bp.route('/requests', methods=['GET'])
def list_requests():
    """篩選: status, location (部分比對), targetType, requesterId；分頁: page, limit"""
    requests, pagination = MatchingService.list_requests(
        status=request.args.get('status'),
        location=request.args.get('location'),
        target_type=request.args.get('targetType'),
        requester_id=request.args.get('requesterId', type=int),
        page=request.args.get('page', 1, type=int),
        limit=request.args.get('limit', 20, type=int),
    )
    return jsonify({
        'success': True,
        'data': [r.to_dict() for r in requests],
        'pagination': pagination,
    })

@matching_bp.route('/requests', methods=['POST'])
def create_request():
    """
    刊登媒合需求 (發起人角色由會員資料決定)
    Payload: { "requesterId": 1, "targetType": "caddy", "title": "...", "description": "...",
               "location": "제주도", "date": "2024-03-15", "budget": 800000, "tournamentId": null }
    """
    data = json_body()
    matching_request = MatchingService.create_request(
        data.get('requesterId'),
        data.get('targetType'),
        data.get('title'),
        data.get('description'),
        data.get('location'),
        data.get('date'),
        data.get('budget'),
        tournament_id=data.get('tournamentId'),
    )
    return jsonify({
        'success': True,
        'data': matching_request.to_dict(),
        'message': '매칭 요청이 생성되었습니다.',
    }), 201

@matching_bp.route('/requests/<int:request_id>', methods=['GET'])
def get_request(request_id):
    return jsonify({'success': True, 'data': MatchingService.get_request(request_id).to_dict()})

@matching_bp.route('/requests/<int:request_id>/match', methods=['POST'])
def match_request(request_id):
    """Payload: { "userId": 5 } (接案會員)"""
    data = json_body()
    matching_request = MatchingService.match_request(request_id, data.get('userId'))
    return jsonify({'success': True, 'data': matching_request.to_dict()})

@matching_bp.route('/requests/<int:request_id>/complete', methods=['POST'])
def complete_request(request_id):
    """Payload: { "requesterId": 1 }"""
    data = json_body()
    matching_request = MatchingService.complete_request(request_id, data.get('requesterId'))
    return jsonify({'success': True, 'data': matching_request.to_dict()})

@matching_bp.route('/requests/<int:request_id>/cancel', methods=['POST'])
def cancel_request(request_id):
    """Payload: { "requesterId": 1 }"""
    data = json_body()
    matching_request = MatchingService.cancel_request(request_id, data.get('requesterId'))
    return jsonify({'success': True, 'data': matching_request.to_dict()})
