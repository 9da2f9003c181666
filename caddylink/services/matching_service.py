# caddylink/services/matching_service.py
import logging
from datetime import datetime
from flask import current_app
from caddylink import db
from caddylink.exceptions import InvalidStateError, NotFoundError, PermissionDeniedError, ValidationError
from caddylink.models.matching import (
    MatchingRequest, TARGET_TYPES,
    REQUEST_PENDING, REQUEST_MATCHED, REQUEST_COMPLETED, REQUEST_CANCELLED,
)
from caddylink.models.tournament import Tournament
from caddylink.models.user import User
from caddylink.services.contract_service import parse_datetime
from caddylink.utils.pagination import paginate

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 10


def _get_user(user_id, label):
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise ValidationError(f'{label} must be a user id')
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(f'User {user_id} not found')
    return user


class MatchingService:
    """
    媒合需求看板
    發起人公開需求 (pending)，符合目標角色的會員接案後為 matched，
    完成後由發起人結案；pending / matched 階段發起人可取消。
    """

    @staticmethod
    def _notifier():
        return current_app.extensions['notifier']

    @staticmethod
    def create_request(requester_id, target_type, title, description, location, date, budget,
                       tournament_id=None):
        requester = _get_user(requester_id, 'requester_id')

        errors = []
        if target_type not in TARGET_TYPES:
            errors.append(f'target_type must be one of {", ".join(TARGET_TYPES)}')
        if not isinstance(title, str) or not title.strip():
            errors.append('title is required')
        if not isinstance(description, str) or len(description.strip()) < MIN_DESCRIPTION_LENGTH:
            errors.append(f'description must be at least {MIN_DESCRIPTION_LENGTH} characters')
        if not isinstance(location, str) or not location.strip():
            errors.append('location is required')
        if date is None:
            errors.append('date is required')
        if isinstance(budget, bool) or not isinstance(budget, int) or budget < 0:
            errors.append('budget must be an integer >= 0')
        if tournament_id is not None and (isinstance(tournament_id, bool) or not isinstance(tournament_id, int)):
            errors.append('tournament_id must be an integer')
        if errors:
            raise ValidationError('Invalid matching request', errors=errors)

        if tournament_id is not None and not db.session.get(Tournament, tournament_id):
            raise NotFoundError(f'Tournament {tournament_id} not found')

        request = MatchingRequest(
            requester_id=requester.id,
            requester_type=requester.role,
            target_type=target_type,
            title=title.strip(),
            description=description.strip(),
            location=location.strip(),
            date=parse_datetime(date, 'date'),
            budget=budget,
            tournament_id=tournament_id,
            status=REQUEST_PENDING,
        )
        db.session.add(request)
        db.session.commit()
        logger.info("[Matching] Request %s: %s %s looking for %s",
                    request.id, requester.role, requester.id, target_type)
        return request

    @staticmethod
    def get_request(request_id):
        request = db.session.get(MatchingRequest, request_id)
        if not request:
            raise NotFoundError(f'Matching request {request_id} not found')
        return request

    @staticmethod
    def list_requests(status=None, location=None, target_type=None, requester_id=None, page=1, limit=20):
        query = MatchingRequest.query
        if status:
            query = query.filter(MatchingRequest.status == status)
        if location:
            # 地點不分大小寫部分比對
            query = query.filter(MatchingRequest.location.ilike(f'%{location}%'))
        if target_type:
            query = query.filter(MatchingRequest.target_type == target_type)
        if requester_id is not None:
            query = query.filter(MatchingRequest.requester_id == requester_id)
        query = query.order_by(MatchingRequest.created_at.desc(), MatchingRequest.id.desc())
        return paginate(query, page, limit)

    @staticmethod
    def _advance(request, expected, values, now):
        """條件式 UPDATE，狀態已被其他請求改變時拒絕"""
        values = dict(values, updated_at=now)
        rows = MatchingRequest.query.filter_by(id=request.id, status=expected).update(
            values, synchronize_session=False
        )
        if rows != 1:
            db.session.rollback()
            db.session.refresh(request)
            raise InvalidStateError(
                f'Matching request {request.id} is {request.status}', current_status=request.status
            )

    @staticmethod
    def match_request(request_id, provider_id, now=None):
        """pending -> matched；接案會員的角色必須是需求的目標角色"""
        now = now or datetime.utcnow()
        request = MatchingService.get_request(request_id)
        provider = _get_user(provider_id, 'provider_id')

        if request.status != REQUEST_PENDING:
            raise InvalidStateError(f'Matching request {request_id} is {request.status}',
                                    current_status=request.status)
        if provider.id == request.requester_id:
            raise ValidationError('Requesters cannot take their own request')
        if provider.role != request.target_type:
            raise ValidationError(f'This request is looking for a {request.target_type}, not a {provider.role}')

        MatchingService._advance(request, REQUEST_PENDING,
                                 {'status': REQUEST_MATCHED, 'matched_user_id': provider.id}, now)
        MatchingService._notifier().notify_user(request.requester_id, 'matching_matched', {
            'request_id': request_id,
            'title': request.title,
            'provider': provider.display_name,
        })
        db.session.commit()
        db.session.refresh(request)
        logger.info("[Matching] Request %s matched with user %s", request_id, provider.id)
        return request

    @staticmethod
    def complete_request(request_id, requester_id, now=None):
        """matched -> completed (僅發起人)"""
        now = now or datetime.utcnow()
        request = MatchingService.get_request(request_id)
        if requester_id != request.requester_id:
            raise PermissionDeniedError('Only the requester can complete this request')
        if request.status != REQUEST_MATCHED:
            raise InvalidStateError(f'Matching request {request_id} is {request.status}',
                                    current_status=request.status)

        MatchingService._advance(request, REQUEST_MATCHED, {'status': REQUEST_COMPLETED}, now)
        db.session.commit()
        db.session.refresh(request)
        logger.info("[Matching] Request %s completed", request_id)
        return request

    @staticmethod
    def cancel_request(request_id, requester_id, now=None):
        """pending / matched -> cancelled (僅發起人)"""
        now = now or datetime.utcnow()
        request = MatchingService.get_request(request_id)
        if requester_id != request.requester_id:
            raise PermissionDeniedError('Only the requester can cancel this request')
        if request.status not in (REQUEST_PENDING, REQUEST_MATCHED):
            raise InvalidStateError(f'Matching request {request_id} is {request.status}',
                                    current_status=request.status)

        matched_user_id = request.matched_user_id
        MatchingService._advance(request, request.status, {'status': REQUEST_CANCELLED}, now)
        if matched_user_id is not None:
            MatchingService._notifier().notify_user(matched_user_id, 'matching_cancelled', {
                'request_id': request_id,
                'title': request.title,
            })
        db.session.commit()
        db.session.refresh(request)
        logger.info("[Matching] Request %s cancelled", request_id)
        return request
