# caddylink/services/sponsorship_service.py
"""
贊助提案流程

    贊助商提案 (proposed)
      -> 選手接受 (accepted)，同時產生一份 pending 的投巡選手-贊助合約
      -> 選手拒絕 (rejected)
      -> 選手還價 (counter_proposed)，之後仍由選手決定接受 / 拒絕 / 再次還價

只有受邀的選手可以回覆提案。
"""
import logging
import math
from datetime import datetime
from flask import current_app
from sqlalchemy import String, cast
from caddylink import db
from caddylink.exceptions import InvalidStateError, NotFoundError, PermissionDeniedError, ValidationError
from caddylink.models.sponsorship import (
    SponsorshipProposal, EXPOSURE_ITEMS, PROPOSAL_TRANSITIONS,
    PROPOSAL_PROPOSED, PROPOSAL_ACCEPTED, PROPOSAL_REJECTED, PROPOSAL_COUNTER,
)
from caddylink.models.tournament import Tournament
from caddylink.models.user import User
from caddylink.services.contract_service import ContractService, parse_datetime
from caddylink.services.contract_template import ContractTemplateGenerator
from caddylink.utils.pagination import paginate

logger = logging.getLogger(__name__)

# 回覆動作 -> 提案狀態
RESPONSE_ACTIONS = {
    'accept': PROPOSAL_ACCEPTED,
    'reject': PROPOSAL_REJECTED,
    'counter_propose': PROPOSAL_COUNTER,
}

EXPOSURE_LABELS = {'golf_bag': '골프백', 'hat': '모자', 'shirt': '상의', 'pants': '하의'}

MIN_MESSAGE_LENGTH = 10


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _load_member(user_id, role, label):
    if not _is_int(user_id):
        raise ValidationError(f'{label} must be a user id')
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(f'User {user_id} not found')
    if user.role != role:
        raise ValidationError(f'User {user_id} is a {user.role}, expected {role}')
    return user


class SponsorshipService:

    @staticmethod
    def _notifier():
        return current_app.extensions['notifier']

    @staticmethod
    def _validate(data):
        errors = []

        items = data.get('exposure_items')
        if not isinstance(items, list) or not items:
            errors.append('exposure_items must be a non-empty list')
        elif any(not isinstance(i, str) or i not in EXPOSURE_ITEMS for i in items):
            errors.append(f'exposure_items must be chosen from {", ".join(EXPOSURE_ITEMS)}')

        amount = data.get('amount')
        if not _is_int(amount) or amount < 0:
            errors.append('amount must be an integer >= 0')

        message = data.get('message')
        if not isinstance(message, str) or len(message.strip()) < MIN_MESSAGE_LENGTH:
            errors.append(f'message must be at least {MIN_MESSAGE_LENGTH} characters')

        if not isinstance(data.get('is_tournament_based', False), bool):
            errors.append('is_tournament_based must be true or false')

        start, end = data.get('start_date'), data.get('end_date')
        if start is None or end is None:
            errors.append('start_date and end_date are required')
        elif start >= end:
            errors.append('end_date must be later than start_date')

        if errors:
            raise ValidationError('Invalid sponsorship proposal', errors=errors)

    @staticmethod
    def create_proposal(sponsor_id, player_id, exposure_items, start_date, end_date, amount, message,
                        is_tournament_based=False, tournament_id=None):
        sponsor = _load_member(sponsor_id, 'sponsor', 'sponsor_id')
        player = _load_member(player_id, 'tour_pro', 'player_id')

        data = {
            'exposure_items': exposure_items,
            'start_date': parse_datetime(start_date, 'start_date'),
            'end_date': parse_datetime(end_date, 'end_date'),
            'amount': amount,
            'message': message,
            'is_tournament_based': is_tournament_based,
        }
        SponsorshipService._validate(data)

        if tournament_id is not None:
            if not _is_int(tournament_id):
                raise ValidationError('tournament_id must be an integer')
            if not db.session.get(Tournament, tournament_id):
                raise NotFoundError(f'Tournament {tournament_id} not found')

        proposal = SponsorshipProposal(
            sponsor_id=sponsor.id,
            player_id=player.id,
            tournament_id=tournament_id,
            exposure_items=list(dict.fromkeys(exposure_items)),
            start_date=data['start_date'],
            end_date=data['end_date'],
            amount=amount,
            is_tournament_based=is_tournament_based,
            message=message.strip(),
            status=PROPOSAL_PROPOSED,
        )
        db.session.add(proposal)
        db.session.flush()

        SponsorshipService._notifier().notify_user(player.id, 'sponsorship_proposed', {
            'proposal_id': proposal.id,
            'sponsor': sponsor.display_name,
            'amount': amount,
            'exposure_items': proposal.exposure_items,
        })
        db.session.commit()

        logger.info("[Sponsorship] Proposal %s: sponsor %s -> player %s (%s)",
                    proposal.id, sponsor.id, player.id, f'{amount:,}')
        return proposal

    @staticmethod
    def get_proposal(proposal_id):
        proposal = db.session.get(SponsorshipProposal, proposal_id)
        if not proposal:
            raise NotFoundError(f'Sponsorship proposal {proposal_id} not found')
        return proposal

    @staticmethod
    def list_proposals(status=None, sponsor_id=None, player_id=None, exposure_item=None,
                       is_tournament_based=None, page=1, limit=20):
        query = SponsorshipProposal.query
        if status:
            query = query.filter(SponsorshipProposal.status == status)
        if sponsor_id is not None:
            query = query.filter(SponsorshipProposal.sponsor_id == sponsor_id)
        if player_id is not None:
            query = query.filter(SponsorshipProposal.player_id == player_id)
        if exposure_item:
            if exposure_item not in EXPOSURE_ITEMS:
                raise ValidationError(f'exposure_item must be one of {", ".join(EXPOSURE_ITEMS)}')
            # JSON 陣列以文字比對 "hat" 這種帶引號的元素
            query = query.filter(cast(SponsorshipProposal.exposure_items, String).like(f'%"{exposure_item}"%'))
        if is_tournament_based is not None:
            query = query.filter(SponsorshipProposal.is_tournament_based == is_tournament_based)

        query = query.order_by(SponsorshipProposal.created_at.desc(), SponsorshipProposal.id.desc())
        return paginate(query, page, limit)

    @staticmethod
    def _create_contract(proposal):
        """依提案條件產生投巡選手-贊助合約 (pending，尚未提交)"""
        player = db.session.get(User, proposal.player_id)
        sponsor = db.session.get(User, proposal.sponsor_id)

        contract = ContractTemplateGenerator.generate(
            'tour_pro', 'sponsor', player, sponsor,
            custom_terms={'base_salary': proposal.agreed_amount},
            start_date=proposal.start_date,
        )
        days = (proposal.end_date - proposal.start_date).days
        contract.end_date = proposal.end_date
        contract.duration_months = max(1, math.ceil(days / 30))
        contract.tournament_id = proposal.tournament_id
        exposure = ', '.join(EXPOSURE_LABELS[i] for i in proposal.exposure_items)
        contract.special_conditions = contract.special_conditions + [f'스폰서 로고 노출 부위: {exposure}']
        return ContractService.save_new_contract(contract, commit=False)

    @staticmethod
    def respond(proposal_id, responder_id, action, counter_amount=None, counter_message=None, now=None):
        """
        選手回覆提案
        :param action: accept / reject / counter_propose
        :return: 更新後的提案；接受時 proposal.contract_id 指向新合約
        """
        now = now or datetime.utcnow()
        proposal = SponsorshipService.get_proposal(proposal_id)

        if responder_id != proposal.player_id:
            raise PermissionDeniedError('Only the invited player can respond to this proposal')

        current = proposal.status
        if not PROPOSAL_TRANSITIONS[current]:
            raise InvalidStateError(f'Proposal {proposal_id} has already been {current}', current_status=current)

        target = RESPONSE_ACTIONS.get(action) if isinstance(action, str) else None
        if target is None:
            raise ValidationError(f'action must be one of {", ".join(RESPONSE_ACTIONS)}')

        values = {'status': target, 'updated_at': now}
        if target == PROPOSAL_COUNTER:
            if not _is_int(counter_amount) or counter_amount <= 0:
                raise ValidationError('counter_amount must be a positive integer')
            if not isinstance(counter_message, str) or not counter_message.strip():
                raise ValidationError('counter_message is required for a counter proposal')
            values['counter_amount'] = counter_amount
            values['counter_message'] = counter_message.strip()
        elif target == PROPOSAL_ACCEPTED:
            contract = SponsorshipService._create_contract(proposal)
            values['contract_id'] = contract.id

        # Compare-and-swap: 同時兩個回覆只有一個會成功
        rows = SponsorshipProposal.query.filter_by(id=proposal_id, status=current).update(
            values, synchronize_session=False
        )
        if rows != 1:
            db.session.rollback()
            db.session.refresh(proposal)
            raise InvalidStateError(f'Proposal {proposal_id} was answered concurrently',
                                    current_status=proposal.status)

        payload = {'proposal_id': proposal_id, 'action': action}
        if target == PROPOSAL_COUNTER:
            payload.update(counter_amount=counter_amount, counter_message=values['counter_message'])
        SponsorshipService._notifier().notify_user(
            proposal.sponsor_id, f'sponsorship_{target}', payload, contract_id=values.get('contract_id')
        )
        db.session.commit()
        db.session.refresh(proposal)

        logger.info("[Sponsorship] Proposal %s: %s -> %s%s", proposal_id, current, target,
                    f' (contract {proposal.contract_id})' if proposal.contract_id else '')
        return proposal
