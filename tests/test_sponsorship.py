# tests/test_sponsorship.py
from datetime import datetime

import pytest

from caddylink import db
from caddylink.exceptions import InvalidStateError, PermissionDeniedError, ValidationError
from caddylink.models.contract import Contract
from caddylink.models.notification import Notification
from caddylink.services.sponsorship_service import SponsorshipService


@pytest.fixture
def parties(make_user):
    return make_user('sponsor', company_name='골프테크 코리아'), make_user('tour_pro', name='김프로')


@pytest.fixture
def propose(parties):
    sponsor, player = parties

    def _propose(**overrides):
        values = {
            'sponsor_id': sponsor.id,
            'player_id': player.id,
            'exposure_items': ['hat', 'golf_bag'],
            'start_date': '2024-03-01',
            'end_date': '2024-05-01',
            'amount': 20000000,
            'message': '모자와 골프백에 로고 노출을 원합니다.',
        }
        values.update(overrides)
        return SponsorshipService.create_proposal(**values)

    return _propose


def test_create_notifies_player(propose, parties):
    proposal = propose()

    assert proposal.status == 'proposed'
    assert proposal.start_date == datetime(2024, 3, 1)
    notes = Notification.query.filter_by(recipient_id=parties[1].id).all()
    assert [n.template_kind for n in notes] == ['sponsorship_proposed']


@pytest.mark.parametrize('overrides', [
    {'exposure_items': []},
    {'exposure_items': ['shoes']},
    {'amount': -1},
    {'amount': '20000000'},
    {'message': '짧음'},
    {'end_date': '2024-02-01'},
    {'start_date': 'next week'},
    {'is_tournament_based': 'yes'},
])
def test_invalid_proposals(propose, overrides):
    with pytest.raises(ValidationError):
        propose(**overrides)


def test_roles_are_checked(propose, make_user):
    with pytest.raises(ValidationError):
        propose(player_id=make_user('caddy').id)
    with pytest.raises(ValidationError):
        propose(sponsor_id=make_user('agency').id)


def test_accept_creates_sponsor_contract(propose, parties):
    sponsor, player = parties
    proposal = propose()

    accepted = SponsorshipService.respond(proposal.id, player.id, 'accept')

    assert accepted.status == 'accepted'
    contract = db.session.get(Contract, accepted.contract_id)
    assert contract.kind == 'tour_pro_sponsor'
    assert contract.status == 'pending'
    assert (contract.sponsor_id, contract.tour_pro_id) == (sponsor.id, player.id)
    assert contract.base_salary == 20000000
    assert contract.start_date == datetime(2024, 3, 1)
    assert contract.end_date == datetime(2024, 5, 1)
    assert contract.duration_months == 3
    assert contract.special_conditions[-1] == '스폰서 로고 노출 부위: 모자, 골프백'
    assert Notification.query.filter_by(recipient_id=sponsor.id, template_kind='sponsorship_accepted').count() == 1


def test_counter_then_accept_uses_counter_amount(propose, parties):
    _, player = parties
    proposal = propose()

    countered = SponsorshipService.respond(proposal.id, player.id, 'counter_propose',
                                           counter_amount=25000000, counter_message='금액 조정 부탁드립니다.')
    assert countered.status == 'counter_proposed'
    assert countered.agreed_amount == 25000000

    accepted = SponsorshipService.respond(proposal.id, player.id, 'accept')
    assert db.session.get(Contract, accepted.contract_id).base_salary == 25000000


def test_only_invited_player_may_respond(propose, parties, make_user):
    sponsor, _ = parties
    proposal = propose()

    for outsider in (sponsor.id, make_user('tour_pro').id, None):
        with pytest.raises(PermissionDeniedError):
            SponsorshipService.respond(proposal.id, outsider, 'accept')
    assert SponsorshipService.get_proposal(proposal.id).status == 'proposed'


def test_answered_proposal_is_final(propose, parties):
    _, player = parties
    proposal = propose()
    SponsorshipService.respond(proposal.id, player.id, 'reject')

    with pytest.raises(InvalidStateError):
        SponsorshipService.respond(proposal.id, player.id, 'accept')
    assert Contract.query.count() == 0


@pytest.mark.parametrize('action, amount, message', [
    ('counter_propose', None, '금액 조정 부탁드립니다.'),
    ('counter_propose', 0, '금액 조정 부탁드립니다.'),
    ('counter_propose', 25000000, ' '),
    ('maybe', None, None),
    (['accept'], None, None),
])
def test_invalid_responses(propose, parties, action, amount, message):
    _, player = parties
    proposal = propose()
    with pytest.raises(ValidationError):
        SponsorshipService.respond(proposal.id, player.id, action, counter_amount=amount, counter_message=message)


def test_list_filters_and_pagination(propose, parties):
    _, player = parties
    first = propose()
    second = propose(exposure_items=['shirt', 'pants'], is_tournament_based=True)
    third = propose(exposure_items=['hat'])
    SponsorshipService.respond(first.id, player.id, 'reject')

    items, _ = SponsorshipService.list_proposals(exposure_item='hat')
    assert {p.id for p in items} == {first.id, third.id}

    items, _ = SponsorshipService.list_proposals(is_tournament_based=True)
    assert [p.id for p in items] == [second.id]

    items, _ = SponsorshipService.list_proposals(status='proposed')
    assert {p.id for p in items} == {second.id, third.id}

    items, pagination = SponsorshipService.list_proposals(player_id=player.id, page=2, limit=2)
    assert len(items) == 1
    assert pagination == {'page': 2, 'limit': 2, 'total': 3, 'total_pages': 2}

    with pytest.raises(ValidationError):
        SponsorshipService.list_proposals(exposure_item='shoes')


def test_proposal_routes(client, parties):
    sponsor, player = parties
    resp = client.post('/api/sponsorship/proposals', json={
        'sponsorId': sponsor.id, 'playerId': player.id,
        'exposureItems': ['shirt'], 'startDate': '2024-04-01', 'endDate': '2024-06-01',
        'amount': 15000000, 'isTournamentBased': False,
        'message': '상의 스폰서십을 제안드립니다.',
    })
    assert resp.status_code == 201
    proposal_id = resp.get_json()['data']['id']

    listed = client.get(f'/api/sponsorship/proposals?playerId={player.id}&isTournamentBased=false').get_json()
    assert [p['id'] for p in listed['data']] == [proposal_id]
    assert listed['pagination']['total'] == 1

    forbidden = client.post(f'/api/sponsorship/proposals/{proposal_id}/response',
                            json={'playerId': sponsor.id, 'action': 'accept'})
    assert forbidden.status_code == 403
    assert forbidden.get_json()['code'] == 'FORBIDDEN'

    resp = client.post(f'/api/sponsorship/proposals/{proposal_id}/response',
                       json={'playerId': player.id, 'action': 'accept'})
    assert resp.status_code == 200
    data = resp.get_json()['data']
    assert data['status'] == 'accepted'

    contract = client.get(f'/api/contracts/{data["contract_id"]}').get_json()['data']
    assert contract['kind'] == 'tour_pro_sponsor'
    assert contract['terms']['base_salary'] == 15000000

    again = client.post(f'/api/sponsorship/proposals/{proposal_id}/response',
                        json={'playerId': player.id, 'action': 'reject'})
    assert again.status_code == 400
    assert again.get_json()['code'] == 'INVALID_STATE'

    assert client.get('/api/sponsorship/proposals/999').status_code == 404
