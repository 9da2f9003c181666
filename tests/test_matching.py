# tests/test_matching.py
import pytest

from caddylink.exceptions import InvalidStateError, PermissionDeniedError, ValidationError
from caddylink.models.notification import Notification
from caddylink.services.matching_service import MatchingService


@pytest.fixture
def pro(make_user):
    return make_user('tour_pro', name='김프로')


@pytest.fixture
def post_request(pro):

    def _post(**overrides):
        values = {
            'requester_id': pro.id,
            'target_type': 'caddy',
            'title': '2024 투어 대회 캐디 필요',
            'description': '3월 제주도 대회에서 경험 많은 캐디를 찾고 있습니다.',
            'location': '제주도 서귀포',
            'date': '2024-03-15',
            'budget': 800000,
        }
        values.update(overrides)
        return MatchingService.create_request(**values)

    return _post


def test_requester_type_comes_from_member(post_request):
    req = post_request()
    assert req.status == 'pending'
    assert req.requester_type == 'tour_pro'


@pytest.mark.parametrize('overrides', [
    {'target_type': 'sponsor'},
    {'title': ' '},
    {'description': '캐디 구함'},
    {'location': ''},
    {'date': None},
    {'date': '3월 15일'},
    {'budget': -1},
    {'budget': 1.5},
    {'requester_id': 'me'},
])
def test_invalid_requests(post_request, overrides):
    with pytest.raises(ValidationError):
        post_request(**overrides)


def test_match_then_complete(post_request, pro, make_user):
    caddy = make_user('caddy')
    req = post_request()

    matched = MatchingService.match_request(req.id, caddy.id)
    assert matched.status == 'matched'
    assert matched.matched_user_id == caddy.id
    assert Notification.query.filter_by(recipient_id=pro.id, template_kind='matching_matched').count() == 1

    with pytest.raises(InvalidStateError):
        MatchingService.match_request(req.id, make_user('caddy').id)

    assert MatchingService.complete_request(req.id, pro.id).status == 'completed'
    with pytest.raises(InvalidStateError):
        MatchingService.cancel_request(req.id, pro.id)


def test_provider_role_must_match_target(post_request, pro, make_user):
    req = post_request()
    with pytest.raises(ValidationError):
        MatchingService.match_request(req.id, make_user('amateur').id)
    with pytest.raises(ValidationError):
        MatchingService.match_request(post_request(target_type='tour_pro').id, pro.id)
    assert MatchingService.get_request(req.id).status == 'pending'


def test_only_requester_can_close(post_request, make_user):
    caddy = make_user('caddy')
    req = post_request()
    MatchingService.match_request(req.id, caddy.id)

    with pytest.raises(PermissionDeniedError):
        MatchingService.complete_request(req.id, caddy.id)
    with pytest.raises(PermissionDeniedError):
        MatchingService.cancel_request(req.id, caddy.id)


def test_cancel_notifies_matched_member(post_request, pro, make_user):
    caddy = make_user('caddy')
    req = post_request()
    MatchingService.match_request(req.id, caddy.id)

    assert MatchingService.cancel_request(req.id, pro.id).status == 'cancelled'
    assert Notification.query.filter_by(recipient_id=caddy.id, template_kind='matching_cancelled').count() == 1


def test_pending_request_cannot_complete(post_request, pro):
    req = post_request()
    with pytest.raises(InvalidStateError):
        MatchingService.complete_request(req.id, pro.id)


def test_list_filters(post_request, make_user):
    jeju = post_request()
    yangpyeong = post_request(requester_id=make_user('amateur').id, location='경기도 양평')
    agency_wanted = post_request(target_type='agency', location='서울')
    MatchingService.cancel_request(agency_wanted.id, agency_wanted.requester_id)

    items, _ = MatchingService.list_requests(location='제주')
    assert [r.id for r in items] == [jeju.id]

    items, _ = MatchingService.list_requests(status='pending', target_type='caddy')
    assert {r.id for r in items} == {jeju.id, yangpyeong.id}

    items, pagination = MatchingService.list_requests(limit=2)
    assert len(items) == 2
    assert pagination['total'] == 3 and pagination['total_pages'] == 2

    with pytest.raises(ValidationError):
        MatchingService.list_requests(limit=0)


def test_matching_routes(client, pro, make_user):
    caddy = make_user('caddy')
    resp = client.post('/api/matching/requests', json={
        'requesterId': pro.id, 'targetType': 'caddy', 'title': '주말 대회 캐디',
        'description': '주말 대회에서 함께할 캐디를 찾습니다.', 'location': '제주도',
        'date': '2024-03-15', 'budget': 500000,
    })
    assert resp.status_code == 201
    request_id = resp.get_json()['data']['id']

    listed = client.get('/api/matching/requests',
                        query_string={'location': '제주', 'targetType': 'caddy'}).get_json()
    assert [r['id'] for r in listed['data']] == [request_id]
    assert listed['pagination']['page'] == 1

    matched = client.post(f'/api/matching/requests/{request_id}/match', json={'userId': caddy.id})
    assert matched.get_json()['data']['status'] == 'matched'

    assert client.post(f'/api/matching/requests/{request_id}/complete',
                       json={'requesterId': caddy.id}).status_code == 403
    done = client.post(f'/api/matching/requests/{request_id}/complete', json={'requesterId': pro.id})
    assert done.get_json()['data']['status'] == 'completed'

    bad = client.post('/api/matching/requests', json={'requesterId': pro.id, 'targetType': 'caddy'})
    assert bad.status_code == 400
    assert len(bad.get_json()['errors']) >= 4
    assert client.get('/api/matching/requests?page=0').status_code == 400
