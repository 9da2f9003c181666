# tests/test_routes.py
from datetime import datetime, timedelta

from caddylink.models.contract import ContractCancellation
from caddylink.services.settlement_service import SettlementService


def _cancel(client, contract_id, **overrides):
    payload = {'contractId': contract_id, 'whoCancelled': 'golfer', 'reason': '일정 변경'}
    payload.update(overrides)
    return client.post('/api/contracts/cancel', json=payload)


def test_health(client):
    resp = client.get('/')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'online'


def test_register_and_login(client):
    resp = client.post('/api/auth/register', json={
        'username': 'caddy_kim', 'email': 'kim@example.com', 'password': 'pw1234',
        'role': 'caddy', 'name': '김캐디',
    })
    assert resp.status_code == 201
    assert resp.get_json()['user']['role'] == 'caddy'

    dup = client.post('/api/auth/register', json={
        'username': 'caddy_kim', 'email': 'other@example.com', 'password': 'pw', 'role': 'caddy',
    })
    assert dup.status_code == 400

    assert client.post('/api/auth/login', json={'username': 'caddy_kim', 'password': 'pw1234'}).status_code == 200
    assert client.post('/api/auth/login', json={'username': 'caddy_kim', 'password': 'nope'}).status_code == 401


def test_register_rejects_unknown_role(client):
    resp = client.post('/api/auth/register', json={
        'username': 'x', 'email': 'x@example.com', 'password': 'pw', 'role': 'coach',
    })
    assert resp.status_code == 400


def test_cancel_contract(client, make_contract):
    contract = make_contract()

    resp = _cancel(client, contract.id)

    assert resp.status_code == 200
    body = resp.get_json()
    assert body['success'] is True
    assert body['contractId'] == contract.id
    assert body['newStatus'] == 'cancelled'
    assert body['cancellation']['penalty_amount'] == 100000
    assert body['cancellation']['beneficiary'] == 'caddy'
    assert body['cancellation']['status'] == 'pending'

    detail = client.get(f'/api/contracts/{contract.id}').get_json()['data']
    assert detail['status'] == 'cancelled'
    assert detail['cancellation']['penalty_amount'] == 100000


def test_cancel_twice_is_rejected(client, make_contract):
    contract = make_contract()
    _cancel(client, contract.id)

    resp = _cancel(client, contract.id, penaltyPercent=50)

    assert resp.status_code == 400
    assert resp.get_json()['code'] == 'INVALID_STATE'
    assert ContractCancellation.query.filter_by(contract_id=contract.id).one().penalty_percent == 20


def test_cancel_errors(client, make_contract):
    assert _cancel(client, 'ctr_missing').status_code == 404

    contract = make_contract()
    resp = _cancel(client, contract.id, reason='  ')
    assert resp.status_code == 400
    assert resp.get_json()['code'] == 'VALIDATION_ERROR'

    resp = _cancel(client, contract.id, penaltyPercent=150)
    assert resp.status_code == 400

    resp = client.post('/api/contracts/cancel', json={})
    assert resp.status_code == 400

    sponsor_deal = make_contract(kind='tour_pro_sponsor')
    resp = _cancel(client, sponsor_deal.id, whoCancelled='caddy')
    assert resp.status_code == 400
    assert resp.get_json()['code'] == 'UNSUPPORTED_COMBINATION'


def test_create_contract_from_template(client, make_user):
    pro = make_user('tour_pro', name='김프로')
    caddy = make_user('caddy', name='이캐디')
    saved = client.post('/api/admin/tournaments/results', json={
        'tournament_name': '한국여자오픈',
        'results': [{'player_name': '김프로', 'rank': 1, 'prize_amount': 300000000}],
    })
    assert saved.status_code == 201
    tournament_id = saved.get_json()['tournament']['id']

    resp = client.post('/api/contracts/create', json={
        'role1': 'tour_pro', 'role2': 'caddy',
        'party1_id': pro.id, 'party2_id': caddy.id,
        'tournament_id': tournament_id,
        'custom_terms': {'base_salary': 800000},
    })

    assert resp.status_code == 201
    data = resp.get_json()['data']
    assert data['status'] == 'pending'
    assert data['kind'] == 'tour_pro_caddy'
    assert data['terms']['base_salary'] == 800000

    accepted = client.post(f'/api/contracts/{data["id"]}/accept')
    assert accepted.get_json()['data']['status'] == 'active'

    summary = client.get(f'/api/contracts/{data["id"]}/summary')
    assert '김프로' in summary.get_json()['summary']


def test_create_contract_unsupported_pair(client, make_user):
    sponsor = make_user('sponsor')
    caddy = make_user('caddy')
    resp = client.post('/api/contracts/create', json={
        'role1': 'sponsor', 'role2': 'caddy', 'party1_id': sponsor.id, 'party2_id': caddy.id,
    })
    assert resp.status_code == 400
    assert resp.get_json()['code'] == 'CONTRACT_UNSUPPORTED'


def test_list_contracts_filters(client, make_contract):
    active = make_contract()
    make_contract(activate=False)

    body = client.get('/api/contracts?status=active').get_json()
    assert [c['id'] for c in body['data']] == [active.id]

    body = client.get(f'/api/contracts?user_id={active.caddy_id}').get_json()
    assert body['total'] == 1


def test_payout_routes(client):
    saved = client.post('/api/admin/tournaments/results', json={
        'tournament_name': 'KLPGA 챔피언십',
        'results': [
            {'player_name': 'A', 'rank': 5, 'prize_amount': 30000000},
            {'player_name': 'B', 'rank': 35, 'prize_amount': 3000000},
        ],
    })
    tournament_id = saved.get_json()['tournament']['id']

    resp = client.post(f'/api/payouts/calculate?tournamentId={tournament_id}')
    assert resp.status_code == 200
    body = resp.get_json()
    assert [(p['rank'], p['payout_amount']) for p in body['payouts']] == [(5, 3000000), (35, 150000)]
    assert body['summary']['total_payout'] == 3150000

    payout_id = body['payouts'][0]['id']
    assert client.post(f'/api/payouts/confirm/{payout_id}').status_code == 200
    assert client.post(f'/api/payouts/confirm/{payout_id}').status_code == 400

    listed = client.get(f'/api/payouts/{tournament_id}').get_json()
    assert listed['summary']['paid_count'] == 1
    assert listed['summary']['unpaid_amount'] == 150000

    assert client.post('/api/payouts/calculate').status_code == 400
    assert client.post('/api/payouts/calculate?tournamentId=999').status_code == 404


def test_invalid_tournament_results(client):
    resp = client.post('/api/admin/tournaments/results', json={
        'tournament_name': 'Bad Open',
        'results': [{'player_name': 'A', 'rank': -1, 'prize_amount': 100}],
    })
    assert resp.status_code == 400
    assert resp.get_json()['errors']


def test_admin_settlement_resubmit(client, make_contract, gateway):
    gateway.fail_times = 3
    contract = make_contract()
    _cancel(client, contract.id)
    start = datetime.utcnow() + timedelta(minutes=1)
    for step in range(3):
        SettlementService.process_due_jobs(now=start + timedelta(hours=step))

    failed = client.get('/api/admin/settlements?status=failed').get_json()['data']
    assert [job['contract_id'] for job in failed] == [contract.id]

    resp = client.post(f'/api/admin/settlements/{contract.id}/resubmit')
    assert resp.status_code == 200
    assert resp.get_json()['data']['status'] == 'queued'

    assert client.post(f'/api/admin/settlements/{contract.id}/resubmit').status_code == 400
    assert client.post('/api/admin/settlements/ctr_missing/resubmit').status_code == 404


def test_dashboard(client, make_contract):
    contract = make_contract()
    make_contract(activate=False)
    _cancel(client, contract.id)

    body = client.get('/api/admin/dashboard').get_json()

    assert body['contracts'] == {'cancelled': 1, 'pending': 1}
    assert body['settlements'] == {'queued': 1}
    assert body['penalty_total'] == 100000
    assert body['users']['by_role'] == {'tour_pro': 2, 'caddy': 2}


def test_unknown_route_returns_json(client):
    resp = client.get('/api/nothing-here')
    assert resp.status_code == 404
    assert resp.get_json()['success'] is False


def test_create_contract_rejects_malformed_terms(client, make_user):
    amateur, caddy = make_user('amateur'), make_user('caddy')
    base = {'role1': 'amateur', 'role2': 'caddy', 'party1_id': amateur.id, 'party2_id': caddy.id}

    for custom_terms in ({'base_salary': '500000'}, 'cheap', {'penalty_rate': 5}):
        resp = client.post('/api/contracts/create', json=dict(base, custom_terms=custom_terms))
        assert resp.status_code == 400
        assert resp.get_json()['code'] == 'VALIDATION_ERROR'

    resp = client.post('/api/contracts/create', json=dict(base, party1_id='1'))
    assert resp.status_code == 400

    resp = client.post('/api/contracts/create', json={'contract': {
        'kind': 'amateur_caddy', 'amateur_id': amateur.id, 'caddy_id': caddy.id,
        'contract_type': 'training', 'title': '레슨', 'base_salary': '500000',
        'tournament_count': 1, 'duration_months': 1,
        'start_date': '2024-03-01T00:00:00', 'end_date': '2024-04-01T00:00:00',
    }})
    assert resp.status_code == 400
    assert 'base_salary must be an integer' in resp.get_json()['errors']


def test_non_object_bodies_are_rejected(client, make_contract):
    payout_saved = client.post('/api/admin/tournaments/results', json={
        'tournament_name': 'KLPGA 챔피언십',
        'results': [{'player_name': 'A', 'rank': 5, 'prize_amount': 30000000}],
    })
    tournament_id = payout_saved.get_json()['tournament']['id']
    payout_id = client.post(f'/api/payouts/calculate?tournamentId={tournament_id}').get_json()['payouts'][0]['id']

    for url in ('/api/contracts/create', '/api/contracts/cancel', '/api/admin/tournaments/results',
                '/api/auth/register', '/api/auth/login', f'/api/payouts/confirm/{payout_id}'):
        resp = client.post(url, json=[1])
        assert resp.status_code == 400, url
        assert resp.get_json()['success'] is False

    # 無本文時確認付款仍可執行
    assert client.post(f'/api/payouts/confirm/{payout_id}').status_code == 200
