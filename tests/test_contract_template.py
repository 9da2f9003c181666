# tests/test_contract_template.py
from datetime import datetime, timedelta

import pytest

from caddylink.exceptions import ContractUnsupportedError, UnsupportedCombinationError, ValidationError
from caddylink.models.tournament import Tournament
from caddylink.services.contract_service import ContractService
from caddylink.services.contract_template import ContractTemplateGenerator
from caddylink import db


@pytest.fixture
def tournament(app):
    t = Tournament(name='제주 블루원 오픈', location='제주', prize_money=1000000000)
    db.session.add(t)
    db.session.commit()
    return t


def test_tour_pro_caddy_defaults(make_user, tournament):
    pro, caddy = make_user('tour_pro'), make_user('caddy')
    start = datetime(2024, 2, 1)

    contract = ContractTemplateGenerator.generate('tour_pro', 'caddy', pro, caddy,
                                                  tournament=tournament, start_date=start)

    assert contract.status == 'pending'
    assert contract.kind == 'tour_pro_caddy'
    assert contract.contract_type == 'tournament'
    assert (contract.tour_pro_id, contract.caddy_id) == (pro.id, caddy.id)
    assert contract.sponsor_id is None and contract.amateur_id is None
    assert contract.tournament_id == tournament.id
    assert contract.base_salary == 500000
    assert contract.penalty_rate == 20
    assert contract.notice_period_days == 30
    assert contract.overseas_visa is True
    assert contract.end_date == start + timedelta(days=12 * 30)
    assert tournament.name in contract.title


def test_tour_pro_sponsor_defaults(make_user):
    pro = make_user('tour_pro')
    sponsor = make_user('sponsor', company_name='골프코리아')

    contract = ContractTemplateGenerator.generate('tour_pro', 'sponsor', pro, sponsor)

    assert contract.kind == 'tour_pro_sponsor'
    assert contract.contract_type == 'sponsorship'
    assert contract.base_salary == 10000000
    assert contract.duration_months == 24
    assert contract.penalty_rate == 30
    assert contract.domestic_transportation is False
    assert contract.title.startswith('골프코리아')


def test_amateur_caddy_defaults(make_user):
    amateur, caddy = make_user('amateur'), make_user('caddy')

    contract = ContractTemplateGenerator.generate('amateur', 'caddy', amateur, caddy)

    assert contract.kind == 'amateur_caddy'
    assert contract.contract_type == 'training'
    assert contract.base_salary == 200000
    assert contract.penalty_rate == 10
    assert contract.win_bonus_percentage == 0
    assert contract.tournament_bonus_participation == 100000


def test_custom_terms_override_defaults(make_user):
    amateur, caddy = make_user('amateur'), make_user('caddy')

    contract = ContractTemplateGenerator.generate(
        'amateur', 'caddy', amateur, caddy,
        custom_terms={'base_salary': 300000, 'conditions': {'penalty_rate': 5}}
    )

    assert contract.base_salary == 300000
    assert contract.penalty_rate == 5
    # 未覆蓋的巢狀欄位保留預設值
    assert contract.duration_months == 1
    assert contract.notice_period_days == 7


def test_invalid_override_is_rejected(make_user):
    amateur, caddy = make_user('amateur'), make_user('caddy')
    with pytest.raises(ValidationError):
        ContractTemplateGenerator.generate('amateur', 'caddy', amateur, caddy,
                                           custom_terms={'conditions': {'penalty_rate': 150}})


@pytest.mark.parametrize('role1, role2', [('caddy', 'sponsor'), ('amateur', 'sponsor'), ('sponsor', 'tour_pro')])
def test_unsupported_role_pairs(make_user, role1, role2):
    with pytest.raises(ContractUnsupportedError) as exc:
        ContractTemplateGenerator.generate(role1, role2, make_user(role1), make_user(role2))
    assert isinstance(exc.value, UnsupportedCombinationError)


def test_tour_pro_caddy_requires_tournament(make_user):
    with pytest.raises(ValidationError):
        ContractTemplateGenerator.generate('tour_pro', 'caddy', make_user('tour_pro'), make_user('caddy'))


def test_party_role_must_match(make_user, tournament):
    with pytest.raises(ValidationError):
        ContractTemplateGenerator.generate('tour_pro', 'caddy', make_user('amateur'), make_user('caddy'),
                                           tournament=tournament)


def test_summary_lists_parties_and_terms(make_user, tournament):
    pro = make_user('tour_pro', name='김효주', association='KLPGA')
    caddy = make_user('caddy', name='박캐디')
    contract = ContractTemplateGenerator.generate('tour_pro', 'caddy', pro, caddy, tournament=tournament)
    ContractService.save_new_contract(contract)

    summary = ContractTemplateGenerator.generate_summary(
        contract, {'tour_pro': pro, 'caddy': caddy}, tournament
    )

    assert '김효주 (KLPGA)' in summary
    assert '박캐디' in summary
    assert '500,000원' in summary
    assert '위약금: 20%' in summary
    assert '제주 블루원 오픈' in summary


@pytest.mark.parametrize('custom_terms', [
    {'penalty_rate': 5},
    {'conditions': {'penalty': 5}},
    {'expenses': {'domestic': {'meal': False}}},
])
def test_unknown_terms_are_rejected(make_user, custom_terms):
    amateur, caddy = make_user('amateur'), make_user('caddy')
    with pytest.raises(ValidationError) as exc:
        ContractTemplateGenerator.generate('amateur', 'caddy', amateur, caddy, custom_terms=custom_terms)
    assert exc.value.message.startswith('Unknown contract term')


@pytest.mark.parametrize('custom_terms', [
    'cheap',
    ['base_salary', 1],
    {'expenses': 'none'},
    {'base_salary': {'amount': 1}},
    {'special_conditions': '없음'},
    {'base_salary': '300000'},
    {'conditions': {'duration': True}},
])
def test_malformed_terms_are_rejected(make_user, custom_terms):
    amateur, caddy = make_user('amateur'), make_user('caddy')
    with pytest.raises(ValidationError):
        ContractTemplateGenerator.generate('amateur', 'caddy', amateur, caddy, custom_terms=custom_terms)
