# tests/conftest.py
from datetime import datetime, timedelta

import pytest

from caddylink import create_app, db
from caddylink.exceptions import PaymentGatewayError
from caddylink.models.user import User
from caddylink.models.contract import KIND_PARTIES
from caddylink.services.contract_service import ContractService, PARTY_ROLES
from caddylink.services.payment_gateway import MockPaymentGateway
from config import TestConfig


class FlakyGateway(MockPaymentGateway):
    """前 fail_times 次扣款失敗，之後成功"""

    def __init__(self, fail_times=0):
        super().__init__()
        self.fail_times = fail_times
        self.calls = []

    def charge(self, amount, payee_ref, idempotency_key):
        self.calls.append((amount, payee_ref, idempotency_key))
        if len(self.calls) <= self.fail_times:
            raise PaymentGatewayError('gateway timeout')
        return super().charge(amount, payee_ref, idempotency_key)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    app.extensions['payment_gateway'] = FlakyGateway()
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def gateway(app):
    return app.extensions['payment_gateway']


@pytest.fixture
def make_user(app):
    counter = {'n': 0}

    def _make(role, name=None, **profile):
        counter['n'] += 1
        username = f'{role}_{counter["n"]:03d}'
        user = User(
            username=username,
            email=f'{username}@example.com',
            name=name or username,
            role=role,
            profile=profile or {},
        )
        user.set_password('secret')
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_contract(make_user):
    """建立並啟用一份合約 (預設: 投巡選手-桿弟, 基本報酬 500000, 違約金 20%)"""

    def _make(kind='tour_pro_caddy', activate=True, **overrides):
        parties = {field: make_user(PARTY_ROLES[field]).id for field in KIND_PARTIES[kind]}
        start = datetime.utcnow() - timedelta(days=1)
        data = {
            'kind': kind,
            'contract_type': 'sponsorship' if kind == 'tour_pro_sponsor' else 'tournament',
            'title': 'Test contract',
            'base_salary': 500000,
            'tournament_count': 1,
            'duration_months': 1,
            'penalty_rate': 20,
            'start_date': start,
            'end_date': start + timedelta(days=30),
        }
        data.update(parties)
        data.update(overrides)
        contract = ContractService.create_contract(data)
        if activate:
            ContractService.accept_contract(contract.id)
        return contract

    return _make
