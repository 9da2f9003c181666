# -*- coding: utf-8 -*-
"""
模組名稱：合約範本產生器 (Contract Template Generator)
功能描述：
    依雙方角色組合 (投巡選手-桿弟、投巡選手-贊助商、業餘選手-桿弟)
    套用設定檔中的預設條款，再合併自訂條款，產生 pending 狀態的合約。
    另提供合約摘要 (Markdown) 輸出。
"""

import copy
from datetime import datetime, timedelta

from caddylink.exceptions import ContractUnsupportedError, ValidationError
from caddylink.models.contract import (
    Contract, KIND_TOUR_PRO_CADDY, KIND_TOUR_PRO_SPONSOR, KIND_AMATEUR_CADDY, STATUS_PENDING
)
from caddylink.services.contract_service import ContractValidator
from caddylink.utils.market_config_loader import MarketConfigLoader

# (角色1, 角色2) -> 合約種類
ROLE_PAIR_KINDS = {
    ('tour_pro', 'caddy'): KIND_TOUR_PRO_CADDY,
    ('tour_pro', 'sponsor'): KIND_TOUR_PRO_SPONSOR,
    ('amateur', 'caddy'): KIND_AMATEUR_CADDY,
}

# 合約月數換算天數 (一個月以 30 天計)
DAYS_PER_MONTH = 30


def _merge_terms(defaults, overrides, path=''):
    """
    自訂條款覆蓋預設條款 (巢狀字典逐層合併)
    只接受預設條款中已有的鍵，拼錯的條款名稱直接拒絕，不會被默默忽略。
    """
    if not isinstance(overrides, dict):
        raise ValidationError(f'{path or "custom_terms"} must be an object')

    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        name = f'{path}.{key}' if path else key
        if key not in merged:
            raise ValidationError(f'Unknown contract term: {name}')

        current = merged[key]
        if isinstance(current, dict):
            merged[key] = _merge_terms(current, value, name)
        elif isinstance(value, dict):
            raise ValidationError(f'{name} must not be an object')
        elif isinstance(current, list) and not isinstance(value, list):
            raise ValidationError(f'{name} must be a list')
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _yes_no(flag):
    return '포함' if flag else '별도'


class ContractTemplateGenerator:

    @staticmethod
    def default_terms(kind):
        terms = MarketConfigLoader.get(f'contract_templates.{kind}')
        if not terms:
            raise ContractUnsupportedError(f'No contract template configured for {kind}')
        return copy.deepcopy(terms)

    @staticmethod
    def generate(role1, role2, party1, party2, tournament=None, custom_terms=None, start_date=None):
        """
        產生合約 (尚未寫入資料庫)
        :param party1 / party2: User 物件，角色須與 role1 / role2 相符
        :param tournament: 投巡選手-桿弟合約必填
        """
        kind = ROLE_PAIR_KINDS.get((role1, role2))
        if not kind:
            raise ContractUnsupportedError(f'Unsupported contract type: {role1} - {role2}')

        for role, party in ((role1, party1), (role2, party2)):
            if party is None:
                raise ValidationError(f'{role} party is required')
            if party.role != role:
                raise ValidationError(f'User {party.id} is a {party.role}, expected {role}')

        if kind == KIND_TOUR_PRO_CADDY and tournament is None:
            raise ValidationError('Tour pro - caddy contracts require a tournament')

        if custom_terms is None:
            custom_terms = {}
        terms = _merge_terms(ContractTemplateGenerator.default_terms(kind), custom_terms)
        contract = ContractTemplateGenerator._build(kind, terms, start_date or datetime.utcnow())

        if kind == KIND_TOUR_PRO_CADDY:
            contract.tour_pro_id = party1.id
            contract.caddy_id = party2.id
            contract.tournament_id = tournament.id
            contract.title = f'{tournament.name} 대회 캐디 계약서'
        elif kind == KIND_TOUR_PRO_SPONSOR:
            contract.tour_pro_id = party1.id
            contract.sponsor_id = party2.id
            company = (party2.profile or {}).get('company_name') or party2.display_name
            contract.title = f'{company} 스폰서십 계약서'
        else:
            contract.amateur_id = party1.id
            contract.caddy_id = party2.id
            contract.title = '아마추어 골프 레슨 계약서'

        ContractValidator.ensure_valid(contract)
        return contract

    @staticmethod
    def _build(kind, terms, start_date):
        try:
            win_bonus = terms['win_bonus']
            bonus = terms['tournament_bonus']
            expenses = terms['expenses']
            conditions = terms['conditions']
            duration = conditions['duration']
        except (KeyError, TypeError) as e:
            raise ValidationError(f'Incomplete contract terms: missing {e}')

        if isinstance(duration, bool) or not isinstance(duration, int) or duration < 1:
            raise ValidationError('duration must be a positive number of months')

        return Contract(
            kind=kind,
            contract_type=terms.get('contract_type'),
            status=STATUS_PENDING,
            base_salary=terms.get('base_salary'),
            tournament_count=terms.get('tournament_count'),
            win_bonus_percentage=win_bonus.get('percentage', 0),
            win_bonus_min_amount=win_bonus.get('min_amount', 0),
            win_bonus_max_amount=win_bonus.get('max_amount', 0),
            tournament_bonus_first=bonus.get('first', 0),
            tournament_bonus_second=bonus.get('second', 0),
            tournament_bonus_third=bonus.get('third', 0),
            tournament_bonus_top10=bonus.get('top10', 0),
            tournament_bonus_participation=bonus.get('participation', 0),
            domestic_transportation=expenses['domestic'].get('transportation', False),
            domestic_accommodation=expenses['domestic'].get('accommodation', False),
            domestic_meals=expenses['domestic'].get('meals', False),
            jeju_transportation=expenses['jeju'].get('transportation', False),
            jeju_accommodation=expenses['jeju'].get('accommodation', False),
            jeju_meals=expenses['jeju'].get('meals', False),
            overseas_transportation=expenses['overseas'].get('transportation', False),
            overseas_accommodation=expenses['overseas'].get('accommodation', False),
            overseas_meals=expenses['overseas'].get('meals', False),
            overseas_visa=expenses['overseas'].get('visa', False),
            duration_months=duration,
            notice_period_days=conditions.get('notice_period', 7),
            penalty_rate=conditions.get('penalty_rate'),
            renewal_terms=conditions.get('renewal_terms'),
            special_conditions=list(terms.get('special_conditions') or []),
            start_date=start_date,
            end_date=start_date + timedelta(days=duration * DAYS_PER_MONTH),
        )

    @staticmethod
    def generate_summary(contract, parties=None, tournament=None):
        """
        合約摘要 (Markdown)
        :param parties: {'tour_pro': User, 'caddy': User, ...}
        """
        parties = parties or {}
        terms = contract.terms_dict()

        lines = [f'## {contract.title or contract.id}', '', '### 당사자 정보']
        labels = (('tour_pro', '투어프로'), ('amateur', '아마추어'), ('caddy', '캐디'), ('sponsor', '스폰서'))
        for role, label in labels:
            user = parties.get(role)
            if user is not None:
                association = (user.profile or {}).get('association')
                suffix = f' ({association})' if association else ''
                lines.append(f'- {label}: {user.display_name}{suffix}')

        if tournament is not None:
            lines += [
                '', '### 대회 정보',
                f'- 대회명: {tournament.name}',
                f'- 장소: {tournament.location or "-"}',
                f'- 총상금: {tournament.prize_money:,}원',
            ]

        lines += [
            '', '### 보수 정보',
            f'- 기본 급여: {terms["base_salary"]:,}원',
            f'- 계약 대회 건수: {terms["tournament_count"]}개 대회',
            f'- 우승 보수: 상금의 {terms["win_bonus"]["percentage"]:g}%',
        ]

        expenses = terms['expenses']
        lines += [
            '', '### 비용 포함 여부',
            f'- 국내 대회: 교통비 {_yes_no(expenses["domestic"]["transportation"])}, '
            f'숙박비 {_yes_no(expenses["domestic"]["accommodation"])}',
            f'- 제주 대회: 항공료 {_yes_no(expenses["jeju"]["transportation"])}, '
            f'숙박비 {_yes_no(expenses["jeju"]["accommodation"])}',
            f'- 해외 대회: 항공료 {_yes_no(expenses["overseas"]["transportation"])}, '
            f'숙박비 {_yes_no(expenses["overseas"]["accommodation"])}',
        ]

        conditions = terms['conditions']
        penalty = conditions['penalty_rate']
        lines += [
            '', '### 계약 조건',
            f'- 계약 기간: {conditions["duration"]}개월',
            f'- 해지 통보 기간: {conditions["notice_period"]}일',
            f'- 위약금: {penalty:g}%' if penalty is not None else '- 위약금: -',
        ]

        return '\n'.join(lines) + '\n'
