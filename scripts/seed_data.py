# scripts/seed_data.py
"""
建立示範資料: 各角色會員、兩份生效中的合約、一場已完賽的賽事、
一筆贊助提案與一筆媒合需求。
"""
import sys
import os
from datetime import datetime

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from caddylink import create_app, db
from caddylink.models.user import User
from caddylink.services.contract_service import ContractService
from caddylink.services.contract_template import ContractTemplateGenerator
from caddylink.services.matching_service import MatchingService
from caddylink.services.sponsorship_service import SponsorshipService
from caddylink.services.tournament_service import TournamentService

app = create_app()

SEED_USERS = [
    {'username': 'golfer_001', 'name': '김효주', 'role': 'tour_pro', 'profile': {'association': 'KLPGA'}},
    {'username': 'golfer_002', 'name': '박민지', 'role': 'tour_pro', 'profile': {'association': 'KLPGA'}},
    {'username': 'caddy_001', 'name': '박캐디', 'role': 'caddy', 'profile': {'experience': 5}},
    {'username': 'amateur_001', 'name': '이아마', 'role': 'amateur', 'profile': {'handicap': 18}},
    {'username': 'sponsor_001', 'name': '골프코리아', 'role': 'sponsor', 'profile': {'company_name': '골프코리아'}},
]

def get_or_create_user(entry):
    user = User.query.filter_by(username=entry['username']).first()
    if user:
        return user
    user = User(email=f"{entry['username']}@example.com", **entry)
    user.set_password('password123')
    db.session.add(user)
    db.session.commit()
    return user

def seed():
    with app.app_context():
        db.create_all()
        users = {entry['username']: get_or_create_user(entry) for entry in SEED_USERS}
        print(f"👥 會員: {len(users)} 位")

        tournament = TournamentService.save_results('2024 KLPGA 챔피언십', [
            {'player_name': '김효주', 'rank': 1, 'score': -14, 'prize_amount': 200000000},
            {'player_name': '박민지', 'rank': 2, 'score': -12, 'prize_amount': 120000000},
            {'player_name': '최선수', 'rank': 35, 'score': -2, 'prize_amount': 3000000},
        ], location='여주')
        print(f"🏌️ 賽事: {tournament.name} (ID: {tournament.id})")

        caddy_contract = ContractTemplateGenerator.generate(
            'tour_pro', 'caddy', users['golfer_001'], users['caddy_001'],
            tournament=tournament, start_date=datetime.utcnow()
        )
        ContractService.save_new_contract(caddy_contract)
        ContractService.accept_contract(caddy_contract.id)

        sponsor_contract = ContractTemplateGenerator.generate(
            'tour_pro', 'sponsor', users['golfer_002'], users['sponsor_001'],
            custom_terms={'base_salary': 50000000, 'conditions': {'penalty_rate': 15}}
        )
        ContractService.save_new_contract(sponsor_contract)
        ContractService.accept_contract(sponsor_contract.id)

        print(f"📄 合約: {caddy_contract.id}, {sponsor_contract.id} (active)")

        proposal = SponsorshipService.create_proposal(
            users['sponsor_001'].id, users['golfer_001'].id, ['hat', 'golf_bag'],
            '2024-03-01', '2024-05-01', 20000000,
            '저희 골프코리아에서 모자와 골프백 스폰서십을 제안드립니다.'
        )
        print(f"🤝 贊助提案: #{proposal.id} ({proposal.status})")

        matching = MatchingService.create_request(
            users['amateur_001'].id, 'caddy', '아마추어 골프 대회 캐디',
            '주말 아마추어 골프 대회에서 캐디가 필요합니다.', '경기도 양평', '2024-01-20', 200000
        )
        print(f"🔎 媒合需求: #{matching.id} ({matching.target_type})")

if __name__ == '__main__':
    print("🌱 建立示範資料...")
    seed()
    print("✅ 完成")
