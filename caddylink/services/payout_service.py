# caddylink/services/payout_service.py
import logging
from datetime import datetime
from caddylink import db
from caddylink.exceptions import InvalidStateError, NotFoundError
from caddylink.models.contract import Contract, KIND_TOUR_PRO_CADDY, STATUS_ACTIVE, STATUS_COMPLETED
from caddylink.models.tournament import CaddyPayout
from caddylink.models.user import User
from caddylink.services.tournament_service import TournamentService
from caddylink.utils.calculator import PayoutCalculator

logger = logging.getLogger(__name__)

class PayoutService:

    @staticmethod
    def find_caddy_for(result):
        """
        依選手的投巡選手-桿弟合約找出負責桿弟
        優先使用該賽事的合約，其次為任何有效 / 已完成的合約。
        """
        if result.player_id is None:
            return None

        base = Contract.query.filter(
            Contract.kind == KIND_TOUR_PRO_CADDY,
            Contract.tour_pro_id == result.player_id,
            Contract.status.in_([STATUS_ACTIVE, STATUS_COMPLETED])
        )
        contract = base.filter(Contract.tournament_id == result.tournament_id).first() \
            or base.order_by(Contract.start_date.desc()).first()
        if not contract:
            return None
        return db.session.get(User, contract.caddy_id)

    @staticmethod
    def summarize(payouts):
        return {
            'count': len(payouts),
            'total_prize': sum(p.prize_amount for p in payouts),
            'total_payout': sum(p.payout_amount for p in payouts),
            'paid_count': sum(1 for p in payouts if p.paid_status),
            'unpaid_amount': sum(p.payout_amount for p in payouts if not p.paid_status),
        }

    @staticmethod
    def calculate_for_tournament(tournament_id):
        """
        計算賽事全部名次的桿弟分潤
        已付款的分潤不會被重新計算覆蓋。
        """
        results = TournamentService.get_results(tournament_id)
        calculator = PayoutCalculator()

        payouts = []
        for result in results:
            payout = CaddyPayout.query.filter_by(result_id=result.id).first()
            if payout and payout.paid_status:
                payouts.append(payout)
                continue

            rate, amount = calculator.compute(result.rank, result.prize_amount)
            caddy = PayoutService.find_caddy_for(result)

            if not payout:
                payout = CaddyPayout(tournament_id=tournament_id, result_id=result.id)
                db.session.add(payout)

            payout.player_id = result.player_id
            payout.player_name = result.player_name
            payout.caddy_id = caddy.id if caddy else None
            payout.caddy_name = caddy.display_name if caddy else None
            payout.rank = result.rank
            payout.prize_amount = result.prize_amount
            payout.payout_rate = rate
            payout.payout_amount = amount
            payouts.append(payout)

        db.session.commit()
        logger.info("[Payout] Tournament %s: %d payouts calculated", tournament_id, len(payouts))
        return payouts, PayoutService.summarize(payouts)

    @staticmethod
    def list_for_tournament(tournament_id):
        TournamentService.get_tournament(tournament_id)
        payouts = CaddyPayout.query.filter_by(tournament_id=tournament_id)\
            .order_by(CaddyPayout.rank).all()
        return payouts, PayoutService.summarize(payouts)

    @staticmethod
    def confirm_payout(payout_id, notes=None):
        """分潤付款完成"""
        payout = db.session.get(CaddyPayout, payout_id)
        if not payout:
            raise NotFoundError(f'Payout {payout_id} not found')
        if payout.paid_status:
            raise InvalidStateError('Payout is already paid', current_status='paid')

        payout.paid_status = True
        payout.paid_date = datetime.utcnow()
        if notes:
            payout.notes = notes
        db.session.commit()
        logger.info("[Payout] %s marked as paid (%s)", payout_id, f'{payout.payout_amount:,}')
        return payout
