# caddylink/services/tournament_service.py
import logging
from datetime import datetime
from caddylink import db
from caddylink.exceptions import NotFoundError, ValidationError
from caddylink.models.tournament import Tournament, TournamentResult
from caddylink.models.user import User

logger = logging.getLogger(__name__)

class TournamentService:

    @staticmethod
    def get_tournament(tournament_id):
        tournament = db.session.get(Tournament, tournament_id)
        if not tournament:
            raise NotFoundError(f'Tournament {tournament_id} not found')
        return tournament

    @staticmethod
    def list_tournaments():
        return Tournament.query.order_by(Tournament.created_at.desc()).all()

    @staticmethod
    def get_results(tournament_id):
        TournamentService.get_tournament(tournament_id)
        return TournamentResult.query.filter_by(tournament_id=tournament_id)\
            .order_by(TournamentResult.rank).all()

    @staticmethod
    def _validate_result(idx, row):
        errors = []
        if not isinstance(row, dict):
            return [f'result #{idx}: must be an object']
        if not row.get('player_name'):
            errors.append(f'result #{idx}: player_name is required')
        rank = row.get('rank')
        if isinstance(rank, bool) or not isinstance(rank, int) or rank < 1:
            errors.append(f'result #{idx}: rank must be a positive integer')
        prize = row.get('prize_amount', 0)
        if isinstance(prize, bool) or not isinstance(prize, (int, float)) or prize < 0:
            errors.append(f'result #{idx}: prize_amount must be >= 0')
        return errors

    @staticmethod
    def save_results(tournament_name, results, association='KLPGA', location=None,
                     start_date=None, end_date=None):
        """
        儲存賽事成績 (一次建立賽事與全部名次)
        選手姓名若能對應到投巡選手會員，會自動連結 player_id。
        """
        if not tournament_name or not isinstance(results, list) or not results:
            raise ValidationError('tournament_name and a non-empty results list are required')

        errors = []
        for idx, row in enumerate(results, start=1):
            errors.extend(TournamentService._validate_result(idx, row))
        if errors:
            raise ValidationError('Invalid tournament results', errors=errors)

        now = datetime.utcnow()
        tournament = Tournament(
            name=tournament_name,
            association=association,
            location=location,
            start_date=start_date or now,
            end_date=end_date or now,
            prize_money=int(sum(r.get('prize_amount', 0) for r in results)),
            status='completed',
        )
        db.session.add(tournament)
        db.session.flush()

        for row in results:
            player_id = row.get('player_id')
            if player_id is None:
                player = User.query.filter_by(name=row['player_name'], role='tour_pro').first()
                player_id = player.id if player else None

            db.session.add(TournamentResult(
                tournament_id=tournament.id,
                player_id=player_id,
                player_name=row['player_name'],
                rank=row['rank'],
                score=row.get('score'),
                prize_amount=int(row.get('prize_amount', 0)),
            ))

        db.session.commit()
        logger.info("[Tournament] Saved %s with %d results", tournament_name, len(results))
        return tournament
