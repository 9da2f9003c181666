from caddylink.models.user import User
from caddylink.models.tournament import Tournament, TournamentResult, CaddyPayout
from caddylink.models.contract import Contract, ContractCancellation
from caddylink.models.settlement import SettlementJob
from caddylink.models.notification import Notification
from caddylink.models.sponsorship import SponsorshipProposal
from caddylink.models.matching import MatchingRequest
