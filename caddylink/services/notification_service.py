# caddylink/services/notification_service.py
import logging
from caddylink import db
from caddylink.models.notification import Notification

logger = logging.getLogger(__name__)

# 角色 (解約紀錄用語) -> 合約當事人欄位
ROLE_PARTY_FIELDS = {
    'caddy': ('caddy_id',),
    'sponsor': ('sponsor_id',),
    'golfer': ('tour_pro_id', 'amateur_id'),
}


def party_user_id(contract, role):
    """依解約紀錄的角色名稱取得合約上的會員 ID"""
    for field in ROLE_PARTY_FIELDS.get(role, ()):
        user_id = getattr(contract, field)
        if user_id is not None:
            return user_id
    return None


class NotificationService:
    """
    解約完成通知，以及贊助提案 / 媒合需求的狀態通知。
    只寫入通知寄件匣，實際推播 / 簡訊由外部服務處理，不等待結果。
    """

    def notify_user(self, recipient_id, kind, payload, contract_id=None):
        """寫入單一會員的通知 (不 commit，隨呼叫端的交易一起寫入)"""
        notification = Notification(
            recipient_id=recipient_id,
            contract_id=contract_id,
            template_kind=kind,
            payload=payload,
        )
        db.session.add(notification)
        logger.info("[Notify] %s -> user %s", kind, recipient_id)
        return notification

    def notify(self, contract, cancellation):
        """
        解約結算完成後通知各當事人
        接收已載入的 Contract 物件而非合約 ID，由呼叫端 (結算流程) 在同一個 session 內傳入，
        不必重新查詢當事人欄位。
        """
        canceller_id = party_user_id(contract, cancellation.who_cancelled)
        beneficiary_id = party_user_id(contract, cancellation.beneficiary)

        payload = {
            'contract_title': contract.title,
            'who_cancelled': cancellation.who_cancelled,
            'beneficiary': cancellation.beneficiary,
            'penalty_amount': cancellation.penalty_amount,
            'payment_id': cancellation.payment_id,
        }

        messages = []
        notified = set()
        if canceller_id is not None:
            messages.append((canceller_id, 'cancellation_confirmed'))
            notified.add(canceller_id)
        if beneficiary_id is not None and beneficiary_id not in notified:
            messages.append((beneficiary_id, 'penalty_incoming'))
            notified.add(beneficiary_id)
        for user_id in contract.party_ids.values():
            if user_id not in notified:
                messages.append((user_id, 'contract_terminated'))
                notified.add(user_id)

        for recipient_id, kind in messages:
            db.session.add(Notification(
                recipient_id=recipient_id,
                contract_id=contract.id,
                template_kind=kind,
                payload=payload,
            ))

        logger.info(
            "[Notify] %s: %d notifications queued (penalty %s -> %s)",
            contract.id, len(messages), f'{cancellation.penalty_amount:,}', cancellation.beneficiary
        )
        return messages
