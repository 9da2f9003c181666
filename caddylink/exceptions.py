# caddylink/exceptions.py
"""
業務例外階層

    MarketError (base, 帶 code 與 http_status)
    +-- NotFoundError                 404
    +-- InvalidStateError             400
    +-- ValidationError               400 (附 errors 列表)
    +-- UnsupportedCombinationError   400
    |   +-- ContractUnsupportedError  400 (合約範本角色組合)
    +-- SettlementFailure             背景結算失敗，只記錄在結算紀錄上
    +-- PermissionDeniedError         403 (非當事人操作)
    +-- PaymentGatewayError           金流閘道回報錯誤
    +-- ConfigurationError            業務規則設定檔格式錯誤

路由層以 code 判斷，不比對訊息字串。
"""


class MarketError(Exception):
    code = 'MARKET_ERROR'
    http_status = 500

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {'success': False, 'error': self.message, 'code': self.code}
        if self.details:
            payload['details'] = self.details
        return payload


class NotFoundError(MarketError):
    code = 'NOT_FOUND'
    http_status = 404


class InvalidStateError(MarketError):
    code = 'INVALID_STATE'
    http_status = 400

    def __init__(self, message, current_status=None, **details):
        super().__init__(message, **details)
        self.current_status = current_status


class ValidationError(MarketError):
    code = 'VALIDATION_ERROR'
    http_status = 400

    def __init__(self, message, errors=None, **details):
        super().__init__(message, **details)
        self.errors = list(errors or [message])

    def to_dict(self):
        payload = super().to_dict()
        payload['errors'] = self.errors
        return payload


class UnsupportedCombinationError(MarketError):
    code = 'UNSUPPORTED_COMBINATION'
    http_status = 400


class ContractUnsupportedError(UnsupportedCombinationError):
    code = 'CONTRACT_UNSUPPORTED'


class SettlementFailure(MarketError):
    code = 'SETTLEMENT_FAILED'
    http_status = 500


class PermissionDeniedError(MarketError):
    code = 'FORBIDDEN'
    http_status = 403


class PaymentGatewayError(MarketError):
    code = 'PAYMENT_GATEWAY_ERROR'
    http_status = 502


class ConfigurationError(MarketError):
    code = 'CONFIG_ERROR'
    http_status = 500

    def __init__(self, message, errors=None, **details):
        super().__init__(message, **details)
        self.errors = list(errors or [message])
