# 專案路徑: caddylink/routes/__init__.py
# 模組名稱: 主路由與共用錯誤處理
# 描述: 健康檢查端點，以及將業務例外轉為 JSON 回應的錯誤處理器。

import logging
from flask import Blueprint, jsonify, request
from werkzeug.exceptions import HTTPException
from caddylink import db
from caddylink.exceptions import MarketError, ValidationError

logger = logging.getLogger(__name__)

# 定義 'main' Blueprint
main = Blueprint('main', __name__)

@main.route('/')
def index():
    """API 健康檢查端點"""
    return jsonify({
        "status": "online",
        "message": "CaddyLink API is running",
        "version": "v1.0"
    })

def json_body(required=True):
    """
    取得 JSON 物件本文
    陣列或純量本文一律視為格式錯誤，避免後續 data.get 直接出錯。
    """
    data = request.get_json(silent=True)
    if data is None and not required:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data

def register_error_handlers(app):

    @app.errorhandler(MarketError)
    def handle_market_error(e):
        # 業務例外發生時尚未提交任何變更，回滾以釋放交易
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'success': False, 'error': e.description, 'code': e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        logger.exception("[API] Unhandled error")
        return jsonify({'success': False, 'error': str(e), 'code': 'INTERNAL_ERROR'}), 500
