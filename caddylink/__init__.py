# caddylink/__init__.py
import logging
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from config import Config

# 初始化套件
db = SQLAlchemy()
migrate = Migrate()

def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    # 綁定資料庫
    db.init_app(app)
    migrate.init_app(app, db)

    # 註冊模型 (供 Flask-Migrate 偵測)
    from caddylink import models  # noqa: F401

    # 外部協作者: 金流閘道與通知服務 (測試可替換)
    from caddylink.services.payment_gateway import MockPaymentGateway
    from caddylink.services.notification_service import NotificationService
    app.extensions.setdefault('payment_gateway', MockPaymentGateway.from_config())
    app.extensions.setdefault('notifier', NotificationService())

    # 註冊 Blueprints
    from caddylink.routes import main, register_error_handlers
    from caddylink.routes.auth import auth_bp
    from caddylink.routes.contracts import contracts_bp
    from caddylink.routes.payouts import payouts_bp
    from caddylink.routes.admin import admin_bp
    from caddylink.routes.sponsorship import sponsorship_bp
    from caddylink.routes.matching import matching_bp
    app.register_blueprint(main)
    app.register_blueprint(auth_bp)
    app.register_blueprint(contracts_bp)
    app.register_blueprint(payouts_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(sponsorship_bp)
    app.register_blueprint(matching_bp)
    register_error_handlers(app)

    if app.config.get('SCHEDULER_ENABLED'):
        from caddylink.scheduler import init_scheduler
        init_scheduler(app)

    return app
