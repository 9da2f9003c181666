# caddylink/models/user.py
from caddylink import db
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash

# 平台會員角色
USER_ROLES = ('tour_pro', 'amateur', 'caddy', 'sponsor', 'agency')

class User(db.Model):
    __tablename__ = 'users'
    __table_args__ = {'comment': '會員帳號資料表'}

    id = db.Column(db.Integer, primary_key=True, comment='會員 ID (主鍵)')
    username = db.Column(db.String(64), index=True, unique=True, nullable=False, comment='帳號')
    email = db.Column(db.String(120), index=True, unique=True, nullable=False, comment='電子信箱')
    name = db.Column(db.String(64), nullable=True, comment='顯示名稱')
    role = db.Column(db.String(20), nullable=False, index=True, comment='角色: tour_pro, amateur, caddy, sponsor, agency')
    password_hash = db.Column(db.String(256), comment='密碼雜湊值')

    # 角色附加資訊 (協會、會員編號、公司名稱等)
    profile = db.Column(db.JSON, nullable=True, comment='角色附加資訊')

    created_at = db.Column(db.DateTime, default=datetime.utcnow, comment='帳號建立時間')

    def set_password(self, password):
        """將明文密碼加密後存入"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """驗證密碼是否正確"""
        return bool(self.password_hash) and check_password_hash(self.password_hash, password)

    @property
    def display_name(self):
        return self.name or self.username

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'name': self.display_name,
            'role': self.role,
            'profile': self.profile or {},
        }

    def __repr__(self):
        return f'<User {self.username} ({self.role})>'
