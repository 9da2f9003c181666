# caddylink/routes/auth.py
from flask import Blueprint, request, jsonify
from caddylink import db
from caddylink.models.user import User, USER_ROLES

# 定義藍圖，名稱為 'auth'，前綴為 '/api/auth'
auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True)

    # 1. 檢查必要欄位
    if not isinstance(data, dict) or not all(isinstance(data.get(k), str) and data.get(k) for k in ('username', 'email', 'password')):
        return jsonify({'success': False, 'error': '請提供帳號、Email 和密碼'}), 400

    role = data.get('role')
    if role not in USER_ROLES:
        return jsonify({'success': False, 'error': f'role must be one of {", ".join(USER_ROLES)}'}), 400

    # 2. 檢查是否重複註冊
    if User.query.filter_by(username=data['username']).first():
        return jsonify({'success': False, 'error': '帳號已被使用'}), 400
    if User.query.filter_by(email=data['email']).first():
        return jsonify({'success': False, 'error': 'Email 已被註冊'}), 400

    # 3. 建立會員
    user = User(
        username=data['username'],
        email=data['email'],
        name=data.get('name'),
        role=role,
        profile=data.get('profile') or {},
    )
    user.set_password(data['password'])

    db.session.add(user)
    db.session.commit()

    return jsonify({
        'success': True,
        'message': '註冊成功！',
        'user': user.to_dict()
    }), 201

@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True)

    if not isinstance(data, dict) or not all(isinstance(data.get(k), str) and data.get(k) for k in ('username', 'password')):
        return jsonify({'success': False, 'error': '請提供帳號密碼'}), 400

    user = User.query.filter_by(username=data['username']).first()

    if user and user.check_password(data['password']):
        # 只驗證帳密，不建立 session / token
        return jsonify({
            'success': True,
            'message': '登入成功',
            'user': user.to_dict()
        }), 200

    return jsonify({'success': False, 'error': '帳號或密碼錯誤'}), 401
