from flask import Flask, request, jsonify, redirect, render_template_string
from flask_cors import CORS
from flask_jwt_extended import JWTManager, create_access_token, create_refresh_token, jwt_required, get_jwt_identity
from markupsafe import escape

from config import config
from models import db, User
from storage import DatabaseStorage, SessionStorage
from demo_transition import now_ms
from demo_clients import DemoClients
from demo_accounts import DEMO_PROFILES, DEMO_PASSWORD, ensure_demo_accounts, is_demo_role, role_for_username
from auth_cache import CredentialExchangeError, DemoCredentialExchange, SessionAuthCache
from auth_gate import gated
from auto_login import AutoLogin, AutoLoginConfig, ERROR, SUCCESS, render_failure

LOGIN_PAGE = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>MAGSASA-CARD | Sign In</title></head>
<body>
  <h1>MAGSASA-CARD</h1>
  <p>Agricultural Management System</p>
  {% if error %}<p role="alert">{{ error }}</p>{% endif %}
  <form method="post" action="{{ login_path }}">
    <label for="username">Username</label>
    <input id="username" name="username" type="text" value="{{ username }}">
    <label for="password">Password</label>
    <input id="password" name="password" type="password">
    <button type="submit">Sign In</button>
  </form>
  {% if demo_mode %}
  <h2>Demo accounts</h2>
  <ul>
    {% for profile in profiles %}
    <li>{{ profile.full_name }}: {{ profile.username }} / {{ password }}</li>
    {% endfor %}
  </ul>
  {% endif %}
</body>
</html>
"""

DASHBOARD_PAGE = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>MAGSASA-CARD | Dashboard</title></head>
<body>
  <h1>Welcome, {{ user.full_name }}</h1>
  <p>Role: {{ role }}</p>
</body>
</html>
"""


def create_app(config_name='development', clock=None, storage_factory=None):
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # Initialize extensions (SQLAlchemy)
    db.init_app(app)

    CORS(app,
     resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}},
     supports_credentials=True,
     allow_headers=["Content-Type", "Authorization"],
     methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"])

    jwt = JWTManager(app)

    # --- Demo session coordination (one set of demo state per client) ---

    demo_mode = app.config['DEMO_MODE']
    clients = DemoClients(
        storage_factory=storage_factory or DatabaseStorage,
        clock=clock or now_ms,
        enabled=demo_mode,
        scope_prefix=app.config['DEMO_STORAGE_SCOPE'],
        transition_ms=app.config['DEMO_TRANSITION_MS'],
        grace_window_ms=app.config['DEMO_GRACE_WINDOW_MS'],
        role_switch_ms=app.config['DEMO_ROLE_SWITCH_MS'],
    )
    clients.init_app(app)
    app.extensions['demo'] = {
        'clients': clients,
        'exchange': DemoCredentialExchange(),
        'auth_cache': SessionAuthCache,
        'session_storage': SessionStorage(),
    }

    # --- HELPER FUNCTIONS ---

    def demo_ext():
        return app.extensions['demo']

    def start_demo_session(outcome):
        """Apply a successful credential exchange to the session."""
        auth_cache = SessionAuthCache()
        auth_cache.write_current_user(outcome['user'])

        if demo_mode:
            demo_session = clients.current().session
            role = outcome['user'].get('role')
            if not is_demo_role(role):
                role = role_for_username(outcome['user'].get('username'))
            if role:
                demo_session.set_role_override(role)
            demo_session.mark_logged_in()

        return auth_cache.refetch()

    def render_login(error=None, username='', status=200):
        return render_template_string(
            LOGIN_PAGE,
            error=error,
            username=username,
            login_path=app.config['DEMO_LOGIN_PATH'],
            demo_mode=demo_mode,
            profiles=DEMO_PROFILES.values(),
            password=DEMO_PASSWORD
        ), status

    # ============ Page Routes ============

    @app.route('/')
    def index():
        auth_cache = SessionAuthCache()
        auth_cache.ensure_loaded()
        session_storage = demo_ext()['session_storage']
        demo = clients.current()

        auto_login = AutoLogin(
            AutoLoginConfig.from_sources(
                env_role=app.config.get('DEMO_AUTO_ROLE'),
                url_role=request.args.get('demo_role'),
                enabled=demo_mode,
                session_storage=session_storage
            ),
            auth_cache=auth_cache,
            exchange=demo_ext()['exchange'].exchange,
            navigate=redirect,
            demo_session=demo.session,
            session_storage=session_storage,
            transitions=demo.transitions,
            landing_path=app.config['DEMO_LANDING_PATH']
        )
        result = auto_login.run()

        if result.state == SUCCESS:
            return result.navigation
        if result.state == ERROR:
            return render_failure(result.error, app.config['DEMO_LOGIN_PATH']), 200

        if auth_cache.read_current_user():
            return redirect(app.config['DEMO_LANDING_PATH'])
        return redirect(app.config['DEMO_LOGIN_PATH'])

    @app.route('/login', methods=['GET', 'POST'])
    def login_page():
        if request.method == 'GET':
            return render_login()

        username = request.form.get('username', '')
        password = request.form.get('password', '')
        try:
            outcome = demo_ext()['exchange'].exchange(username, password)
        except CredentialExchangeError as e:
            return render_login(error=e.message, username=username, status=e.status_code)

        start_demo_session(outcome)
        return redirect(app.config['DEMO_LANDING_PATH'])

    @app.route('/dashboard')
    @gated
    def dashboard():
        user = SessionAuthCache().read_current_user()
        if not user:
            return redirect(app.config['DEMO_LOGIN_PATH'])
        return render_template_string(
            DASHBOARD_PAGE,
            user=user,
            role=clients.current().session.effective_role(user)
        )

    # ============ Authentication Routes ============

    @app.route('/api/auth/login', methods=['POST'])
    def login():
        data = request.get_json() or {}

        user = User.query.filter_by(username=data.get('username')).first()

        if not user or not user.check_password(data.get('password', '')):
            return jsonify({'error': 'Invalid credentials'}), 401

        if not user.is_active:
            return jsonify({'error': 'Account is inactive'}), 403

        access_token = create_access_token(identity=str(user.id))
        refresh_token = create_refresh_token(identity=str(user.id))

        return jsonify({
            'access_token': access_token,
            'refresh_token': refresh_token,
            'user': user.to_dict()
        }), 200

    @app.route('/api/auth/demo-login', methods=['POST'])
    def demo_login():
        data = request.get_json() or {}
        role = data.get('role')

        if role is not None and not is_demo_role(role):
            return jsonify({'error': f'Unknown demo role: {role}'}), 400

        try:
            outcome = demo_ext()['exchange'].exchange(
                data.get('username', ''), data.get('password', ''), role
            )
        except CredentialExchangeError as e:
            return jsonify({'success': False, 'error': e.message}), e.status_code

        user = start_demo_session(outcome)
        return jsonify({
            'success': True,
            'user': user,
            'access_token': outcome['access_token'],
            'refresh_token': outcome['refresh_token']
        }), 200

    @app.route('/api/auth/refresh', methods=['POST'])
    @jwt_required(refresh=True)
    def refresh():
        user_id = get_jwt_identity()
        access_token = create_access_token(identity=user_id)
        return jsonify({'access_token': access_token}), 200

    @app.route('/api/auth/me', methods=['GET'])
    @jwt_required(optional=True)
    def get_current_user():
        user_id = get_jwt_identity()
        if user_id:
            user = db.session.get(User, int(user_id))
            if not user:
                return jsonify({'error': 'User not found'}), 404
            return jsonify(user.to_dict()), 200

        auth_cache = SessionAuthCache()
        auth_cache.refetch()
        return jsonify(auth_cache.read_current_user()), 200

    @app.route('/api/auth/logout', methods=['POST'])
    def logout():
        SessionAuthCache().clear()
        return jsonify({'success': True}), 200

    # ============ Demo Routes (DEV only) ============

    @app.route('/api/demo/role', methods=['POST'])
    def set_demo_role():
        if not demo_mode:
            return jsonify({'error': 'Not found'}), 404

        role = (request.get_json() or {}).get('role')
        if not is_demo_role(role):
            return jsonify({'error': f'Unknown demo role: {role}'}), 400

        switched = clients.current().session.set_role_override(role)
        return jsonify({'role': role, 'role_switch_started': switched}), 200

    @app.route('/api/demo/reset', methods=['POST'])
    def reset_demo_session():
        if not demo_mode:
            return jsonify({'error': 'Not found'}), 404

        try:
            SessionAuthCache().clear()
        finally:
            # Clear demo keys even if logout fails
            clients.current().session.reset()
        return jsonify({'message': 'Demo session reset'}), 200

    @app.route('/__debug/session', methods=['GET'])
    def debug_session():
        if not demo_mode:
            return jsonify({'error': 'Not found'}), 404

        auth_cache = SessionAuthCache()
        user = auth_cache.read_current_user()
        state = auth_cache.state()
        demo = clients.current()
        return jsonify({
            'client_id': demo.client_id,
            'user': user,
            'role': demo.session.effective_role(user),
            'auth': {'is_auth_ready': state.is_auth_ready, 'loading': state.loading},
            'signals': demo.session.signals().to_dict(),
            'transition': demo.transitions.snapshot(),
            'gate_blocking': demo.gate.should_block(state)
        }), 200

    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith('/api/'):
            return jsonify({'error': 'Not found'}), 404
        return f"<h1>Not found</h1><p>{escape(request.path)}</p>", 404

    # Initialize DB tables if they don't exist
    with app.app_context():
        db.create_all()
        if demo_mode:
            ensure_demo_accounts()

    return app

if __name__ == '__main__':
    app = create_app()
    app.run(host='127.0.0.1', port=5001, debug=True)
