import pytest
import hashlib
import hmac
import json
import os
import tempfile
import time
import uuid

# Test configuration must be in the environment before config.Config is imported
_db_fd, _db_path = tempfile.mkstemp(prefix='propostas-test-', suffix='.db')
os.close(_db_fd)
os.environ['DATABASE_URL'] = f'sqlite:///{_db_path}'
os.environ['STRIPE_SECRET_KEY'] = 'sk_test_dummy'
os.environ['STRIPE_WEBHOOK_SECRET'] = 'whsec_test_secret'
os.environ['STRIPE_PRICE_ID'] = 'price_test_123'
os.environ['MAIL_SUPPRESS_SEND'] = 'true'
os.environ.pop('RESEND_API_KEY', None)
os.environ.pop('SENTRY_DSN', None)

from app import create_app
from app.database import create_schema, get_session
from app.models import AppUser, Profile, Proposta

WEBHOOK_SECRET = 'whsec_test_secret'


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.Config')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False
    with app.app_context():
        create_schema()
    yield app
    os.remove(_db_path)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()
    session.close()


def _make_user(session, prefix, full_name):
    suffix = str(uuid.uuid4())[:8]
    user = AppUser(
        email=f'{prefix}-{suffix}@test.com',
        full_name=full_name,
        active=True,
        email_verified=True
    )
    user.set_password('password123')
    session.add(user)
    session.flush()

    profile = Profile(
        id=user.id,
        nome=f'Marcenaria {full_name}',
        wpp='11987654321',
        unidade='mm',
        is_active=True,
        subscription_status='active',
        stripe_customer_id=f'cus_{suffix}'
    )
    session.add(profile)
    session.commit()
    return user


@pytest.fixture(scope='function')
def user1(session):
    """Create first test account with an active profile."""
    return _make_user(session, 'user1', 'User One')


@pytest.fixture(scope='function')
def user2(session):
    """Create second test account for isolation tests."""
    return _make_user(session, 'user2', 'User Two')


@pytest.fixture(scope='function')
def authenticated_client(client, user1):
    """Create authenticated client for user1."""
    with client.session_transaction() as sess:
        sess['user_id'] = user1.id
        sess['email'] = user1.email
    return client


@pytest.fixture
def flat_form():
    """Complete wizard state for one proposta."""
    return {
        'cliente_nome': 'Maria Souza',
        'cliente_wpp': '11988887777',
        'cliente_end': 'Rua das Flores, 100',
        'cliente_ref': 'Próximo à praça',
        'validade': '15 dias',
        'ambientes': [
            {
                'id': 'amb1',
                'tipo': 'Cozinha Planejada',
                'pecas': [{'nome': 'Armário aéreo', 'l': '2000', 'a': '700', 'p': '350'}],
                'detalhes': 'Puxador cava',
            },
            {
                'id': 'amb2',
                'tipo': 'Closet',
                'pecas': [{'nome': 'Gaveteiro', 'l': '800', 'a': '900', 'p': '500'}],
                'detalhes': '',
            },
        ],
        'chapa': 'MDF 15mm',
        'acabamento': 'Lacca Fosco',
        'ferragens': 'Padrão',
        'detalhes': 'Corrediças telescópicas',
        'inicio': '01/03/2026',
        'entrega': '30/03/2026',
        'prazo_obs': '30 dias úteis',
        'garantia': '5 anos',
        'incluso': 'Montagem',
        'excluso': 'Eletrodomésticos',
        'obs_final': 'Obrigado pela preferência',
        'v_mat': 1000,
        'v_despesas': 200,
        'v_ferr': 300,
        'v_outros': 0,
        'v_margem': 30,
        'pgto_formas': ['PIX', 'Cartão'],
        'pgto_parcelas': 3,
        'pgto_juros': True,
        'pgto_pix': '123.456.789-01',
        'pgto_pix_tipo': 'CPF',
        'pgto_condicao': '50% de entrada',
    }


@pytest.fixture
def proposta_factory(session):
    """Insert raw proposta rows (any stored shape) for an account."""
    def _create(user, **columns):
        columns.setdefault('cliente_nome', 'Cliente Teste')
        columns.setdefault('cliente_wpp', '11999990000')
        columns.setdefault('v_total', 0)
        proposta = Proposta(user_id=user.id, **columns)
        session.add(proposta)
        session.commit()
        return proposta
    return _create


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header for a raw body."""
    timestamp = timestamp or int(time.time())
    signed = f'{timestamp}.{payload}'.encode('utf-8')
    signature = hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()
    return f't={timestamp},v1={signature}'


@pytest.fixture
def stripe_signature():
    """Signer for hand-built webhook requests."""
    return sign_payload


@pytest.fixture
def post_event(client):
    """POST a signed Stripe event to the webhook endpoint."""
    def _post(event: dict, secret: str = WEBHOOK_SECRET, path: str = '/api/webhook'):
        payload = json.dumps(event)
        return client.post(
            path,
            data=payload,
            content_type='application/json',
            headers={'Stripe-Signature': sign_payload(payload, secret)}
        )
    return _post
