"""
Integration tests for the Stripe webhook endpoint.
"""

import json
import time
import uuid
import pytest
from app.models import AppUser, Profile
from app.services import provisioning_service


@pytest.fixture
def welcome_emails(monkeypatch):
    sent = []
    monkeypatch.setattr(
        provisioning_service, 'send_welcome_email',
        lambda email, password, nome=None: sent.append(email) or True
    )
    return sent


def checkout_event(email, customer='cus_checkout', subscription='sub_checkout'):
    return {
        'id': f'evt_{uuid.uuid4().hex[:12]}',
        'type': 'checkout.session.completed',
        'data': {'object': {
            'customer': customer,
            'subscription': subscription,
            'customer_details': {'email': email, 'name': 'Roberto Alves'},
        }},
    }


class TestSignature:

    def test_wrong_secret_rejected_without_side_effects(self, post_event, session, welcome_emails):
        email = f'forjado-{uuid.uuid4().hex[:8]}@test.com'
        response = post_event(checkout_event(email), secret='whsec_wrong')

        assert response.status_code == 400
        assert response.get_json()['error'].startswith('Webhook Error:')
        assert session.query(AppUser).filter_by(email=email).count() == 0
        assert welcome_emails == []

    def test_missing_header_rejected(self, client):
        response = client.post('/api/webhook', data=json.dumps({'type': 'x'}), content_type='application/json')
        assert response.status_code == 400
        assert 'error' in response.get_json()

    def test_stale_timestamp_rejected(self, client, stripe_signature):
        payload = json.dumps(checkout_event('antigo@test.com'))
        header = stripe_signature(payload, timestamp=int(time.time()) - 3600)
        response = client.post('/api/webhook', data=payload, content_type='application/json',
                               headers={'Stripe-Signature': header})
        assert response.status_code == 400

    def test_tampered_body_rejected(self, client, stripe_signature):
        payload = json.dumps(checkout_event('original@test.com'))
        header = stripe_signature(payload)
        tampered = payload.replace('original@test.com', 'atacante@test.com')
        response = client.post('/api/webhook', data=tampered, content_type='application/json',
                               headers={'Stripe-Signature': header})
        assert response.status_code == 400


class TestCheckoutCompleted:

    def test_provisions_account_and_activates_profile(self, post_event, session, welcome_emails):
        email = f'comprador-{uuid.uuid4().hex[:8]}@test.com'
        response = post_event(checkout_event(email, customer='cus_buy', subscription='sub_buy'))

        assert response.status_code == 200
        assert response.get_json() == {'received': True}

        user = session.query(AppUser).filter_by(email=email).one()
        profile = session.get(Profile, user.id)
        assert profile.is_active is True
        assert profile.stripe_customer_id == 'cus_buy'
        assert profile.stripe_subscription_id == 'sub_buy'
        assert welcome_emails == [email]

    def test_replay_is_idempotent(self, post_event, session, welcome_emails):
        email = f'replay-{uuid.uuid4().hex[:8]}@test.com'
        event = checkout_event(email)

        assert post_event(event).status_code == 200
        assert post_event(event).status_code == 200

        assert session.query(AppUser).filter_by(email=email).count() == 1
        assert welcome_emails == [email]

    def test_email_is_normalized(self, post_event, session, welcome_emails):
        local = f'misto-{uuid.uuid4().hex[:8]}'
        post_event(checkout_event(f'  {local.upper()}@Test.COM '))
        assert session.query(AppUser).filter_by(email=f'{local}@test.com').count() == 1

    def test_missing_email_returns_400(self, post_event, session, welcome_emails):
        before = session.query(AppUser).count()
        response = post_event(checkout_event(None))

        assert response.status_code == 400
        assert response.get_json() == {'error': 'Email não encontrado'}
        assert session.query(AppUser).count() == before
        assert welcome_emails == []

    def test_alias_path(self, post_event, session, welcome_emails):
        email = f'alias-{uuid.uuid4().hex[:8]}@test.com'
        response = post_event(checkout_event(email), path='/webhooks/stripe')
        assert response.status_code == 200
        assert session.query(AppUser).filter_by(email=email).count() == 1

    def test_account_creation_failure_returns_500(self, post_event, monkeypatch):
        from app.exceptions import AccountCreationError

        def failing(session, email, nome=''):
            raise AccountCreationError()

        monkeypatch.setattr(provisioning_service, 'find_or_create_account', failing)
        response = post_event(checkout_event('falha@test.com'))

        assert response.status_code == 500
        assert response.get_json() == {'error': 'Erro ao criar usuário'}


class TestDeactivation:

    @pytest.mark.parametrize('event_type', ['customer.subscription.deleted', 'invoice.payment_failed'])
    def test_only_matching_customer_deactivated(self, post_event, session, user1, user2, event_type):
        customer = session.get(Profile, user1.id).stripe_customer_id
        event = {'id': 'evt_cancel', 'type': event_type, 'data': {'object': {'customer': customer}}}

        response = post_event(event)

        assert response.status_code == 200
        session.expire_all()
        assert session.get(Profile, user1.id).is_active is False
        assert session.get(Profile, user1.id).subscription_status == 'inactive'
        assert session.get(Profile, user2.id).is_active is True
        # Access is revoked, the account itself stays
        assert session.get(AppUser, user1.id) is not None

    def test_unknown_customer_is_acknowledged(self, post_event):
        event = {'id': 'evt_x', 'type': 'customer.subscription.deleted', 'data': {'object': {'customer': 'cus_nobody'}}}
        assert post_event(event).status_code == 200


def test_unhandled_event_acknowledged(post_event):
    response = post_event({'id': 'evt_paid', 'type': 'invoice.paid', 'data': {'object': {}}})
    assert response.status_code == 200
    assert response.get_json() == {'received': True}
