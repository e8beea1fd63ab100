"""
Integration tests for the propostas API: wizard draft, saved quotes and PDF.
"""

import pytest
from app.exceptions import PersistenceError
from app.models import Profile, Proposta

PIXEL_PNG = (
    'data:image/png;base64,'
    'iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=='
)


def _fill_draft(client):
    return client.patch('/propostas/rascunho', json={
        'cliente_nome': 'Maria Souza',
        'cliente_wpp': '11988887777',
        'v_mat': 1000,
        'v_despesas': 200,
        'v_ferr': 300,
        'v_outros': 0,
        'v_margem': 30,
    })


class TestAccess:

    def test_requires_login(self, client):
        assert client.get('/propostas').status_code == 401
        assert client.get('/propostas/rascunho').status_code == 401

    def test_subscription_gate(self, authenticated_client, app, session, user1, monkeypatch):
        monkeypatch.setitem(app.config, 'REQUIRE_ACTIVE_SUBSCRIPTION', True)
        assert authenticated_client.get('/propostas').status_code == 200

        profile = session.get(Profile, user1.id)
        profile.is_active = False
        session.commit()

        response = authenticated_client.get('/propostas')
        assert response.status_code == 402

    def test_gate_off_by_default(self, authenticated_client, session, user1):
        profile = session.get(Profile, user1.id)
        profile.is_active = False
        session.commit()
        assert authenticated_client.get('/propostas').status_code == 200


class TestDraft:

    def test_new_draft_uses_profile_defaults(self, authenticated_client, session, user1):
        profile = session.get(Profile, user1.id)
        profile.validade = 20
        profile.prazo_min = 25
        profile.prazo_max = 35
        session.commit()

        body = authenticated_client.get('/propostas/rascunho').get_json()
        draft = body['rascunho']
        assert draft['validade'] == '20 dias'
        assert draft['prazo_obs'] == 'Entre 25 e 35 dias úteis'
        assert len(draft['ambientes']) == 1
        assert body['resumo'] == {'subtotal': 0, 'lucro': 0, 'total': 0}

    def test_patch_updates_live_total(self, authenticated_client):
        response = _fill_draft(authenticated_client)

        assert response.status_code == 200
        assert response.get_json()['resumo'] == {'subtotal': 1500, 'lucro': 450, 'total': 1950}

    def test_patch_rejects_unknown_fields(self, authenticated_client):
        response = authenticated_client.patch('/propostas/rascunho', json={'user_id': 99})
        assert response.status_code == 400

    def test_patch_formats_pix_key(self, authenticated_client):
        response = authenticated_client.patch('/propostas/rascunho', json={
            'pgto_pix_tipo': 'Celular', 'pgto_pix': '11987654321',
        })
        assert response.get_json()['rascunho']['pgto_pix'] == '(11) 98765-4321'

    def test_patch_accepts_numeric_pix_key(self, authenticated_client):
        response = authenticated_client.patch('/propostas/rascunho', json={
            'pgto_pix': 12345678901, 'pgto_pix_tipo': 'CPF',
        })
        assert response.status_code == 200
        assert response.get_json()['rascunho']['pgto_pix'] == '123.456.789-01'

    def test_ambiente_and_peca_editing(self, authenticated_client):
        body = authenticated_client.post('/propostas/rascunho/ambientes', json={'tipo': 'Closet'}).get_json()
        ambientes = body['rascunho']['ambientes']
        assert [a['tipo'] for a in ambientes] == ['Cozinha Planejada', 'Closet']
        closet_id = ambientes[1]['id']

        authenticated_client.post(f'/propostas/rascunho/ambientes/{closet_id}/pecas')
        authenticated_client.patch(f'/propostas/rascunho/ambientes/{closet_id}/pecas/1',
                                   json={'field': 'nome', 'value': 'Sapateira'})
        authenticated_client.delete(f'/propostas/rascunho/ambientes/{closet_id}/pecas/0')
        body = authenticated_client.patch(f'/propostas/rascunho/ambientes/{closet_id}',
                                          json={'field': 'detalhes', 'value': 'Portas de correr'}).get_json()

        closet = body['rascunho']['ambientes'][1]
        assert [p['nome'] for p in closet['pecas']] == ['Sapateira']
        assert closet['detalhes'] == 'Portas de correr'

        first_id = body['rascunho']['ambientes'][0]['id']
        body = authenticated_client.delete(f'/propostas/rascunho/ambientes/{first_id}').get_json()
        assert [a['tipo'] for a in body['rascunho']['ambientes']] == ['Closet']

    def test_add_ambiente_requires_tipo(self, authenticated_client):
        assert authenticated_client.post('/propostas/rascunho/ambientes', json={}).status_code == 400

    def test_save_clears_draft(self, authenticated_client, session, user1):
        _fill_draft(authenticated_client)

        response = authenticated_client.post('/propostas/rascunho/salvar')

        assert response.status_code == 201
        body = response.get_json()
        assert body['proposta']['status'] == 'sent'
        assert body['proposta']['numero'] == 1
        assert body['resumo']['total'] == 1950

        draft = authenticated_client.get('/propostas/rascunho').get_json()['rascunho']
        assert not draft.get('cliente_nome')
        assert 'id' not in draft
        assert session.query(Proposta).filter_by(user_id=user1.id).count() == 1

    def test_save_requires_client_fields(self, authenticated_client):
        response = authenticated_client.post('/propostas/rascunho/salvar')
        assert response.status_code == 400

    def test_failed_save_keeps_draft(self, authenticated_client, monkeypatch):
        _fill_draft(authenticated_client)

        def failing(*args, **kwargs):
            raise PersistenceError()

        monkeypatch.setattr('app.blueprints.propostas.save_proposta', failing)
        response = authenticated_client.post('/propostas/rascunho/salvar')

        assert response.status_code == 503
        draft = authenticated_client.get('/propostas/rascunho').get_json()['rascunho']
        assert draft['cliente_nome'] == 'Maria Souza'
        assert draft['v_mat'] == 1000

    def test_load_then_save_updates_same_row(self, authenticated_client, session, user1, flat_form):
        created = authenticated_client.post('/propostas', json=flat_form).get_json()['proposta']

        loaded = authenticated_client.post(f'/propostas/rascunho/carregar/{created["id"]}').get_json()
        assert loaded['rascunho']['id'] == created['id']
        assert loaded['rascunho']['cliente_end'] == 'Rua das Flores, 100'

        authenticated_client.patch('/propostas/rascunho', json={'v_margem': 0})
        saved = authenticated_client.post('/propostas/rascunho/salvar').get_json()['proposta']

        assert saved['id'] == created['id']
        assert saved['numero'] == created['numero']
        assert saved['v_total'] == 1500
        assert session.query(Proposta).filter_by(user_id=user1.id).count() == 1

    def test_draft_dropped_on_logout(self, authenticated_client):
        _fill_draft(authenticated_client)
        authenticated_client.post('/auth/logout')
        with authenticated_client.session_transaction() as sess:
            assert 'proposta_draft' not in sess


class TestSavedPropostas:

    def test_create_and_show(self, authenticated_client, flat_form):
        response = authenticated_client.post('/propostas', json=flat_form)
        assert response.status_code == 201
        proposta_id = response.get_json()['proposta']['id']

        body = authenticated_client.get(f'/propostas/{proposta_id}').get_json()
        assert body['proposta']['cliente_nome'] == 'Maria Souza'
        assert [a['id'] for a in body['proposta']['ambientes']] == ['amb1', 'amb2']
        assert body['proposta']['pgto_formas'] == ['PIX', 'Cartão']
        assert body['resumo']['total'] == 1950

    def test_form_post_keeps_formas_as_list(self, authenticated_client):
        response = authenticated_client.post('/propostas', data={
            'cliente_nome': 'Maria Souza',
            'cliente_wpp': '11988887777',
            'pgto_formas': 'PIX',
        })
        assert response.status_code == 201
        assert response.get_json()['proposta']['pgto_formas'] == ['PIX']

        response = authenticated_client.post('/propostas', data={
            'cliente_nome': 'Maria Souza',
            'cliente_wpp': '11988887777',
            'pgto_formas': ['PIX', 'Cartão'],
        })
        assert response.get_json()['proposta']['pgto_formas'] == ['PIX', 'Cartão']

    def test_update(self, authenticated_client, flat_form):
        proposta = authenticated_client.post('/propostas', json=flat_form).get_json()['proposta']
        proposta['cliente_nome'] = 'Maria S. Oliveira'

        response = authenticated_client.put(f'/propostas/{proposta["id"]}', json=proposta)

        assert response.status_code == 200
        assert response.get_json()['proposta']['cliente_nome'] == 'Maria S. Oliveira'

    def test_list_with_search_status_and_duplicates(self, authenticated_client, user1, proposta_factory):
        a = proposta_factory(user1, numero=5, cliente_nome='Ana Lima', status='sent')
        b = proposta_factory(user1, numero=5, cliente_nome='Bruno Reis', status='not_sent')

        body = authenticated_client.get('/propostas').get_json()
        assert {p['id'] for p in body['propostas']} == {a.id, b.id}
        assert sorted(body['numeros_duplicados']['5']) == sorted([a.id, b.id])

        found = authenticated_client.get('/propostas?q=bruno').get_json()['propostas']
        assert [p['id'] for p in found] == [b.id]

        sent = authenticated_client.get('/propostas?status=sent').get_json()['propostas']
        assert [p['id'] for p in sent] == [a.id]

        assert authenticated_client.get('/propostas?status=archived').status_code == 400

    def test_change_status(self, authenticated_client, user1, proposta_factory):
        proposta = proposta_factory(user1, status='closed')

        response = authenticated_client.patch(f'/propostas/{proposta.id}/status', json={'status': 'not_sent'})
        assert response.get_json() == {'id': proposta.id, 'status': 'not_sent'}

        response = authenticated_client.patch(f'/propostas/{proposta.id}/status', json={'status': 'closed'})
        assert response.status_code == 400

    def test_delete(self, authenticated_client, user1, proposta_factory):
        proposta = proposta_factory(user1)
        assert authenticated_client.delete(f'/propostas/{proposta.id}').status_code == 200
        assert authenticated_client.get(f'/propostas/{proposta.id}').status_code == 404

    def test_other_accounts_propostas_are_invisible(self, authenticated_client, user2, proposta_factory, flat_form):
        foreign = proposta_factory(user2, cliente_nome='Cliente do Outro')

        assert authenticated_client.get('/propostas').get_json()['propostas'] == []
        assert authenticated_client.get(f'/propostas/{foreign.id}').status_code == 404
        assert authenticated_client.put(f'/propostas/{foreign.id}', json=flat_form).status_code == 404
        assert authenticated_client.delete(f'/propostas/{foreign.id}').status_code == 404
        assert authenticated_client.get(f'/propostas/{foreign.id}/pdf').status_code == 404
        assert authenticated_client.post(f'/propostas/rascunho/carregar/{foreign.id}').status_code == 404


class TestPdf:

    def test_download_marks_sent(self, authenticated_client, session, user1, proposta_factory):
        proposta = proposta_factory(
            user1,
            status='active',
            ambientes=[{'id': 'a1', 'tipo': 'Cozinha Planejada',
                        'pecas': [{'nome': 'Balcão', 'l': '1800', 'a': '850', 'p': '550'}], 'detalhes': ''}],
            v_mat=500.0,
            v_margem=10.0,
            v_total=550.0,
            pgto_formas=['PIX'],
        )

        response = authenticated_client.get(f'/propostas/{proposta.id}/pdf')

        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')
        disposition = response.headers['Content-Disposition']
        assert 'attachment' in disposition
        assert 'Proposta_Cliente_Teste_' in disposition

        status = authenticated_client.get(f'/propostas/{proposta.id}').get_json()['proposta']['status']
        assert status == 'sent'

    @pytest.mark.parametrize('logo', [
        None,
        'data:image/png;base64,not-an-image',
        'data:image/png;base64,aGVsbG8=',
        PIXEL_PNG,
    ])
    def test_pdf_renders_with_or_without_usable_logo(self, authenticated_client, session, user1,
                                                     proposta_factory, flat_form, logo):
        profile = session.get(Profile, user1.id)
        profile.logo = logo
        session.commit()

        proposta_id = authenticated_client.post('/propostas', json=flat_form).get_json()['proposta']['id']
        response = authenticated_client.get(f'/propostas/{proposta_id}/pdf')

        assert response.status_code == 200
        assert response.data.startswith(b'%PDF')

    def test_pdf_with_numeric_formas(self, authenticated_client, flat_form):
        flat_form['pgto_formas'] = [1, 2]
        proposta = authenticated_client.post('/propostas', json=flat_form).get_json()['proposta']
        assert proposta['pgto_formas'] == ['1', '2']

        response = authenticated_client.get(f'/propostas/{proposta["id"]}/pdf')
        assert response.status_code == 200
        assert response.data.startswith(b'%PDF')

    def test_pdf_with_non_string_legacy_values(self, authenticated_client, user1, proposta_factory):
        proposta = proposta_factory(
            user1,
            ambientes=[{'id': 'a1', 'tipo': 5, 'pecas': [{'nome': 7, 'l': 100}], 'detalhes': ''}],
            pgto_formas=[1, 'PIX'],
        )

        response = authenticated_client.get(f'/propostas/{proposta.id}/pdf')

        assert response.status_code == 200
        assert response.data.startswith(b'%PDF')
