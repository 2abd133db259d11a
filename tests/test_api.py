from datetime import datetime, timedelta, timezone

import httpx
import pytest

from deskforms.app import create_app
from deskforms.builder import FormBuilderSession, PageBuilderSession
from deskforms.client import HelpdeskClient
from deskforms.renderer import REQUIRED_MESSAGE, PublicFormSession
from deskforms.utils import dumps_json

from helpers import access_form_payload, client_for


def helpdesk_for(app):
    return HelpdeskClient("http://test", transport=httpx.ASGITransport(app=app))


def _ticket_total(storage):
    now = datetime.now(timezone.utc)
    return storage.tickets.count_tickets_between(now - timedelta(days=2), now + timedelta(days=2))


async def _build_access_form(helpdesk, group_id=None):
    session = FormBuilderSession(helpdesk)
    session.set_name("Solicitação de Acesso")
    nome = session.add_field()
    session.update_field(nome.id, {"label": "Nome", "required": True})
    departamento = session.add_field()
    session.set_field_type(departamento.id, "select")
    session.update_field(departamento.id, {"label": "Departamento", "required": True})
    session.edit_options("TI\nRH")
    if group_id is not None:
        session.link_group(group_id)
    outcome = await session.save()
    assert outcome.ok, outcome.message
    return nome.id, departamento.id


async def _submit_access_request(helpdesk, nome_id, departamento_id):
    forms = await helpdesk.list_forms()
    public = await PublicFormSession.open(helpdesk, forms[0]["public_url"])
    public.set_value(nome_id, "Maria Souza")
    public.set_value(departamento_id, "TI")
    return await public.submit(helpdesk)


@pytest.mark.asyncio
async def test_scenario_a_unlinked_form_opens_ticket_without_approval(app, storage):
    async with helpdesk_for(app) as helpdesk:
        nome_id, departamento_id = await _build_access_form(helpdesk)
        receipt = await _submit_access_request(helpdesk, nome_id, departamento_id)

    assert receipt.approval_required is False
    assert receipt.ticket_number == 1
    ticket = storage.tickets.get_ticket(receipt.ticket_id)
    assert ticket["status"] == "open"
    assert ticket["title"] == "Submissão: Solicitação de Acesso"
    assert "**Nome:** Maria Souza" in ticket["description"]
    assert "**Departamento:** TI" in ticket["description"]


@pytest.mark.asyncio
async def test_scenario_b_group_linked_form_requires_approval(app, storage):
    for index in range(7):
        storage.directory.create_group(f"Grupo {index + 1}")

    async with helpdesk_for(app) as helpdesk:
        nome_id, departamento_id = await _build_access_form(helpdesk, group_id=7)
        receipt = await _submit_access_request(helpdesk, nome_id, departamento_id)

    assert receipt.approval_required is True
    ticket = storage.tickets.get_ticket(receipt.ticket_id)
    assert ticket["status"] == "pending_approval"
    assert ticket["linked_group_id"] == 7


@pytest.mark.asyncio
async def test_scenario_c_missing_required_value_blocks_submission(app, storage):
    async with helpdesk_for(app) as helpdesk:
        nome_id, departamento_id = await _build_access_form(helpdesk)
        forms = await helpdesk.list_forms()
        public = await PublicFormSession.open(helpdesk, forms[0]["public_url"])
        public.set_value(departamento_id, "RH")

        assert await public.submit(helpdesk) is None

    assert public.errors == {nome_id: REQUIRED_MESSAGE}
    assert _ticket_total(storage) == 0


@pytest.mark.asyncio
async def test_scenario_e_page_button_resolves_to_public_form(app, storage):
    async with client_for(app) as client:
        created = (await client.post("/api/forms", json=access_form_payload())).json()
    storage.forms.update_form(created["id"], {"public_url": "abc123"})

    async with helpdesk_for(app) as helpdesk:
        session = PageBuilderSession(helpdesk)
        await session.load_lookups()
        session.set_title("Central de Atendimento")
        button = session.add_button()
        session.target_form(button.id, created["id"])
        [(_, action)] = session.preview
        assert action.href == "/f/abc123"
        assert (await session.save()).ok

        page = await helpdesk.get_public_page("central-de-atendimento")

    assert page["buttons"][0]["form_url"] == "/f/abc123"

    async with client_for(app) as client:
        response = await client.get("/p/central-de-atendimento")
    assert response.status_code == 200
    assert 'href="/f/abc123"' in response.text
    assert "/api/forms" not in response.text


@pytest.mark.asyncio
async def test_ticket_numbers_increase_within_a_day(app):
    async with client_for(app) as client:
        created = (await client.post("/api/forms", json=access_form_payload())).json()
        url = f"/api/public/forms/{created['public_url']}/submit"
        form_data = {"form_data": dumps_json({"nome": "Ana", "departamento": "RH"})}
        first = await client.post(url, data=form_data)
        second = await client.post(url, data=form_data)

    assert first.status_code == 201
    assert [first.json()["ticket_number"], second.json()["ticket_number"]] == [1, 2]
    assert second.json()["submission_id"] != first.json()["submission_id"]


@pytest.mark.asyncio
async def test_server_revalidates_submission(app, storage):
    async with client_for(app) as client:
        created = (await client.post("/api/forms", json=access_form_payload())).json()
        response = await client.post(
            f"/api/public/forms/{created['public_url']}/submit",
            data={"form_data": dumps_json({"nome": "", "departamento": "TI"})},
        )

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["errors"] == {"nome": REQUIRED_MESSAGE}
    assert detail["message"] == f'Campo "Nome": {REQUIRED_MESSAGE}'
    assert _ticket_total(storage) == 0


@pytest.mark.asyncio
async def test_file_submission_is_stored_and_downloadable(app, storage):
    payload = access_form_payload(
        fields=[
            {"id": "nome", "type": "text", "label": "Nome", "required": True},
            {"id": "anexo", "type": "file", "label": "Anexo", "validation": {"max_size": 2}},
        ]
    )
    async with client_for(app) as client:
        created = (await client.post("/api/forms", json=payload)).json()
        response = await client.post(
            f"/api/public/forms/{created['public_url']}/submit",
            data={"form_data": dumps_json({"nome": "Ana"})},
            files={"file_anexo": ("erro.txt", b"stack trace", "text/plain")},
        )
        assert response.status_code == 201
        body = response.json()
        [attachment] = storage.files.list_files(body["submission_id"])
        download = await client.get(f"/attachments/{attachment['id']}")

    assert attachment["original_name"] == "erro.txt"
    assert download.status_code == 200
    assert download.content == b"stack trace"
    ticket = storage.tickets.get_ticket(body["ticket_id"])
    assert "[Arquivo] erro.txt" in ticket["description"]
    assert "**Arquivos anexados:**\n- erro.txt" in ticket["description"]


@pytest.mark.asyncio
async def test_oversized_upload_is_rejected(app):
    payload = access_form_payload(
        fields=[{"id": "anexo", "type": "file", "label": "Anexo", "validation": {"max_size": 0.001}}]
    )
    async with client_for(app) as client:
        created = (await client.post("/api/forms", json=payload)).json()
        response = await client.post(
            f"/api/public/forms/{created['public_url']}/submit",
            data={"form_data": "{}"},
            files={"file_anexo": ("grande.bin", b"x" * 5000, "application/octet-stream")},
        )

    assert response.status_code == 400
    assert response.json()["detail"]["errors"] == {"anexo": "Arquivo muito grande. Tamanho máximo: 0.001MB"}


@pytest.mark.asyncio
async def test_public_form_hides_linkage(app, storage):
    group = storage.directory.create_group("Infra")
    async with client_for(app) as client:
        created = (await client.post("/api/forms", json=access_form_payload(linked_group_id=group["id"]))).json()
        response = await client.get(f"/api/public/forms/{created['public_url']}")

    data = response.json()
    assert data["approval_required"] is True
    assert "linked_group_id" not in data
    assert "linked_user_id" not in data


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"name": ""},
        {"fields": []},
        {"fields": [{"id": "a", "type": "text", "label": "  "}]},
        {"fields": [{"id": "a", "type": "signature", "label": "Assinatura"}]},
        {"linked_user_id": 1, "linked_group_id": 1},
        {"webhook_url": "ftp://example.com/hook"},
    ],
)
async def test_invalid_form_payloads_are_rejected(app, overrides):
    async with client_for(app) as client:
        response = await client.post("/api/forms", json=access_form_payload(**overrides))
    assert response.status_code == 400
    assert response.json()["detail"]


@pytest.mark.asyncio
async def test_unknown_linked_user_is_rejected(app):
    async with client_for(app) as client:
        response = await client.post("/api/forms", json=access_form_payload(linked_user_id=42))
    assert response.status_code == 400
    assert response.json()["detail"] == "Usuário vinculado não encontrado"


@pytest.mark.asyncio
async def test_form_crud_round_trip(app):
    async with client_for(app) as client:
        created = (await client.post("/api/forms", json=access_form_payload())).json()
        form_id = created["id"]
        assert created["public_url"]
        assert created["created_by"] == 1

        update = access_form_payload(name="Acesso a Sistemas")
        updated = (await client.put(f"/api/forms/{form_id}", json=update)).json()
        assert updated["name"] == "Acesso a Sistemas"
        assert updated["public_url"] == created["public_url"]

        listed = (await client.get("/api/forms")).json()
        assert [item["id"] for item in listed] == [form_id]

        assert (await client.delete(f"/api/forms/{form_id}")).status_code == 200
        assert (await client.get(f"/api/forms/{form_id}")).status_code == 404
        assert (await client.put(f"/api/forms/{form_id}", json=update)).status_code == 404


@pytest.mark.asyncio
async def test_rotating_public_url_retires_the_old_one(app):
    async with client_for(app) as client:
        created = (await client.post("/api/forms", json=access_form_payload())).json()
        rotated = (await client.post(f"/api/forms/{created['id']}/public-url")).json()
        old = await client.get(f"/api/public/forms/{created['public_url']}")
        new = await client.get(f"/api/public/forms/{rotated['public_url']}")

    assert rotated["public_url"] != created["public_url"]
    assert old.status_code == 404
    assert new.status_code == 200


@pytest.mark.asyncio
async def test_page_slugs_stay_unique(app):
    page = {"title": "Portal", "content": "<p>Bem-vindo</p>", "buttons": []}
    async with client_for(app) as client:
        first = (await client.post("/api/pages", json=page)).json()
        second = (await client.post("/api/pages", json=page)).json()
        kept = (await client.put(f"/api/pages/{second['id']}", json={**page, "title": "Portal RH"})).json()
        renamed = (await client.put(f"/api/pages/{second['id']}", json={**page, "slug": "portal"})).json()

    assert first["slug"] == "portal"
    assert second["slug"] == "portal-1"
    assert kept["slug"] == "portal-1"
    assert renamed["slug"] == "portal-1"


@pytest.mark.asyncio
async def test_page_button_with_two_targets_is_rejected(app):
    page = {"title": "Portal", "buttons": [{"label": "Ir", "form_id": 1, "url": "https://example.com"}]}
    async with client_for(app) as client:
        response = await client.post("/api/pages", json=page)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_deleted_form_leaves_button_unresolved(app):
    async with client_for(app) as client:
        created = (await client.post("/api/forms", json=access_form_payload())).json()
        page = {"title": "Portal", "buttons": [{"label": "Acesso", "form_id": created["id"]}]}
        await client.post("/api/pages", json=page)
        await client.delete(f"/api/forms/{created['id']}")
        replacement = (await client.post("/api/forms", json=access_form_payload(name="Outro"))).json()
        public = (await client.get("/api/public/pages/portal")).json()
        html = await client.get("/p/portal")

    assert replacement["id"] != created["id"]
    assert public["buttons"][0]["form_url"] is None
    assert replacement["public_url"] not in html.text
    assert 'aria-disabled="true"' in html.text


@pytest.mark.asyncio
async def test_directory_lookups(app, storage):
    storage.directory.create_user("Ana", email="ana@example.com")
    storage.directory.create_group("Infra")
    async with client_for(app) as client:
        users = (await client.get("/api/users")).json()
        groups = (await client.get("/api/groups")).json()

    assert users == [{"id": 1, "name": "Ana"}]
    assert groups == [{"id": 1, "name": "Infra"}]


@pytest.mark.asyncio
async def test_header_auth_guards_operator_routes(settings):
    settings.auth_mode = "header"
    app = create_app(settings)
    async with client_for(app) as client:
        anonymous = await client.get("/api/forms")
        operator = await client.get("/api/forms", headers={"X-User-Id": "5", "X-User-Role": "admin"})
        public = await client.get("/healthz")

    assert anonymous.status_code == 401
    assert operator.status_code == 200
    assert public.status_code == 200


@pytest.mark.asyncio
async def test_webhook_receives_ticket_created(app, monkeypatch):
    sent = []

    async def fake_send(url, payload):
        sent.append((url, payload))
        return True

    monkeypatch.setattr("deskforms.tickets.send_webhook", fake_send)
    payload = access_form_payload(webhook_url="https://hooks.example.com/t", webhook_on_submit=True)
    async with client_for(app) as client:
        created = (await client.post("/api/forms", json=payload)).json()
        response = await client.post(
            f"/api/public/forms/{created['public_url']}/submit",
            data={"form_data": dumps_json({"nome": "Ana", "departamento": "TI"})},
        )

    assert response.status_code == 201
    [(url, body)] = sent
    assert url == "https://hooks.example.com/t"
    assert body["event"] == "ticket.created"
    assert body["ticket"]["ticket_number"] == 1
    assert body["data"] == {"nome": "Ana", "departamento": "TI"}


@pytest.mark.asyncio
async def test_deleted_page_slug_is_not_reused(app):
    page = {"title": "Portal", "content": "<p>Antigo</p>", "buttons": []}
    async with client_for(app) as client:
        first = (await client.post("/api/pages", json=page)).json()
        await client.delete(f"/api/pages/{first['id']}")
        second = (await client.post("/api/pages", json={**page, "content": "<p>Novo</p>"})).json()
        old_link = await client.get("/p/portal")

    assert second["id"] != first["id"]
    assert second["slug"] == "portal-1"
    assert old_link.status_code == 404


@pytest.mark.asyncio
async def test_renamed_slug_stays_retired(app):
    page = {"title": "Portal", "buttons": []}
    async with client_for(app) as client:
        first = (await client.post("/api/pages", json=page)).json()
        await client.put(f"/api/pages/{first['id']}", json={**page, "slug": "inicio"})
        second = (await client.post("/api/pages", json=page)).json()
        restored = (await client.put(f"/api/pages/{first['id']}", json={**page, "slug": "portal"})).json()

    assert second["slug"] == "portal-1"
    assert restored["slug"] == "portal"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("form_data", "errors"),
    [
        ({"nome": [], "departamento": "TI"}, {"nome": "Valor inválido"}),
        ({"nome": {}, "departamento": "TI"}, {"nome": "Valor inválido"}),
        ({"nome": "Ana", "departamento": "TI", "email": 123}, {"email": "Email inválido"}),
        ({"nome": "Ana", "departamento": "TI", "email": ["ana@example.com"]}, {"email": "Valor inválido"}),
    ],
)
async def test_non_text_values_are_rejected(app, storage, form_data, errors):
    payload = access_form_payload()
    payload["fields"].append({"id": "email", "type": "email", "label": "Email"})
    async with client_for(app) as client:
        created = (await client.post("/api/forms", json=payload)).json()
        response = await client.post(
            f"/api/public/forms/{created['public_url']}/submit",
            data={"form_data": dumps_json(form_data)},
        )

    assert response.status_code == 400
    assert response.json()["detail"]["errors"] == errors
    assert _ticket_total(storage) == 0


@pytest.mark.asyncio
async def test_public_session_keeps_approval_flag(app, storage):
    storage.directory.create_group("Infra")
    async with client_for(app) as client:
        created = (await client.post("/api/forms", json=access_form_payload(linked_group_id=1))).json()

    async with helpdesk_for(app) as helpdesk:
        session = await PublicFormSession.open(helpdesk, created["public_url"])

    assert session.approval_required is True
    assert session.form.linkage is None
