from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from deskforms.app import create_app, format_dt
from deskforms.renderer import REQUIRED_MESSAGE

from helpers import access_form_payload, client_for


async def _create_form(client, **overrides):
    response = await client.post("/api/forms", json=access_form_payload(**overrides))
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_public_form_renders_fields(app):
    async with client_for(app) as client:
        form = await _create_form(client)
        response = await client.get(f"/f/{form['public_url']}")

    assert response.status_code == 200
    assert "Solicitação de Acesso" in response.text
    assert 'name="nome"' in response.text
    assert '<option value="RH"' in response.text
    assert "aprovação" not in response.text


@pytest.mark.asyncio
async def test_public_form_mentions_approval_when_linked(app, storage):
    user = storage.directory.create_user("Gestor")
    async with client_for(app) as client:
        form = await _create_form(client, linked_user_id=user["id"])
        response = await client.get(f"/f/{form['public_url']}")

    assert "passam por aprovação" in response.text


@pytest.mark.asyncio
async def test_html_submission_with_errors_rerenders_form(app, storage):
    async with client_for(app) as client:
        form = await _create_form(client)
        response = await client.post(f"/f/{form['public_url']}", data={"nome": "", "departamento": "TI"})

    assert response.status_code == 200
    assert REQUIRED_MESSAGE in response.text
    assert '<option value="TI" selected' in response.text
    assert storage.tickets.count_tickets_between(
        datetime(2000, 1, 1, tzinfo=timezone.utc), datetime(2100, 1, 1, tzinfo=timezone.utc)
    ) == 0


@pytest.mark.asyncio
async def test_html_submission_shows_ticket_code(app):
    async with client_for(app) as client:
        form = await _create_form(client)
        response = await client.post(f"/f/{form['public_url']}", data={"nome": "Ana", "departamento": "TI"})

    today = datetime.now(ZoneInfo("America/Sao_Paulo"))
    assert response.status_code == 200
    assert f"{today:%Y%m%d}001" in response.text
    assert f"{today:%Y/%m/%d}/001" in response.text
    assert "será atendida em breve" in response.text


@pytest.mark.asyncio
async def test_html_checkbox_is_read_from_presence(app, storage):
    fields = [{"id": "aceite", "type": "checkbox", "label": "Aceito os termos", "required": True}]
    async with client_for(app) as client:
        form = await _create_form(client, fields=fields)
        missing = await client.post(f"/f/{form['public_url']}", data={})
        checked = await client.post(f"/f/{form['public_url']}", data={"aceite": "on"})

    assert REQUIRED_MESSAGE in missing.text
    assert "Formulário enviado com sucesso!" in checked.text


@pytest.mark.asyncio
async def test_page_renders_content_verbatim(app):
    page = {"title": "Portal", "content": "<h2>Bem-vindo</h2>", "buttons": [{"label": "Status", "url": "https://status.example.com"}]}
    async with client_for(app) as client:
        await client.post("/api/pages", json=page)
        response = await client.get("/p/portal")

    assert "<h2>Bem-vindo</h2>" in response.text
    assert 'href="https://status.example.com"' in response.text
    assert 'target="_blank"' in response.text


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/f/desconhecido", "/p/desconhecida", "/attachments/01HZZZZZZZZZZZZZZZZZZZZZZZ", "/api/public/forms/x", "/api/public/pages/x"])
async def test_unknown_public_addresses_are_404(app, path):
    async with client_for(app) as client:
        response = await client.get(path)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_healthz(app, settings):
    async with client_for(app) as client:
        response = await client.get("/healthz")
    assert response.json() == {"status": "ok", "storage": settings.storage_backend}


def test_timestamps_use_the_reference_timezone():
    late_evening = datetime(2024, 5, 7, 2, 30, tzinfo=timezone.utc)
    assert format_dt(late_evening) == "06/05/2024 23:30"
    assert format_dt(late_evening, tz_name="UTC") == "07/05/2024 02:30"


@pytest.mark.asyncio
async def test_confirmation_shows_time_in_reference_timezone(settings):
    settings.ticket_timezone = "Asia/Tokyo"
    app = create_app(settings)
    async with client_for(app) as client:
        form = await _create_form(client)
        response = await client.post(f"/f/{form['public_url']}", data={"nome": "Ana", "departamento": "TI"})

    today = datetime.now(ZoneInfo("Asia/Tokyo"))
    assert f"Aberto em {today:%d/%m/%Y}" in response.text
    assert f"{today:%Y%m%d}001" in response.text
