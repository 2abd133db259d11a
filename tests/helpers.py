import httpx


def client_for(app):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


def access_form_payload(**overrides):
    payload = {
        "name": "Solicitação de Acesso",
        "description": "Pedidos de acesso a sistemas",
        "fields": [
            {"id": "nome", "type": "text", "label": "Nome", "required": True},
            {
                "id": "departamento",
                "type": "select",
                "label": "Departamento",
                "required": True,
                "options": ["TI", "RH"],
            },
        ],
    }
    payload.update(overrides)
    return payload
