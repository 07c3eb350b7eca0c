from unittest import mock

import pytest

from replyflow.billing.asaas_client import AsaasApiError, AsaasClient
from replyflow.common.retry import TransientHTTPError


def _response(status_code=200, payload=None):
    response = mock.Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = payload if payload is not None else {}
    return response


@pytest.fixture
def client():
    return AsaasClient(api_key="test-key", base_url="https://api-sandbox.asaas.com/v3/")


def test_requires_api_key():
    with pytest.raises(ValueError, match="ASAAS_API_KEY"):
        AsaasClient(api_key="", base_url="https://api-sandbox.asaas.com/v3")


def test_create_customer_sends_access_token(client):
    with mock.patch("requests.request", return_value=_response(payload={"id": "cus_1"})) as mock_request:
        result = client.create_customer("Ana", "ana@example.com", "u1", cpf_cnpj="12345678909")

    assert result == {"id": "cus_1"}
    method, url = mock_request.call_args[0]
    kwargs = mock_request.call_args[1]
    assert method == "POST"
    assert url == "https://api-sandbox.asaas.com/v3/customers"
    assert kwargs["headers"]["access_token"] == "test-key"
    assert kwargs["json"] == {
        "name": "Ana",
        "email": "ana@example.com",
        "externalReference": "u1",
        "cpfCnpj": "12345678909",
    }


def test_list_customers_quotes_reference(client):
    payload = {"data": [{"id": "cus_1"}]}
    with mock.patch("requests.request", return_value=_response(payload=payload)) as mock_request:
        customers = client.list_customers_by_external_reference("user/1")

    assert customers == [{"id": "cus_1"}]
    assert mock_request.call_args[0][1].endswith("/customers?externalReference=user%2F1&limit=10")


def test_create_checkout_is_monthly_recurrent(client):
    with mock.patch("requests.request", return_value=_response(payload={"id": "chk_1"})) as mock_request:
        client.create_checkout("cus_1", "ReplyFlow Pro", "desc", 39.0, "https://s", "https://c", "u1")

    body = mock_request.call_args[1]["json"]
    assert body["chargeTypes"] == ["RECURRENT"]
    assert body["subscriptionCycle"] == "MONTHLY"
    assert body["billingTypes"] == ["CREDIT_CARD"]
    assert body["value"] == 39.0


def test_client_error_raises_with_details(client):
    errors = [{"code": "invalid_email", "description": "Email inválido"}]
    with mock.patch("requests.request", return_value=_response(400, {"errors": errors})):
        with pytest.raises(AsaasApiError) as exc_info:
            client.create_customer("Ana", "bad", "u1")

    assert exc_info.value.status == 400
    assert exc_info.value.details == errors
    assert str(exc_info.value) == "Asaas request failed (400)"


def test_server_errors_are_retried(client):
    responses = [_response(503), _response(200, {"id": "sub_1", "status": "ACTIVE"})]
    with mock.patch("requests.request", side_effect=responses) as mock_request, mock.patch("time.sleep"):
        subscription = client.get_subscription("sub_1")

    assert subscription["status"] == "ACTIVE"
    assert mock_request.call_count == 2


def test_persistent_server_error_gives_up(client):
    with mock.patch("requests.request", return_value=_response(502)) as mock_request, mock.patch("time.sleep"):
        with pytest.raises(TransientHTTPError):
            client.cancel_subscription("sub_1")

    assert mock_request.call_count == 3
