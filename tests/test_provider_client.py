import pytest
import requests

from conftest import make_response
from errors import ConfigurationError, NotFoundError, ProviderRejectedError, ProviderTransportError
from gateways.http import ProviderClient


def _client():
    return ProviderClient('pushinpay', 'https://api.pushinpay.test/', headers={'Authorization': 'Bearer t'}, timeout=3)


def test_builds_url_sets_headers_and_timeout(http_session):
    http_session.request.return_value = make_response(200, {'id': 'abc'})

    assert _client().post('/api/pix/cashIn', json={'value': 100}) == {'id': 'abc'}

    http_session.request.assert_called_once_with(
        'POST', 'https://api.pushinpay.test/api/pix/cashIn', json={'value': 100}, timeout=3
    )
    assert http_session.headers['Authorization'] == 'Bearer t'
    assert http_session.headers['Accept'] == 'application/json'


def test_empty_body_is_empty_dict(http_session):
    http_session.request.return_value = make_response(204)
    assert _client().delete('/x') == {}


@pytest.mark.parametrize('status, error', [
    (401, ConfigurationError),
    (403, ConfigurationError),
    (404, NotFoundError),
    (422, ProviderRejectedError),
    (500, ProviderTransportError),
    (503, ProviderTransportError),
])
def test_http_errors_are_mapped(http_session, status, error):
    http_session.request.return_value = make_response(status, {'message': 'nope'})

    with pytest.raises(error) as exc_info:
        _client().get('/anything')
    assert exc_info.value.gateway == 'pushinpay'


def test_rejection_is_not_retryable_but_server_error_is(http_session):
    http_session.request.return_value = make_response(400, {'message': 'invalid value'})
    with pytest.raises(ProviderRejectedError) as rejected:
        _client().post('/x', json={})
    assert rejected.value.retryable is False
    assert rejected.value.details == {'message': 'invalid value'}

    http_session.request.return_value = make_response(502, text='Bad Gateway')
    with pytest.raises(ProviderTransportError) as transport:
        _client().post('/x', json={})
    assert transport.value.retryable is True
    assert transport.value.status_code == 502


def test_timeout_and_connection_errors_are_transport_errors(http_session):
    http_session.request.side_effect = requests.Timeout("read timed out")
    with pytest.raises(ProviderTransportError):
        _client().get('/slow')

    http_session.request.side_effect = requests.ConnectionError("refused")
    with pytest.raises(ProviderTransportError):
        _client().get('/down')


def test_non_json_success_body_is_transport_error(http_session):
    http_session.request.return_value = make_response(200, text='<html>maintenance</html>')
    with pytest.raises(ProviderTransportError):
        _client().get('/x')
