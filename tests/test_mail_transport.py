import requests

from abstract_portal.utils.services.mail import RestMailTransport, get_mail_transport


class _Response:
    def __init__(self, status_code=200, body=None, text=''):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError('no json')
        return self._body


class _Session:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({'url': url, 'json': json, 'headers': headers, 'timeout': timeout})
        if self.error is not None:
            raise self.error
        return self.response


def _transport(session, **kwargs):
    return RestMailTransport('https://mail.example.com/send', 'secret', sender='noreply@example.com',
                             timeout=5, session=session, **kwargs)


def test_successful_send_returns_message_id():
    session = _Session(_Response(200, {'messageId': 'abc-1'}))

    result = _transport(session).send('a@example.com', 'Hello', '<p>Hi</p>', 'Hi')

    assert result.success is True
    assert result.message_id == 'abc-1'
    call = session.calls[0]
    assert call['json']['from'] == 'noreply@example.com'
    assert call['headers']['Authorization'] == 'Bearer secret'
    assert call['timeout'] == 5


def test_upstream_error_is_a_failure():
    result = _transport(_Session(_Response(502, text='bad gateway'))).send('a@example.com', 'Hello', '<p>Hi</p>')

    assert result.success is False
    assert result.status_code == 502


def test_network_error_is_a_failure():
    session = _Session(error=requests.ConnectionError('refused'))

    result = _transport(session).send('a@example.com', 'Hello', '<p>Hi</p>')

    assert result.success is False
    assert 'refused' in result.error


def test_disabled_transport_sends_nothing():
    session = _Session(_Response(200, {}))

    result = _transport(session, enabled=False).send('a@example.com', 'Hello', '<p>Hi</p>')

    assert result.success is True
    assert session.calls == []


def test_unconfigured_transport_reports_service_unavailable():
    result = RestMailTransport('', None, session=_Session()).send('a@example.com', 'Hello', '<p>Hi</p>')
    assert result.status_code == 503


def test_missing_recipient_is_rejected():
    result = _transport(_Session()).send('', 'Hello', '<p>Hi</p>')
    assert result.success is False
    assert result.status_code == 400


def test_app_transport_is_cached(app):
    first = get_mail_transport(app)
    assert get_mail_transport(app) is first
    assert first.enabled is False
