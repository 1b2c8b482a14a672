import httpx
import pytest

from salonbook.core.config import settings
from salonbook.models.notification import NotificationChannel
from salonbook.models.user import User
from salonbook.services import channels, email_service, twilio_service
from salonbook.services.channels import default_strategies, destination_for, is_valid_email, is_valid_phone


@pytest.mark.parametrize(
    ('value', 'expected'),
    [('ana@example.com', True), ('ana@localhost', False), ('not-an-email', False), ('', False)],
)
def test_is_valid_email(value: str, expected: bool) -> None:
    assert is_valid_email(value) is expected


@pytest.mark.parametrize(
    ('value', 'expected'),
    [('+55 11 98765-4321', True), ('(11) 9876-5432', True), ('12345', False), ('', False)],
)
def test_is_valid_phone(value: str, expected: bool) -> None:
    assert is_valid_phone(value) is expected


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        ('+5511987654321', '+5511987654321'),
        ('(11) 98765-4321', '+5511987654321'),
        ('5511987654321', '+5511987654321'),
    ],
)
def test_normalize_phone_to_e164(value: str, expected: str) -> None:
    assert twilio_service.normalize_phone(value) == expected


def test_destination_for_picks_contact_by_channel() -> None:
    user = User(email='ana@example.com', phone='+5511987654321')

    assert destination_for(NotificationChannel.EMAIL, user) == 'ana@example.com'
    assert destination_for(NotificationChannel.SMS, user) == '+5511987654321'
    assert destination_for(NotificationChannel.WHATSAPP, User(email='x@example.com')) == ''


def test_default_strategies_cover_every_channel() -> None:
    strategies = default_strategies()

    assert set(strategies) == set(NotificationChannel)
    for channel, strategy in strategies.items():
        assert strategy.channel_id() == channel


async def test_strategy_send_reports_transport_errors_as_failure(monkeypatch) -> None:
    async def broken(to_email: str, subject: str, body: str) -> bool:
        raise OSError('connection refused')

    monkeypatch.setattr(email_service, 'send_email', broken)
    strategy = default_strategies()[NotificationChannel.EMAIL]

    assert await strategy.send('ana@example.com', 'Hi', 'Body') is False


async def test_whatsapp_strategy_uses_twilio_whatsapp(monkeypatch) -> None:
    sent = []

    async def fake_whatsapp(to_phone: str, body: str) -> bool:
        sent.append((to_phone, body))
        return True

    monkeypatch.setattr(twilio_service, 'send_whatsapp', fake_whatsapp)
    strategy = channels.default_strategies()[NotificationChannel.WHATSAPP]

    assert await strategy.send('+5511987654321', 'Subject', 'Body') is True
    assert sent == [('+5511987654321', 'Body')]


async def test_email_not_configured_is_a_failed_send(monkeypatch) -> None:
    monkeypatch.setattr(settings, 'smtp_host', '')

    assert await email_service.send_email('ana@example.com', 'Hi', 'Body') is False


async def test_twilio_not_configured_is_a_failed_send(monkeypatch) -> None:
    monkeypatch.setattr(settings, 'twilio_account_sid', '')

    assert await twilio_service.send_sms('+5511987654321', 'Body') is False


async def test_twilio_posts_message(monkeypatch) -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={'sid': 'SM123'})

    real_client = httpx.AsyncClient

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(settings, 'twilio_account_sid', 'AC123')
    monkeypatch.setattr(settings, 'twilio_auth_token', 'token')
    monkeypatch.setattr(settings, 'twilio_from_number', '+15550001111')
    monkeypatch.setattr(twilio_service.httpx, 'AsyncClient', client_factory)

    assert await twilio_service.send_sms('(11) 98765-4321', 'Your appointment is tomorrow') is True

    [request] = requests
    assert request.url.path == '/2010-04-01/Accounts/AC123/Messages.json'
    body = request.content.decode()
    assert 'To=%2B5511987654321' in body
    assert 'From=%2B15550001111' in body


def test_notification_html_escapes_body() -> None:
    html = email_service.build_notification_html('Hi', 'Line <b>one</b>\n\nLine two')

    assert '&lt;b&gt;one&lt;/b&gt;' in html
    assert 'Line two' in html
