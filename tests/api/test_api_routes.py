from datetime import timedelta

import httpx
import pytest

from salonbook.api import deps
from salonbook.api.routes import appointments as appointment_routes
from salonbook.core.security import create_access_token
from salonbook.main import app
from salonbook.models.notification import NotificationChannel
from salonbook.models.user import User
from salonbook.services.channels import ChannelStrategy, is_valid_email
from salonbook.services.delivery_service import DeliveryOrchestrator


@pytest.fixture
def delivered(monkeypatch) -> list[int]:
    """Capture background deliveries instead of reaching real transports."""
    calls: list[int] = []

    async def fake_deliver(appointment_id: int, *args, **kwargs) -> int:
        calls.append(appointment_id)
        return 0

    monkeypatch.setattr(appointment_routes, 'deliver_pending_for_appointment', fake_deliver)
    return calls


@pytest.fixture
async def client(db, delivered):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url='http://test') as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth(user) -> dict[str, str]:
    return {'Authorization': f'Bearer {create_access_token(user.id)}'}


@pytest.fixture
async def other_auth(session) -> dict[str, str]:
    other = User(email='bia@example.com', full_name='Bia Lima')
    session.add(other)
    await session.commit()
    await session.refresh(other)
    return {'Authorization': f'Bearer {create_access_token(other.id)}'}


@pytest.fixture
async def admin_auth(session) -> dict[str, str]:
    owner = User(email='Owner@Example.com', full_name='Salon Owner')
    session.add(owner)
    await session.commit()
    await session.refresh(owner)
    return {'Authorization': f'Bearer {create_access_token(owner.id)}'}


def booking_body(service, day, hhmm: str) -> dict:
    return {'service_id': service.id, 'appointment_date': day.isoformat(), 'appointment_time': hhmm}


async def test_health(client) -> None:
    response = await client.get('/health')

    assert response.status_code == 200
    assert response.json() == {'status': 'ok'}


async def test_requires_bearer_token(client, service, future_monday) -> None:
    response = await client.post('/api/v1/appointments', json=booking_body(service, future_monday, '10:00'))
    assert response.status_code == 401

    response = await client.get('/api/v1/appointments', headers={'Authorization': 'Bearer nonsense'})
    assert response.status_code == 401


async def test_book_then_slot_disappears(client, auth, service, future_monday, delivered) -> None:
    response = await client.post('/api/v1/appointments', json=booking_body(service, future_monday, '10:00'), headers=auth)

    assert response.status_code == 201
    body = response.json()
    assert body['status'] == 'SCHEDULED'
    assert delivered == [body['id']]

    response = await client.get(
        '/api/v1/slots/available', params={'date': future_monday.isoformat(), 'service_id': service.id}
    )
    assert response.status_code == 200
    times = [s['formatted_time'] for s in response.json()['slots']]
    assert '10:00' not in times
    assert '09:30' in times
    assert '10:30' in times


async def test_booking_errors_map_to_status_codes(client, auth, service, future_monday) -> None:
    await client.post('/api/v1/appointments', json=booking_body(service, future_monday, '10:00'), headers=auth)

    conflict = await client.post('/api/v1/appointments', json=booking_body(service, future_monday, '10:00'), headers=auth)
    assert conflict.status_code == 409
    assert 'unavailable' in conflict.json()['detail']

    outside = await client.post('/api/v1/appointments', json=booking_body(service, future_monday, '17:45'), headers=auth)
    assert outside.status_code == 400

    bad_date = await client.post(
        '/api/v1/appointments',
        json={'service_id': service.id, 'appointment_date': 'tomorrow', 'appointment_time': '10:00'},
        headers=auth,
    )
    assert bad_date.status_code == 400


async def test_appointment_lifecycle(client, auth, other_auth, admin_auth, service, future_monday) -> None:
    created = (
        await client.post('/api/v1/appointments', json=booking_body(service, future_monday, '10:00'), headers=auth)
    ).json()
    url = f"/api/v1/appointments/{created['id']}"

    assert (await client.get(url, headers=other_auth)).status_code == 404

    moved = await client.patch(
        f'{url}/reschedule',
        json={'appointment_date': future_monday.isoformat(), 'appointment_time': '11:00'},
        headers=auth,
    )
    assert moved.status_code == 200
    assert moved.json()['status'] == 'RESCHEDULED'

    assert (await client.patch(f'{url}/confirm', headers=auth)).status_code == 403
    assert (await client.patch(f'{url}/complete', headers=other_auth)).status_code == 403

    confirmed = await client.patch(f'{url}/confirm', headers=admin_auth)
    assert confirmed.json()['status'] == 'CONFIRMED'

    canceled = await client.patch(f'{url}/cancel', headers=auth)
    assert canceled.status_code == 200
    assert canceled.json()['status'] == 'CANCELED'

    again = await client.patch(f'{url}/cancel', headers=auth)
    assert again.status_code == 422

    listing = (await client.get('/api/v1/appointments', params={'status': 'CANCELED'}, headers=auth)).json()
    assert listing['total'] == 1
    assert listing['items'][0]['id'] == created['id']


async def test_business_hours_and_special_days(client, admin_auth, future_monday) -> None:
    hours = await client.post('/api/v1/settings/business-hours/initialize', headers=admin_auth)
    assert hours.status_code == 200
    assert len(hours.json()) == 7

    updated = await client.put(
        '/api/v1/settings/business-hours',
        json={'day_of_week': 1, 'is_open': True, 'open_time': '09:00', 'close_time': '12:00'},
        headers=admin_auth,
    )
    assert updated.status_code == 200
    assert updated.json()['close_time'] == '12:00'

    slots = (await client.get('/api/v1/slots/available', params={'date': future_monday.isoformat()})).json()
    assert slots['business_hours'] == '09:00 - 12:00'

    special = await client.post(
        '/api/v1/settings/special-days',
        json={'date': future_monday.isoformat(), 'is_open': False, 'reason': 'Holiday'},
        headers=admin_auth,
    )
    assert special.status_code == 201
    slots = (await client.get('/api/v1/slots/available', params={'date': future_monday.isoformat()})).json()
    assert slots['is_open'] is False
    assert slots['slots'] == []

    deleted = await client.delete(f"/api/v1/settings/special-days/{special.json()['id']}", headers=admin_auth)
    assert deleted.status_code == 204
    missing = await client.delete(f"/api/v1/settings/special-days/{special.json()['id']}", headers=admin_auth)
    assert missing.status_code == 404


async def test_time_blocks(client, auth, admin_auth, service, future_monday) -> None:
    created = await client.post(
        '/api/v1/time-blocks',
        json={'date': future_monday.isoformat(), 'start_time': '12:00', 'end_time': '13:00', 'reason': 'Lunch'},
        headers=admin_auth,
    )
    assert created.status_code == 201

    listed = (await client.get('/api/v1/time-blocks', params={'date': future_monday.isoformat()})).json()
    assert [b['id'] for b in listed] == [created.json()['id']]

    blocked = await client.post('/api/v1/appointments', json=booking_body(service, future_monday, '12:30'), headers=auth)
    assert blocked.status_code == 409

    invalid = await client.post(
        '/api/v1/time-blocks',
        json={'date': future_monday.isoformat(), 'start_time': '13:00', 'end_time': '12:00'},
        headers=admin_auth,
    )
    assert invalid.status_code == 400

    url = f"/api/v1/time-blocks/{created.json()['id']}"
    assert (await client.delete(url, headers=auth)).status_code == 403
    assert (await client.delete(url, headers=admin_auth)).status_code == 204


async def test_schedule_management_requires_admin(client, auth, user, future_monday) -> None:
    day = future_monday.isoformat()
    forbidden = [
        await client.post('/api/v1/settings/business-hours/initialize', headers=auth),
        await client.put(
            '/api/v1/settings/business-hours',
            json={'day_of_week': 1, 'is_open': False},
            headers=auth,
        ),
        await client.post('/api/v1/settings/special-days', json={'date': day, 'is_open': False}, headers=auth),
        await client.post(
            '/api/v1/time-blocks', json={'date': day, 'start_time': '12:00', 'end_time': '13:00'}, headers=auth
        ),
        await client.post(
            '/api/v1/notifications/custom', json={'user_id': user.id, 'title': 'x', 'content': 'y'}, headers=auth
        ),
    ]

    assert [r.status_code for r in forbidden] == [403] * 5
    assert (await client.get('/api/v1/time-blocks', params={'date': day})).json() == []
    assert (await client.get('/api/v1/settings/special-days')).json() == []


async def test_slots_reject_unparseable_date(client, service) -> None:
    response = await client.get('/api/v1/slots/available', params={'date': 'next monday', 'service_id': service.id})

    assert response.status_code == 400
    assert 'Invalid date' in response.json()['detail']


async def test_slots_reject_inactive_service(client, session, service, future_monday) -> None:
    service.active = False
    session.add(service)
    await session.commit()

    response = await client.get(
        '/api/v1/slots/available', params={'date': future_monday.isoformat(), 'service_id': service.id}
    )

    assert response.status_code == 400
    assert 'not available' in response.json()['detail']


async def test_notification_preferences(client, auth) -> None:
    defaults = (await client.get('/api/v1/notifications/preferences', headers=auth)).json()
    assert defaults['enable_email'] is True
    assert defaults['reminder_hours'] == 24

    updated = await client.put(
        '/api/v1/notifications/preferences', json={'enable_sms': True, 'reminder_hours': 48}, headers=auth
    )
    assert updated.status_code == 200
    assert updated.json()['reminder_hours'] == 48

    out_of_range = await client.put('/api/v1/notifications/preferences', json={'reminder_hours': 100}, headers=auth)
    assert out_of_range.status_code == 422


async def test_booking_notifications_listed_and_deletable(client, auth, service, future_monday) -> None:
    await client.post('/api/v1/appointments', json=booking_body(service, future_monday, '10:00'), headers=auth)

    notifications = (await client.get('/api/v1/notifications', headers=auth)).json()
    assert [n['category'] for n in notifications] == ['APPOINTMENT_CONFIRMATION']
    assert notifications[0]['status'] == 'PENDING'

    url = f"/api/v1/notifications/{notifications[0]['id']}"
    assert (await client.delete(url, headers=auth)).status_code == 204
    assert (await client.delete(url, headers=auth)).status_code == 404


async def test_custom_notification_is_sent(client, admin_auth, user) -> None:
    sent = []

    async def transport(destination: str, subject: str, body: str) -> bool:
        sent.append(destination)
        return True

    async def no_sleep(delay: float) -> None:
        return None

    orchestrator = DeliveryOrchestrator(
        strategies={NotificationChannel.EMAIL: ChannelStrategy(NotificationChannel.EMAIL, transport, is_valid_email)},
        priority=[NotificationChannel.EMAIL],
        sleep=no_sleep,
    )
    app.dependency_overrides[deps.get_orchestrator] = lambda: orchestrator

    response = await client.post(
        '/api/v1/notifications/custom',
        json={'user_id': user.id, 'title': 'Promo', 'content': 'Half price on Tuesdays'},
        headers=admin_auth,
    )

    assert response.status_code == 201
    assert response.json()['status'] == 'SENT'
    assert response.json()['delivered_channel'] == 'EMAIL'
    assert sent == ['ana@example.com']

    unknown = await client.post(
        '/api/v1/notifications/custom', json={'user_id': 999, 'title': 'x', 'content': 'y'}, headers=admin_auth
    )
    assert unknown.status_code == 400
