from unittest.mock import AsyncMock, MagicMock

from app.services import notification_service


async def test_notify_user_stores_notification(db, make_user):
    user_id = await make_user()

    stored = await notification_service.notify_user(
        db,
        user_id=user_id,
        notification_type='subscription_purchased',
        title='Subscription activated',
        body='Standard is active.',
        payload={'subscription_id': 1},
    )

    assert stored is True
    result = await notification_service.list_user_notifications(db, user_id)
    assert result['unread'] == 1
    assert [(item.notification_type, item.payload) for item in result['items']] == [
        ('subscription_purchased', {'subscription_id': 1})
    ]


async def test_notify_user_failure_is_logged_not_raised(db, monkeypatch):
    monkeypatch.setattr(
        notification_service,
        'create_user_notification',
        AsyncMock(side_effect=RuntimeError('db gone')),
    )
    monkeypatch.setattr(notification_service, 'logger', MagicMock())

    stored = await notification_service.notify_user(
        db,
        user_id=1,
        notification_type='subscription_renewed',
        title='Subscription renewed',
        body='',
    )

    assert stored is False
    notification_service.logger.warning.assert_called_once()


async def test_deliver_code_passes_through_to_sender():
    sender = MagicMock()
    sender.send_code = AsyncMock()

    assert await notification_service.deliver_code(sender, 'user@example.com', '123456', 'register') is True
    sender.send_code.assert_awaited_once_with('user@example.com', '123456', 'register')


async def test_deliver_code_failure_is_logged(monkeypatch):
    sender = MagicMock()
    sender.send_code = AsyncMock(side_effect=ConnectionError('smtp down'))
    monkeypatch.setattr(notification_service, 'logger', MagicMock())

    assert await notification_service.deliver_code(sender, 'user@example.com', '123456', 'reset') is False
    notification_service.logger.warning.assert_called_once()
