"""
Tests for channel formatters, senders and the channel registry.
"""

from dataclasses import replace
from unittest.mock import Mock, patch

import pytest
import requests

from daybreak.briefing.channels import available_channels, get_channel
from daybreak.briefing.channels.base import ChannelPayload
from daybreak.briefing.channels.whatsapp import whatsapp_address
from daybreak.briefing.errors import NoChannelConfigured
from daybreak.briefing.narrative import fallback_narrative
from daybreak.briefing.preferences import BriefingProfile

CONFIG = {
    'APP_URL': 'https://daybreak.example.com',
    'BRIEFING_CHANNEL_TIMEOUT_SECONDS': 2.0,
    'SLACK_BOT_TOKEN': 'xoxb-test',
    'TELEGRAM_BOT_TOKEN': 'telegram-test',
    'TWILIO_ACCOUNT_SID': 'AC123',
    'TWILIO_AUTH_TOKEN': 'secret',
    'TWILIO_WHATSAPP_FROM': '+15550000000',
    'RESEND_API_KEY': 're_test',
    'RESEND_FROM_EMAIL': 'Daybreak <briefings@example.com>',
}


def response(status_code=200, json_data=None, text=''):
    mock = Mock()
    mock.status_code = status_code
    mock.json.return_value = json_data if json_data is not None else {}
    mock.text = text
    return mock


def busy_day(make_snapshot):
    return make_snapshot(
        events=10,
        due_today=[(f"Task {i}", 'high') for i in range(6)],
        overdue=[(f"Late {i}", i + 1) for i in range(6)],
        unread=3,
    )


class TestRegistry:

    def test_builtin_channels_registered(self):
        assert available_channels() == ['email', 'in_app', 'slack', 'telegram', 'whatsapp']

    def test_unknown_channel_raises(self):
        with pytest.raises(NoChannelConfigured):
            get_channel('carrier_pigeon', CONFIG)

    def test_missing_address_raises(self):
        profile = BriefingProfile(user_id=7, first_name='Ada', email='ada@example.com', channel='slack')
        with pytest.raises(NoChannelConfigured):
            get_channel('slack', CONFIG).resolve_address(profile)

    def test_default_addresses(self):
        profile = BriefingProfile(user_id=7, first_name='Ada', email='ada@example.com')
        assert get_channel('email', CONFIG).resolve_address(profile) == 'ada@example.com'
        assert get_channel('in_app', CONFIG).resolve_address(profile) == '7'


class TestSlackFormat:

    def test_event_cap_and_block_limits(self, make_snapshot):
        snapshot = busy_day(make_snapshot)
        payload = get_channel('slack', CONFIG).format(snapshot, fallback_narrative(snapshot))

        schedule = next(b for b in payload.blocks if "Today's Schedule" in b.get('text', {}).get('text', ''))
        text = schedule['text']['text']
        assert "(10 events)" in text
        assert text.count("\n• ") == 4
        assert "Meeting 5" not in text
        assert ":star:" in text  # first meeting has three attendees

        for block in payload.blocks:
            if block['type'] == 'section':
                assert len(block['text']['text']) <= 3000

    def test_long_summary_is_truncated(self, make_snapshot):
        snapshot = make_snapshot(events=1)
        narrative = fallback_narrative(snapshot)
        narrative = replace(narrative, summary='word ' * 2000)
        payload = get_channel('slack', CONFIG).format(snapshot, narrative)

        summary_block = payload.blocks[3]
        assert len(summary_block['text']['text']) <= 3000
        assert summary_block['text']['text'].endswith('…')
        assert 0 < len(payload.text) <= 3000

    def test_fallback_text_and_dashboard_link(self, make_snapshot):
        snapshot = make_snapshot()
        payload = get_channel('slack', CONFIG).format(snapshot, fallback_narrative(snapshot))

        assert payload.text.startswith("Good morning, Ada!")
        assert payload.blocks[0]['text']['text'] == "☀️ Good Morning, Ada!"
        assert "<https://daybreak.example.com/dashboard|Open Dashboard>" in payload.blocks[-1]['elements'][0]['text']

    def test_user_content_is_escaped(self, make_snapshot):
        snapshot = make_snapshot(due_today=[('Fix <script> & co', 'high')])
        payload = get_channel('slack', CONFIG).format(snapshot, fallback_narrative(snapshot))
        tasks = next(b for b in payload.blocks if 'Tasks*' in b.get('text', {}).get('text', ''))
        assert 'Fix &lt;script&gt; &amp; co' in tasks['text']['text']


class TestTelegramFormat:

    def test_event_cap(self, make_snapshot):
        snapshot = busy_day(make_snapshot)
        text = get_channel('telegram', CONFIG).format(snapshot, fallback_narrative(snapshot)).text

        assert "📅 *Schedule* (10 events)" in text
        assert "Meeting 3" in text
        assert "Meeting 4" not in text
        assert "⚠️ 6 overdue" in text
        assert "Late 3" not in text

    def test_length_limit(self, make_snapshot):
        snapshot = make_snapshot(events=2)
        narrative = fallback_narrative(snapshot)
        narrative = replace(narrative, summary='word ' * 2000)
        text = get_channel('telegram', CONFIG).format(snapshot, narrative).text

        assert len(text) <= 4096
        assert text.endswith('…')

    def test_markdown_is_escaped(self, make_snapshot):
        snapshot = make_snapshot(due_today=[('update_config *now*', 'high')])
        text = get_channel('telegram', CONFIG).format(snapshot, fallback_narrative(snapshot)).text
        assert r"update\_config \*now\*" in text

    def test_single_event_is_singular(self, make_snapshot):
        snapshot = make_snapshot(events=1)
        text = get_channel('telegram', CONFIG).format(snapshot, fallback_narrative(snapshot)).text

        assert "📅 *Schedule* (1 event)\n" in text

    def test_markers_removed_inside_entities(self, make_snapshot):
        snapshot = make_snapshot(first_name='Ada_Bot')
        narrative = replace(fallback_narrative(snapshot), closing="Go *crush* it_today!")
        text = get_channel('telegram', CONFIG).format(snapshot, narrative).text

        assert text.startswith("☀️ *Good Morning, AdaBot!*\n")
        assert text.endswith("\n_Go crush ittoday!_")
        assert "\\" not in text


class TestWhatsAppFormat:

    def test_only_next_event_shown(self, make_snapshot):
        snapshot = busy_day(make_snapshot)
        text = get_channel('whatsapp', CONFIG).format(snapshot, fallback_narrative(snapshot)).text

        assert "📅 Next up: Meeting 1 at 9:00 AM" in text
        assert "Meeting 2" not in text
        assert "✅ 6 tasks due today" in text
        assert "⚠️ 6 overdue" in text

    def test_length_limit(self, make_snapshot):
        snapshot = make_snapshot()
        narrative = fallback_narrative(snapshot)
        narrative = replace(narrative, summary='word ' * 1000)
        text = get_channel('whatsapp', CONFIG).format(snapshot, narrative).text

        assert len(text) <= 1600
        assert text.endswith('…')

    def test_address_prefix(self):
        assert whatsapp_address('+573001234567') == 'whatsapp:+573001234567'
        assert whatsapp_address('whatsapp:+573001234567') == 'whatsapp:+573001234567'


class TestPlainTextChannels:

    def test_in_app_caps_and_payload_data(self, make_snapshot):
        snapshot = busy_day(make_snapshot)
        payload = get_channel('in_app', CONFIG).format(snapshot, fallback_narrative(snapshot))

        assert "Schedule (10 events)" in payload.text
        assert "Meeting 5 " in payload.text
        assert "Meeting 6 " not in payload.text
        assert "• Due today: Task 4" in payload.text
        assert "Task 5" not in payload.text
        assert payload.subject == "Good Morning, Ada!"
        assert payload.data['snapshot']['date'] == '2026-10-19'
        assert len(payload.data['snapshot']['events']) == 5
        assert payload.data['snapshot']['total_events'] == 10
        assert len(payload.data['snapshot']['due_today']) == 5
        assert len(payload.data['snapshot']['overdue']) == 5
        assert payload.data['snapshot']['total_due_today'] == 6
        assert payload.data['narrative']['priority_actions']

    def test_email_renders_html_and_subject(self, app_context, make_snapshot):
        snapshot = busy_day(make_snapshot)
        payload = get_channel('email', CONFIG).format(snapshot, fallback_narrative(snapshot))

        assert payload.subject == "☀️ Your Monday briefing: 10 events, 6 tasks due"
        assert "Meeting 5" in payload.html
        assert "Meeting 6" not in payload.html
        assert "https://daybreak.example.com/dashboard" in payload.html
        assert "Focus Today" in payload.text


class TestSlackSend:

    PAYLOAD = ChannelPayload(text="Good morning", blocks=[{"type": "divider"}])

    @patch('daybreak.briefing.channels.slack.requests.post')
    def test_success(self, mock_post):
        mock_post.return_value = response(json_data={'ok': True, 'ts': '1700000000.0001'})

        result = get_channel('slack', CONFIG).deliver('C123', self.PAYLOAD)

        assert result.delivered
        assert result.external_id == '1700000000.0001'
        kwargs = mock_post.call_args.kwargs
        assert kwargs['headers']['Authorization'] == 'Bearer xoxb-test'
        assert kwargs['json']['channel'] == 'C123'
        assert kwargs['timeout'] == 2.0

    @patch('daybreak.briefing.channels.slack.requests.post')
    def test_api_error(self, mock_post):
        mock_post.return_value = response(json_data={'ok': False, 'error': 'channel_not_found'})

        result = get_channel('slack', CONFIG).deliver('C404', self.PAYLOAD)

        assert not result.delivered
        assert 'channel_not_found' in result.error

    @patch('daybreak.briefing.channels.slack.requests.post')
    def test_network_error(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("connection refused")

        result = get_channel('slack', CONFIG).deliver('C123', self.PAYLOAD)

        assert not result.delivered
        assert 'connection refused' in result.error

    @patch('daybreak.briefing.channels.slack.requests.post')
    def test_missing_token(self, mock_post):
        result = get_channel('slack', {**CONFIG, 'SLACK_BOT_TOKEN': None}).deliver('C123', self.PAYLOAD)

        assert not result.delivered
        assert 'SLACK_BOT_TOKEN' in result.error
        mock_post.assert_not_called()


class TestOtherSenders:

    @patch('daybreak.briefing.channels.telegram.requests.post')
    def test_telegram(self, mock_post):
        mock_post.return_value = response(json_data={'ok': True, 'result': {'message_id': 42}})

        result = get_channel('telegram', CONFIG).deliver('99887766', ChannelPayload(text='hi'))

        assert result.delivered and result.external_id == '42'
        assert mock_post.call_args.args[0] == 'https://api.telegram.org/bottelegram-test/sendMessage'
        assert mock_post.call_args.kwargs['json']['parse_mode'] == 'Markdown'

    @patch('daybreak.briefing.channels.telegram.requests.post')
    def test_telegram_rejected(self, mock_post):
        mock_post.return_value = response(400, {'ok': False, 'description': "Bad Request: chat not found"})

        result = get_channel('telegram', CONFIG).deliver('1', ChannelPayload(text='hi'))

        assert not result.delivered
        assert 'chat not found' in result.error

    @patch('daybreak.briefing.channels.whatsapp.requests.post')
    def test_whatsapp(self, mock_post):
        mock_post.return_value = response(201, {'sid': 'SM123', 'status': 'queued'})

        result = get_channel('whatsapp', CONFIG).deliver('+573001234567', ChannelPayload(text='hi'))

        assert result.delivered and result.external_id == 'SM123'
        kwargs = mock_post.call_args.kwargs
        assert kwargs['data']['To'] == 'whatsapp:+573001234567'
        assert kwargs['data']['From'] == 'whatsapp:+15550000000'
        assert kwargs['auth'] == ('AC123', 'secret')

    @patch('daybreak.briefing.channels.whatsapp.requests.post')
    def test_whatsapp_error(self, mock_post):
        mock_post.return_value = response(400, {'code': 21211, 'message': "Invalid 'To' Phone Number"})

        result = get_channel('whatsapp', CONFIG).deliver('nope', ChannelPayload(text='hi'))

        assert not result.delivered
        assert '21211' in result.error

    @patch('daybreak.briefing.channels.email.requests.post')
    def test_email(self, mock_post):
        mock_post.return_value = response(json_data={'id': 'email_123'})
        payload = ChannelPayload(text='plain', subject='Subject', html='<p>html</p>')

        result = get_channel('email', CONFIG).deliver('ada@example.com', payload)

        assert result.delivered and result.external_id == 'email_123'
        sent = mock_post.call_args.kwargs['json']
        assert sent['to'] == ['ada@example.com']
        assert sent['from'] == 'Daybreak <briefings@example.com>'
        assert sent['html'] == '<p>html</p>'

    @patch('daybreak.briefing.channels.email.requests.post')
    def test_email_api_error(self, mock_post):
        mock_post.return_value = response(422, text='invalid to address')

        result = get_channel('email', CONFIG).deliver('bad', ChannelPayload(text='x', subject='s', html='h'))

        assert not result.delivered
        assert '422' in result.error

    def test_in_app_stores_notification(self, db, make_user):
        from daybreak.models import Notification

        user = make_user()
        payload = ChannelPayload(text='Body', subject='Good Morning, Ada!', data={'k': 'v'})

        result = get_channel('in_app', CONFIG).deliver(str(user.id), payload)

        assert result.delivered
        notification = db.session.get(Notification, int(result.external_id))
        assert notification.user_id == user.id
        assert notification.type == 'morning_briefing'
        assert notification.data == {'k': 'v'}
        assert notification.is_read is False
