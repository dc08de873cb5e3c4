from unittest.mock import patch

import pytest

from config import MqttSettings
from mqtt_handler import SensorHubMQTT


@pytest.fixture
def paho_client():
    with patch("mqtt_handler.mqtt.Client") as client_cls:
        yield client_cls.return_value


def make_handler(**overrides):
    values = {"host": "broker.local", "client_id": "hub-1", "prefix": "home/lr/"}
    values.update(overrides)
    return SensorHubMQTT(MqttSettings(**values))


def test_lwt_registered_before_connect(paho_client):
    handler = make_handler(lwt="home/lr/online")
    paho_client.will_set.assert_called_once_with("home/lr/online", "0", retain=True)
    assert handler.TOPIC_AVAILABILITY == "home/lr/online"


def test_online_published_on_every_connect(paho_client):
    handler = make_handler(lwt="home/lr/online")

    handler._on_connect(paho_client, None, None, 0)
    handler._on_connect(paho_client, None, None, 0)

    assert paho_client.publish.call_count == 2
    paho_client.publish.assert_called_with("home/lr/online", "1", retain=True)


def test_failed_connect_callback_publishes_nothing(paho_client):
    handler = make_handler(lwt="home/lr/online")
    handler._on_connect(paho_client, None, None, 5)
    paho_client.publish.assert_not_called()


def test_no_lwt_configured(paho_client):
    handler = make_handler()
    paho_client.will_set.assert_not_called()
    handler._on_connect(paho_client, None, None, 0)
    paho_client.publish.assert_not_called()


def test_credentials_only_when_user_set(paho_client):
    make_handler()
    paho_client.username_pw_set.assert_not_called()
    make_handler(user="hub", password="secret")
    paho_client.username_pw_set.assert_called_once_with("hub", "secret")


def accept_on_loop_start(paho_client, handler, rc=0):
    """The network loop delivers the CONNACK as soon as it starts."""
    paho_client.loop_start.side_effect = lambda: handler._on_connect(paho_client, None, None, rc)


def test_start_connects_and_starts_loop(paho_client):
    handler = make_handler(port=1884, keepalive=30)
    accept_on_loop_start(paho_client, handler)

    handler.start()

    paho_client.connect.assert_called_once_with("broker.local", 1884, keepalive=30)
    paho_client.loop_start.assert_called_once()


def test_connect_failure_is_fatal(paho_client):
    paho_client.connect.side_effect = ConnectionRefusedError("[Errno 111] Connection refused")
    with pytest.raises(SystemExit) as exc:
        make_handler().start()
    assert exc.value.code == 1
    paho_client.loop_start.assert_not_called()


def test_refused_first_connect_is_fatal(paho_client):
    handler = make_handler(lwt="home/lr/online")
    accept_on_loop_start(paho_client, handler, rc=5)

    with patch("mqtt_handler.logger.error") as error, pytest.raises(SystemExit) as exc:
        handler.start()

    assert exc.value.code == 1
    paho_client.loop_stop.assert_called_once()
    paho_client.publish.assert_not_called()
    error.assert_called_once()
    assert "refused" in error.call_args.args[1]


def test_missing_connack_is_fatal(paho_client):
    with pytest.raises(SystemExit) as exc:
        make_handler().start(timeout=0.05)
    assert exc.value.code == 1
    paho_client.loop_stop.assert_called_once()


def test_refused_reconnect_is_logged_without_exiting(paho_client):
    handler = make_handler()
    accept_on_loop_start(paho_client, handler)
    handler.start()

    with patch("mqtt_handler.logger.error") as error:
        handler._on_connect(paho_client, None, None, 5)
    error.assert_called_once_with("MQTT", "Connection Failed! Code: 5")


def test_publish_and_heartbeat(paho_client):
    handler = make_handler()
    handler.publish("home/lr/temperature", "21.3")
    handler.send_heartbeat()

    assert paho_client.publish.call_args_list[0].args == ("home/lr/temperature", "21.3")
    assert paho_client.publish.call_args_list[1].args == ("home/lr/heartbeat", b"")


def test_verbose_logs_publishes(paho_client):
    handler = SensorHubMQTT(MqttSettings(), verbose=True)
    with patch("mqtt_handler.logger.telemetry") as telemetry:
        handler.publish("t", "1", retain=True)
    telemetry.assert_called_once_with("t", "1", retain=True)


def test_stop_marks_offline(paho_client):
    handler = make_handler(lwt="home/lr/online")
    handler.stop()
    paho_client.publish.assert_called_once_with("home/lr/online", "0", retain=True)
    paho_client.loop_stop.assert_called_once()
    paho_client.disconnect.assert_called_once()
