# mqtt_handler.py
"""
FILE: mqtt_handler.py
DESCRIPTION:
  Manages the connection to the MQTT Broker.
  - Optional Last-Will: "0" (retained) registered as the will, "1" published
    on every successful connect.
  - The first CONNACK must arrive and be accepted, otherwise the process
    exits. Later reconnects are left to paho's network loop.
"""
import sys
import threading
import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion
# Local imports
import logger

CONNECT_TIMEOUT = 10.0  # seconds to wait for the first CONNACK
ONLINE_PAYLOAD = "1"
OFFLINE_PAYLOAD = "0"


class SensorHubMQTT:
    def __init__(self, mqtt_settings, verbose=False):
        self.settings = mqtt_settings
        self.verbose = verbose
        self.TOPIC_AVAILABILITY = mqtt_settings.lwt or None

        self.client = mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=mqtt_settings.client_id,
        )
        if mqtt_settings.user:
            self.client.username_pw_set(mqtt_settings.user, mqtt_settings.password)
        if self.TOPIC_AVAILABILITY:
            self.client.will_set(self.TOPIC_AVAILABILITY, OFFLINE_PAYLOAD, retain=True)
        self.client.reconnect_delay_set(min_delay=1, max_delay=120)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        # Set by the first CONNACK, accepted or not
        self._first_connect = threading.Event()
        self._first_rc = None

    def _on_connect(self, c, u, f, rc, p=None):
        first = not self._first_connect.is_set()
        if first:
            self._first_rc = rc
            self._first_connect.set()
        if rc == 0:
            if self.TOPIC_AVAILABILITY:
                c.publish(self.TOPIC_AVAILABILITY, ONLINE_PAYLOAD, retain=True)
            logger.info("MQTT", "Connected Successfully.", style="green")
        elif not first:
            # start() reports a refused first connect
            logger.error("MQTT", f"Connection Failed! Code: {rc}")

    def _on_disconnect(self, c, u, f, rc, p=None):
        if rc != 0:
            logger.warn("MQTT", f"Disconnected ({rc}), reconnecting...")

    def start(self, timeout=CONNECT_TIMEOUT):
        host = self.settings.host
        logger.info("STARTUP", f"Connecting to MQTT Broker at {host}:{self.settings.port}...")
        try:
            self.client.connect(host, self.settings.port, keepalive=self.settings.keepalive)
            self.client.loop_start()
        except Exception as e:
            logger.error("CRITICAL", f"MQTT Connect Failed: {e}")
            sys.exit(1)

        if not self._first_connect.wait(timeout):
            reason = f"no CONNACK within {timeout:g}s"
        elif self._first_rc != 0:
            reason = f"broker refused the connection ({self._first_rc})"
        else:
            return
        self.client.loop_stop()
        logger.error("CRITICAL", f"MQTT Connect Failed: {reason}")
        sys.exit(1)

    def stop(self):
        if self.TOPIC_AVAILABILITY:
            self.client.publish(self.TOPIC_AVAILABILITY, OFFLINE_PAYLOAD, retain=True)
        self.client.loop_stop()
        self.client.disconnect()

    def publish(self, topic, payload, retain=False):
        """Thread-safe; called from every task thread and from GPIO callbacks."""
        self.client.publish(topic, payload, retain=retain)
        if self.verbose:
            logger.telemetry(topic, payload, retain=retain)

    def send_heartbeat(self):
        self.publish(f"{self.settings.prefix}heartbeat", b"")
