# sensors_environment.py
import logger
from utils import format_reading


class EnvironmentMonitor:
    """
    Publishes temperature, pressure and humidity from a BME280.
    Each value is read on its own, so one failed read only drops that topic.
    """

    def __init__(self, sensor, mqtt_handler, prefix=""):
        self.sensor = sensor
        self.mqtt = mqtt_handler
        self.prefix = prefix

        # (topic name, read function, scale applied before formatting)
        self.fields = [
            ("temperature", sensor.temperature, 1.0),
            ("pressure", sensor.pressure, 100.0),  # Pa -> hPa
            ("humidity", sensor.humidity, 1.0),
        ]

    def read_stats(self):
        """Returns {field: payload} for every read that succeeded."""
        stats = {}
        for field, read, scale in self.fields:
            try:
                value = read()
                stats[field] = format_reading(value / scale)
            except Exception as e:
                logger.warn("BME280", f"{field} read failed: {e}")
        return stats

    def publish_readings(self):
        for field, payload in self.read_stats().items():
            self.mqtt.publish(f"{self.prefix}{field}", payload)
