# sensors_ble.py
"""
FILE: sensors_ble.py
DESCRIPTION:
  Presence detection from Bluetooth LE advertisements.
  Every time a known address is seen during a scan, "home" is published
  to <ble prefix><address>. Sightings are published as they arrive, not
  collected until the end of the scan, and repeats are not filtered.
"""
import logger

PRESENT_PAYLOAD = "home"


class PresenceScanner:
    def __init__(self, scanner, mqtt_handler, known_devices, prefix="", duration=10.0):
        self.scanner = scanner
        self.mqtt = mqtt_handler
        self.known_devices = tuple(known_devices)
        self.prefix = prefix
        self.duration = duration

    def on_advertisement(self, address):
        for item in self.known_devices:
            if item == address:
                self.mqtt.publish(f"{self.prefix}{item}", PRESENT_PAYLOAD)

    def scan_once(self):
        try:
            self.scanner.scan(self.duration, self.on_advertisement)
        except Exception as e:
            logger.warn("BLE", f"Scan failed: {e}")
