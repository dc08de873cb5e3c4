# sensors_co2.py
"""
FILE: sensors_co2.py
DESCRIPTION:
  MH-Z19 CO2 sensor over a serial line.
  - Sends the fixed 9-byte "read concentration" command.
  - Validates the 9-byte answer with the sensor's checksum.
  - Publishes the ppm value as a plain integer string.
"""
import threading

import logger

READ_CO2_COMMAND = bytes([0xFF, 0x01, 0x86, 0x00, 0x00, 0x00, 0x00, 0x00, 0x79])
FRAME_SIZE = 9
READ_SIZE = 10


def checksum(frame):
    """Checksum of bytes 1..7 as defined by the MH-Z19 datasheet."""
    total = sum(frame[1:8]) % 256
    return ((total ^ 0xFF) + 1) % 256


def decode_response(frame):
    """
    Returns the CO2 concentration in ppm, or None if the frame is short
    or fails the checksum.
    """
    if frame is None or len(frame) < FRAME_SIZE:
        return None
    frame = bytes(frame[:FRAME_SIZE])
    if checksum(frame) != frame[8]:
        return None
    return frame[2] * 256 + frame[3]


class Mhz19Reader:
    def __init__(self, open_transport):
        # open_transport() -> SerialTransport, opened fresh for every poll
        self.open_transport = open_transport
        self._lock = threading.Lock()

    def read(self):
        with self._lock:
            try:
                transport = self.open_transport()
            except (OSError, ValueError) as e:
                logger.warn("MH-Z19", f"Cannot open serial port: {e}")
                return None
            try:
                transport.write(READ_CO2_COMMAND)
                response = transport.read(READ_SIZE)
            except (OSError, ValueError) as e:
                logger.warn("MH-Z19", f"Serial exchange failed: {e}")
                return None
            finally:
                transport.close()

        if response is None or len(response) < FRAME_SIZE:
            logger.warn("MH-Z19", f"Short response ({0 if response is None else len(response)} bytes)")
            return None

        ppm = decode_response(response)
        if ppm is None:
            logger.warn("MH-Z19", f"Checksum mismatch in response {bytes(response[:FRAME_SIZE]).hex(' ')}")
        return ppm


class Co2Monitor:
    def __init__(self, reader, mqtt_handler, topic):
        self.reader = reader
        self.mqtt = mqtt_handler
        self.topic = topic

    def publish_reading(self):
        ppm = self.reader.read()
        if ppm is None:
            return
        self.mqtt.publish(self.topic, str(ppm))
