# hardware.py
"""
FILE: hardware.py
DESCRIPTION:
  Thin wrappers around the Raspberry Pi hardware libraries.
  Each sensor module only depends on the small capability interfaces below,
  so tests can hand in fakes instead of real I2C / GPIO / BLE / serial devices.
"""
import asyncio
from typing import Callable, Protocol

import bme280
import serial
import smbus2
from bleak import BleakScanner
from gpiozero import MotionSensor
from gpiozero.exc import GPIOZeroError


class HardwareError(Exception):
    """A device could not be initialized."""


# --- CAPABILITY INTERFACES ---

class EnvironmentSensor(Protocol):
    def temperature(self) -> float: ...
    def pressure(self) -> float: ...  # Pascals
    def humidity(self) -> float: ...
    def close(self) -> None: ...


class Scanner(Protocol):
    def scan(self, duration: float, on_advertisement: Callable[[str], None]) -> None: ...


class EdgeSource(Protocol):
    when_activated: Callable[[], None] | None
    when_deactivated: Callable[[], None] | None

    def close(self) -> None: ...


class SerialTransport(Protocol):
    def write(self, data: bytes) -> int | None: ...
    def read(self, size: int) -> bytes: ...
    def close(self) -> None: ...


# --- RASPBERRY PI IMPLEMENTATIONS ---

class Bme280Sensor:
    """BME280 on the I2C bus (RPi.bme280 + smbus2)."""

    def __init__(self, address=0x76, bus=1):
        self.address = address
        try:
            self.bus = smbus2.SMBus(bus)
        except OSError as e:
            raise HardwareError(f"Cannot open I2C bus {bus}: {e}") from e
        try:
            self.calibration = bme280.load_calibration_params(self.bus, address)
        except OSError as e:
            self.bus.close()
            raise HardwareError(f"BME280 not responding at 0x{address:02x}: {e}") from e

    def _sample(self):
        return bme280.sample(self.bus, self.address, self.calibration)

    def temperature(self):
        return self._sample().temperature

    def pressure(self):
        # The library reports hPa; callers work in Pa like the raw chip does
        return self._sample().pressure * 100.0

    def humidity(self):
        return self._sample().humidity

    def close(self):
        self.bus.close()


class BleScanner:
    """Passive presence scan using bleak. Each scan runs its own event loop."""

    def scan(self, duration, on_advertisement):
        asyncio.run(self._scan(duration, on_advertisement))

    async def _scan(self, duration, on_advertisement):
        def detection_callback(device, advertisement_data):
            on_advertisement(device.address)

        async with BleakScanner(detection_callback=detection_callback):
            await asyncio.sleep(duration)


def motion_sensor(pin):
    """PIR on a GPIO pin. A bare number is a physical header pin (BOARD numbering)."""
    pin = str(pin).strip()
    pin_name = f"BOARD{pin}" if pin.isdigit() else pin
    try:
        return MotionSensor(pin_name)
    except (GPIOZeroError, OSError, ValueError) as e:
        raise HardwareError(f"Cannot set up PIR on pin {pin_name}: {e}") from e


def open_serial(port, baudrate=9600, timeout=1.0):
    """Opens the serial line; raises serial.SerialException (an OSError) on failure."""
    return serial.Serial(port, baudrate=baudrate, timeout=timeout)
