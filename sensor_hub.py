#!/usr/bin/env python3
"""
FILE: sensor_hub.py
DESCRIPTION:
  Entry point. Loads the config, sets up the enabled sensors, connects to
  the broker and keeps every source publishing until SIGINT / SIGTERM.
"""
import argparse
import functools
import signal
import sys
import threading

# --- LOCAL IMPORTS ---
import config
import hardware
import logger
from mqtt_handler import SensorHubMQTT
from scheduler import Scheduler
from sensors_ble import PresenceScanner
from sensors_co2 import Co2Monitor, Mhz19Reader
from sensors_environment import EnvironmentMonitor
from sensors_motion import MotionMonitor


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Publishes BME280, MH-Z19, PIR and BLE presence readings to MQTT."
    )
    parser.add_argument(
        "-config", "--config",
        dest="config",
        default="config",
        help="Config file: a path, or a name looked up as <name>.yaml/.yml/.json (default: config)",
    )
    return parser.parse_args(argv)


def init_hardware(settings):
    """Opens every enabled device. Raises hardware.HardwareError on failure."""
    devices = {}
    if settings.bme280.enabled:
        logger.info("HARDWARE", f"BME280 at 0x{settings.bme280.address:02x} on bus {settings.bme280.bus}")
        devices["bme280"] = hardware.Bme280Sensor(settings.bme280.address, settings.bme280.bus)
    if settings.ble.enabled:
        devices["ble"] = hardware.BleScanner()
    if settings.pir.enabled:
        logger.info("HARDWARE", f"PIR on pin {settings.pir.pin}")
        devices["pir"] = hardware.motion_sensor(settings.pir.pin)
    if settings.mhz19.enabled:
        logger.info("HARDWARE", f"MH-Z19 on {settings.mhz19.port}")
        devices["mhz19"] = functools.partial(
            hardware.open_serial,
            settings.mhz19.port,
            baudrate=settings.mhz19.baudrate,
            timeout=settings.mhz19.timeout,
        )
    return devices


def build_scheduler(settings, mqtt_handler, devices):
    """Registers one task (or edge trigger) per enabled source."""
    scheduler = Scheduler()

    if settings.mqtt.heartbeat:
        scheduler.register_periodic("heartbeat", settings.mqtt.heartbeat_interval, mqtt_handler.send_heartbeat)

    if settings.bme280.enabled:
        sensor = scheduler.add_resource(devices["bme280"])
        env = EnvironmentMonitor(sensor, mqtt_handler, settings.mqtt.prefix)
        scheduler.register_periodic("bme280", settings.bme280.interval, env.publish_readings)

    if settings.ble.enabled:
        presence = PresenceScanner(
            devices["ble"],
            mqtt_handler,
            settings.ble.known_devices,
            prefix=settings.ble.prefix,
            duration=settings.ble.duration,
        )
        scheduler.register_periodic("ble", settings.ble.interval, presence.scan_once)

    if settings.pir.enabled:
        pir = scheduler.add_resource(devices["pir"])
        motion = MotionMonitor(mqtt_handler, settings.topic(settings.pir.suffix))
        scheduler.register_edge_trigger(pir, motion.on_motion, motion.on_no_motion)

    if settings.mhz19.enabled:
        co2 = Co2Monitor(Mhz19Reader(devices["mhz19"]), mqtt_handler, settings.topic(settings.mhz19.suffix))
        scheduler.register_periodic("mhz19", settings.mhz19.interval, co2.publish_reading)

    return scheduler


def main(argv=None):
    args = parse_args(argv)

    # --- 1. CONFIG ---
    try:
        settings = config.load_settings(args.config)
    except config.ConfigError as e:
        logger.error("CRITICAL", e)
        sys.exit(1)

    # --- 2. HARDWARE ---
    try:
        devices = init_hardware(settings)
    except hardware.HardwareError as e:
        logger.error("CRITICAL", f"Hardware initialization failed: {e}")
        sys.exit(1)

    # --- 3. BROKER (exits on failure) ---
    mqtt_handler = SensorHubMQTT(settings.mqtt, verbose=settings.debug)
    mqtt_handler.start()

    # --- 4. START ALL TASKS ---
    scheduler = build_scheduler(settings, mqtt_handler, devices)
    scheduler.start()
    logger.info("STARTUP", "Sensor hub running.", style="green")

    stop_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: stop_event.set())

    try:
        while not stop_event.wait(1):
            pass
    except KeyboardInterrupt:
        pass

    logger.warn("SHUTDOWN", "Stopping tasks and MQTT...")
    scheduler.stop()
    mqtt_handler.stop()
    sys.exit(0)


if __name__ == "__main__":
    main()
