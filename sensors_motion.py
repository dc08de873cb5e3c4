# sensors_motion.py
class MotionMonitor:
    """PIR edges: "1" when motion starts, "0" when it stops, same topic for both."""

    def __init__(self, mqtt_handler, topic):
        self.mqtt = mqtt_handler
        self.topic = topic

    def on_motion(self):
        self.mqtt.publish(self.topic, "1")

    def on_no_motion(self):
        self.mqtt.publish(self.topic, "0")
