"""IoT Sensor Manager - sensor registry with Node-RED flow provisioning"""

__version__ = "1.0.0"
