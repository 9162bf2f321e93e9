"""
Configuration for the ASIC miner poller
"""

# Network settings
NETWORK_SUBNET = "10.0.0.0/24"
DISCOVERY_TIMEOUT = 5  # seconds, deadline for identifying one address
SCAN_CONCURRENCY = 25  # hosts identified and polled at once

# Flask settings
FLASK_HOST = "0.0.0.0"
FLASK_PORT = 5000
DEBUG = False

# Miner API settings
RPC_PORT = 4028
RPC_TIMEOUT = 5
RPC_BUFFER_SIZE = 8192
WEB_PORT = 80
WEB_TIMEOUT = 5
EPIC_WEB_PORT = 4028
WEB_RETRIES = 1

# Default vendor credentials
ANTMINER_USERNAME = "root"
ANTMINER_PASSWORD = "root"
VNISH_PASSWORD = "admin"

# Version tag emitted with every MinerData record
DATA_SCHEMA_VERSION = "1.0"
