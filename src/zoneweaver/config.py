import os

from dotenv import load_dotenv

load_dotenv()

COORDINATOR_URI = os.getenv("ZONEWEAVER_COORDINATOR_URI", "mongodb://localhost:27017")
SERVER_SELECTION_TIMEOUT_MS = int(os.getenv("ZONEWEAVER_SERVER_SELECTION_TIMEOUT_MS", "5000"))

TOPOLOGIES_PATH = os.getenv("ZONEWEAVER_TOPOLOGIES_PATH", "topologies")
LOG_DIR = os.getenv("ZONEWEAVER_LOG_DIR", "logs")
