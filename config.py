import os
from dotenv import load_dotenv
from pymongo import MongoClient
import logging

# Load environment variables from .env
load_dotenv()

# MongoDB connection (the client connects lazily on first query)
MONGO_URI = os.getenv("MONGODB_CONNECTION_STRING")
client = MongoClient(MONGO_URI)
db = client[os.getenv("MONGODB_DATABASE", "kerya")]

# Detailed logging configuration
logging.basicConfig(
    filename='system.log',
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# JWT signing key and cookie encryption password
SECRET_KEY = os.getenv("SECRET_KEY")
COOKIE_PASSWORD = os.getenv("COOKIE_PASSWORD", "kerya-cookies")

# Share of booking revenue kept by the platform
PLATFORM_COMMISSION_RATE = float(os.getenv("PLATFORM_COMMISSION_RATE", "0.10"))

# Cap the dashboard occupancy rate at 100%
OCCUPANCY_CLAMP = os.getenv("OCCUPANCY_CLAMP", "1").lower() not in ("0", "false", "no")
