from dotenv import load_dotenv # type: ignore
import os
from motor.motor_asyncio import AsyncIOMotorClient # type: ignore


# Load environment variables from .env file
load_dotenv()

MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "Proctoring-Backend")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# tz_aware so start/end times read back can be subtracted from utcnow()
client = AsyncIOMotorClient(MONGODB_URL, tz_aware=True)
database = client[DATABASE_NAME]

# Collections
sessions_collection = database.sessions
