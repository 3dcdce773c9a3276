"""MongoDB connection shared by routes and services"""
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path
import os

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

mongo_url = os.environ.get('MONGO_URL', 'mongodb://localhost:27017').strip()
client = AsyncIOMotorClient(mongo_url)
db = client[os.environ.get('DB_NAME', 'theodoraq')]
