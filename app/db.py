from motor.motor_asyncio import AsyncIOMotorClient
from config import settings


client = AsyncIOMotorClient(settings.MONGODB_URL, tz_aware=True)
db = client[settings.DATABASE_NAME]


leaves_collection = db.leaves
students_collection = db.students
parents_collection = db.parents
notifications_collection = db.notifications
system_activity_collection = db.system_activity
