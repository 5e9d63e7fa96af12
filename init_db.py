# init_db.py
from dotenv import load_dotenv

load_dotenv()

from database import setup_database_standalone

print("Initializing novels schema...")
setup_database_standalone()
print("Database initialization complete.")
