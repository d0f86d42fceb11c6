import os
import sys

# Add project root to path
sys.path.append(os.getcwd())

from app.config import settings
from app.dependencies import get_job_store

def test_redis_connection():
    print(f"Attempting to connect to Redis at: {settings.REDIS_URL}")
    store = get_job_store()
    if store.ping():
        print("Successfully connected to Redis and received PONG!")
        return True
    print("Redis Connection Error.")
    print("Please ensure your Redis Docker container is running and accessible on localhost:6379.")
    return False

if __name__ == "__main__":
    test_redis_connection()
