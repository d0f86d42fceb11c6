import sys
import os
import io

import requests
from PIL import Image

# Add project root to path
sys.path.append(os.getcwd())

from app.dependencies import get_image_store

def test_minio_connection():
    print("--- Testing MinIO Connection ---")

    store = get_image_store()
    img = Image.new('RGB', (64, 64), color='green')
    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    test_content = buffer.getvalue()

    # 1. Upload
    print("1. Uploading test image...")
    try:
        ref = store.upload(test_content, "image/png")
    except Exception as e:
        print(f"    Upload failed: {e}")
        return
    print(f"    Upload successful: {ref.public_id}")

    # 2. Fetch through the URL handed to the inference service
    print(f"2. Downloading from {ref.url}...")
    response = requests.get(ref.url, timeout=10)
    if response.ok and response.content == test_content:
        print("    Download successful and content matches.")
    else:
        print(f"    Download failed: HTTP {response.status_code}")

if __name__ == "__main__":
    test_minio_connection()
