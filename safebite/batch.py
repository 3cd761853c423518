# safebite/batch.py
import argparse
import asyncio
import json
import mimetypes
import os
import time

from .ai_engine import analyze_brand_image
from .normalizer import normalize_response
from .schemas import BRAND_SCHEMA

PICTURES_DIR = "pictures"
IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.webp')

def list_images(directory: str):
    files = [f for f in os.listdir(directory) if f.lower().endswith(IMAGE_EXTENSIONS)]
    files.sort()
    return files

async def scan_directory(directory: str = PICTURES_DIR):
    """Runs the brand scanner over every image in ``directory``, returns ``{filename: result}``."""
    if not os.path.isdir(directory):
        print(f"❌ Error: Directory '{directory}' not found.")
        print("Please create it and add .jpg/.png files.")
        return {}

    files = list_images(directory)
    if not files:
        print(f"⚠️  No images found in '{directory}'.")
        return {}

    print(f"🔎 Found {len(files)} images. Starting brand analysis...\n")
    print("=" * 60)

    results = {}
    for i, filename in enumerate(files, 1):
        filepath = os.path.join(directory, filename)
        print(f"[{i}/{len(files)}] Processing: {filename}...")

        start_time = time.time()
        mime_type = mimetypes.guess_type(filename)[0] or "image/jpeg"

        with open(filepath, "rb") as f:
            image_bytes = f.read()

        try:
            call = await analyze_brand_image(image_bytes, mime_type)
            result = normalize_response(call["response"], BRAND_SCHEMA)
        except Exception as e:
            print(f"❌ Failed: {str(e)}")
            result = None

        if result is not None:
            print(f"✅ Finished in {time.time() - start_time:.2f}s")
            print(json.dumps(result, indent=2))
        results[filename] = result
        print("-" * 60)

    return results

def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the SafeBite brand scanner over a folder of images.")
    parser.add_argument("directory", nargs="?", default=PICTURES_DIR)
    args = parser.parse_args(argv)
    asyncio.run(scan_directory(args.directory))

if __name__ == "__main__":
    main()
