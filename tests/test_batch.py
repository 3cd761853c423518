import asyncio
import json

from safebite import batch

from conftest import BRAND_PAYLOAD, gemini_response


def test_scan_directory(tmp_path, monkeypatch):
    (tmp_path / "b_fanta.jpg").write_bytes(b"fanta")
    (tmp_path / "a_coke.PNG").write_bytes(b"coke")
    (tmp_path / "notes.txt").write_text("not an image")
    seen = []

    async def fake_brand(image_bytes, mime_type="image/jpeg"):
        seen.append((image_bytes, mime_type))
        if image_bytes == b"coke":
            raise ConnectionError("rate limited")
        return {"response": gemini_response(json.dumps(BRAND_PAYLOAD)), "cost": 0.0, "latency": 0.1}

    monkeypatch.setattr(batch, "analyze_brand_image", fake_brand)

    results = asyncio.run(batch.scan_directory(str(tmp_path)))

    assert list(results) == ["a_coke.PNG", "b_fanta.jpg"]
    assert results["a_coke.PNG"] is None
    assert results["b_fanta.jpg"]["brandName"] == "Fanta"
    assert seen == [(b"coke", "image/png"), (b"fanta", "image/jpeg")]


def test_scan_missing_directory(tmp_path):
    assert asyncio.run(batch.scan_directory(str(tmp_path / "missing"))) == {}
