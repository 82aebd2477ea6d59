"""Tests for the ``POST /scan`` classification endpoint and its ``{data, error}`` envelope."""

import unittest

from fastapi.testclient import TestClient

from cattlescan.api.v1.scan import get_breed_model
from cattlescan.main import app
from cattlescan.services.classifier import BaseClassifier, ClassificationResult, MockClassifier


class _ExplodingModel(BaseClassifier):
    async def classify(self, image):
        raise RuntimeError("CUDA out of memory")


class _EchoModel(BaseClassifier):
    def __init__(self):
        self.images = []

    async def classify(self, image):
        self.images.append(image)
        return ClassificationResult(data={"Gir": 92.0}, error=None)


class ScanEndpointTests(unittest.TestCase):
    def setUp(self):
        app.dependency_overrides[get_breed_model] = lambda: MockClassifier(delay_seconds=0)
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()

    def test_returns_fixed_predictions(self):
        resp = self.client.post("/scan", files={"image": ("cow.jpg", b"\xff\xd8\xff", "image/jpeg")})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(
            resp.json(),
            {"data": {"Gir": 92.0, "Sahiwal": 5.0, "Red Sindhi": 3.0}, "error": None},
        )

    def test_missing_image_is_400_envelope(self):
        resp = self.client.post("/scan", data={"note": "no file"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"data": None, "error": "No image file provided."})

    def test_wrong_field_name_is_400(self):
        resp = self.client.post("/scan", files={"photo": ("cow.jpg", b"\xff\xd8\xff", "image/jpeg")})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "No image file provided.")

    def test_text_value_for_image_is_400(self):
        resp = self.client.post("/scan", data={"image": "notafile"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"data": None, "error": "No image file provided."})

    def test_model_failure_is_500_envelope(self):
        app.dependency_overrides[get_breed_model] = lambda: _ExplodingModel()
        resp = self.client.post("/scan", files={"image": ("cow.jpg", b"\xff\xd8\xff", "image/jpeg")})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"data": None, "error": "Failed to process image."})

    def test_image_bytes_reach_model(self):
        model = _EchoModel()
        app.dependency_overrides[get_breed_model] = lambda: model
        resp = self.client.post("/scan", files={"image": ("cow.png", b"png-bytes", "image/png")})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(model.images[0].content, b"png-bytes")
        self.assertEqual(model.images[0].filename, "cow.png")
        self.assertEqual(model.images[0].content_type, "image/png")


if __name__ == "__main__":
    unittest.main()
