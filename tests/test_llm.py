import base64
import unittest
from io import BytesIO
from types import SimpleNamespace

from PIL import Image

from apps.artisan.config import Settings
from apps.artisan.errors import ProviderError
from apps.artisan.services import llm

SETTINGS = Settings(project_id="p", bucket_name="b")


def _image_bytes(fmt: str) -> bytes:
    out = BytesIO()
    Image.new("RGB", (4, 4), (200, 120, 40)).save(out, format=fmt)
    return out.getvalue()


class FakeModels:
    def __init__(self, text=None, images=None, error=None):
        self.text = text
        self.images = images
        self.error = error
        self.calls = []

    def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)

    def generate_images(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(generated_images=self.images)


class LLMTests(unittest.TestCase):
    def setUp(self):
        self._orig = llm._client

    def tearDown(self):
        llm._client = self._orig

    def use(self, models):
        llm._client = SimpleNamespace(models=models)
        return models

    def test_generate_text(self):
        models = self.use(FakeModels(text="  A cedar bowl, hand turned.\n"))
        text = llm.generate_text(SETTINGS, "describe", {"temperature": 0.3, "maxOutputTokens": 200, "unknown": 1})
        self.assertEqual(text, "A cedar bowl, hand turned.")
        call = models.calls[0]
        self.assertEqual(call["model"], SETTINGS.text_model)
        self.assertEqual(call["config"], {"temperature": 0.3, "max_output_tokens": 200})

    def test_generate_text_without_options(self):
        models = self.use(FakeModels(text="ok"))
        llm.generate_text(SETTINGS, "describe")
        self.assertIsNone(models.calls[0]["config"])

    def test_generate_text_empty(self):
        self.use(FakeModels(text=None))
        with self.assertRaises(ProviderError):
            llm.generate_text(SETTINGS, "describe")

    def test_generate_text_sdk_error(self):
        self.use(FakeModels(error=RuntimeError("quota")))
        with self.assertRaises(ProviderError) as ctx:
            llm.generate_text(SETTINGS, "describe")
        self.assertIn("quota", str(ctx.exception))

    def test_generate_image(self):
        png = _image_bytes("PNG")
        images = [SimpleNamespace(image=SimpleNamespace(image_bytes=png), rai_filtered_reason=None)]
        models = self.use(FakeModels(images=images))
        result = llm.generate_image(SETTINGS, "a vase", "4:3", 1)
        self.assertEqual(result, [png])
        self.assertEqual(models.calls[0]["prompt"], "a vase")
        self.assertEqual(models.calls[0]["config"].aspect_ratio, "4:3")
        self.assertEqual(models.calls[0]["config"].number_of_images, 1)

    def test_generate_image_returns_storage_uri(self):
        images = [
            SimpleNamespace(
                image=SimpleNamespace(image_bytes=None, gcs_uri="gs://vertex-out/run1/sample_0.png"),
                rai_filtered_reason=None,
            )
        ]
        self.use(FakeModels(images=images))
        self.assertEqual(llm.generate_image(SETTINGS, "a vase"), ["gs://vertex-out/run1/sample_0.png"])

    def test_generate_image_filtered(self):
        images = [SimpleNamespace(image=None, rai_filtered_reason="blocked by safety filter")]
        self.use(FakeModels(images=images))
        with self.assertRaises(ProviderError) as ctx:
            llm.generate_image(SETTINGS, "a vase")
        self.assertIn("safety", str(ctx.exception))

    def test_generate_image_no_predictions(self):
        self.use(FakeModels(images=None))
        with self.assertRaises(ProviderError):
            llm.generate_image(SETTINGS, "a vase")


class ToPngTests(unittest.TestCase):
    def test_png_passthrough(self):
        png = _image_bytes("PNG")
        self.assertEqual(llm.to_png(png), png)

    def test_jpeg_is_converted(self):
        out = llm.to_png(_image_bytes("JPEG"))
        self.assertEqual(Image.open(BytesIO(out)).format, "PNG")

    def test_data_url(self):
        png = _image_bytes("PNG")
        payload = "data:image/png;base64," + base64.b64encode(png).decode()
        self.assertEqual(llm.to_png(payload), png)

    def test_garbage(self):
        for payload in (b"", b"not an image", "%%%"):
            with self.subTest(payload=payload):
                with self.assertRaises(ProviderError):
                    llm.to_png(payload)


if __name__ == "__main__":
    unittest.main()
