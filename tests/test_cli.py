import io
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from PIL import Image

from prezr.blob import read_blob
from prezr.cli import main, parse_argb
from prezr.errors import PrezrError
from prezr.kernels import default_catalog
from prezr.pixels import Pixel


class PrezrCliTestCase(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.base_dir = Path(self._tmpdir.name)
        self.input_dir = self.base_dir / "icons"
        self.input_dir.mkdir()

        gradient = Image.new("RGBA", (8, 4))
        gradient.putdata(
            [((x * 32) % 256, (y * 64) % 256, 90, 255) for y in range(4) for x in range(8)]
        )
        gradient.save(self.input_dir / "gradient.png")
        Image.new("RGBA", (5, 2), (0, 0, 0, 255)).save(self.input_dir / "black.png")

    def tearDown(self):
        self._tmpdir.cleanup()

    def _run(self, argv: list[str]) -> tuple[int, str]:
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            code = main(argv)
        return code, buffer.getvalue()

    def test_pack_writes_blob_and_header(self):
        output_dir = self.base_dir / "out"

        code, stdout = self._run(
            ["pack", str(self.input_dir), "-o", str(output_dir), "--checksum", "0x1234"]
        )

        self.assertEqual(code, 0, stdout)
        self.assertIn("Package 'icons'...", stdout)
        blob_path = output_dir / "prezr.icons.blob"
        self.assertTrue(blob_path.exists())
        loaded = read_blob(blob_path.read_bytes(), expected_checksum=0x1234)
        self.assertEqual(len(loaded.images), 2)

        header = (output_dir / "prezr.packages.h").read_text()
        self.assertTrue(header.startswith("#pragma once"))
        self.assertIn("PREZR_ICONS_BLACK, // 5x2 Bit1Palettized", header)
        self.assertIn("#define PREZR_ICONS_CHECKSUM 0x1234", header)

    def test_pack_refuses_to_overwrite_without_force(self):
        output_dir = self.base_dir / "out"
        args = ["pack", str(self.input_dir), "-o", str(output_dir), "--checksum", "1"]

        self.assertEqual(self._run(args)[0], 0)
        self.assertEqual(self._run(args)[0], 1)
        self.assertEqual(self._run(args + ["--force"])[0], 0)

    def test_pack_continues_after_a_broken_image(self):
        (self.input_dir / "broken.png").write_bytes(b"garbage")
        output_dir = self.base_dir / "out"

        code, stdout = self._run(["pack", str(self.input_dir), "-o", str(output_dir)])

        self.assertEqual(code, 1)
        self.assertIn("Warning: BROKEN:", stdout)
        loaded = read_blob((output_dir / "prezr.icons.blob").read_bytes())
        self.assertEqual(len(loaded.images), 2)

    def test_pack_with_dither(self):
        output_dir = self.base_dir / "out"

        code, _ = self._run(
            ["pack", str(self.input_dir), "-o", str(output_dir), "--dither", "--kernel", "Atkinson"]
        )

        self.assertEqual(code, 0)
        self.assertTrue((output_dir / "prezr.icons.blob").exists())

    def test_dither_writes_best_image_and_previews(self):
        output_dir = self.base_dir / "dithered"

        code, stdout = self._run(
            ["dither", str(self.input_dir / "gradient.png"), "-o", str(output_dir), "--previews"]
        )

        self.assertEqual(code, 0, stdout)
        self.assertTrue((output_dir / "gradient.png").exists())
        for name in default_catalog().names:
            self.assertTrue((output_dir / f"gradient Preview ({name}).png").exists())
            self.assertIn(name, stdout)

        with Image.open(output_dir / "gradient.png") as result:
            self.assertEqual(result.size, (8, 4))
            for pixel in result.convert("RGBA").getdata():
                self.assertTrue(set(pixel) <= {0, 85, 170, 255})

    def test_dither_reports_missing_inputs(self):
        code, _ = self._run(["dither", str(self.base_dir / "missing.png"), "-o", str(self.base_dir)])

        self.assertEqual(code, 1)

    def test_pack_keeps_going_after_a_name_collision(self):
        beta = self.base_dir / "beta"
        beta.mkdir()
        Image.new("RGBA", (2, 2), (0, 0, 0, 255)).save(beta / "a-b.png")
        Image.new("RGBA", (3, 3), (255, 255, 255, 255)).save(beta / "a_b.png")
        output_dir = self.base_dir / "out"

        code, stdout = self._run(
            ["pack", str(self.input_dir), str(beta), "-o", str(output_dir), "--checksum", "1"]
        )

        self.assertEqual(code, 1)
        self.assertIn("Warning: A_B: Duplicate image name", stdout)
        self.assertEqual(
            sorted(path.name for path in output_dir.iterdir()),
            ["prezr.beta.blob", "prezr.icons.blob", "prezr.packages.h"],
        )
        loaded = read_blob((output_dir / "prezr.beta.blob").read_bytes(), expected_checksum=1)
        self.assertEqual([(image.width, image.height) for image in loaded.images], [(2, 2)])
        header = (output_dir / "prezr.packages.h").read_text()
        self.assertIn("PREZR_BETA_A_B, // 2x2 Bit1Palettized", header)
        self.assertIn("PREZR_ICONS_GRADIENT", header)

    def test_pack_writes_previews_of_packed_images(self):
        output_dir = self.base_dir / "out"

        code, _ = self._run(
            ["pack", str(self.input_dir), "-o", str(output_dir), "--checksum", "7", "--previews"]
        )

        self.assertEqual(code, 0)
        with Image.open(output_dir / "icons Preview (BLACK).png") as preview:
            self.assertEqual(preview.size, (5, 2))
            self.assertEqual(set(preview.convert("RGBA").getdata()), {(0, 0, 0, 255)})
        self.assertTrue((output_dir / "icons Preview (GRADIENT).png").exists())

    def test_pack_rejects_a_zero_checksum(self):
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as raised:
                main(["pack", str(self.input_dir), "-o", str(self.base_dir / "out"), "--checksum", "0"])

        self.assertEqual(raised.exception.code, 2)
        self.assertFalse((self.base_dir / "out").exists())

    def test_dither_refuses_to_overwrite_previews_without_force(self):
        output_dir = self.base_dir / "dithered"
        output_dir.mkdir()
        existing = output_dir / "gradient Preview (Atkinson).png"
        existing.write_bytes(b"keep me")
        args = ["dither", str(self.input_dir / "gradient.png"), "-o", str(output_dir), "--previews"]

        code, _ = self._run(args)

        self.assertEqual(code, 1)
        self.assertEqual(existing.read_bytes(), b"keep me")
        self.assertFalse((output_dir / "gradient.png").exists())

        self.assertEqual(self._run(args + ["--force"])[0], 0)
        self.assertNotEqual(existing.read_bytes(), b"keep me")

    def test_dither_rejects_inputs_sharing_a_file_name(self):
        other_dir = self.base_dir / "other"
        other_dir.mkdir()
        Image.new("RGBA", (3, 3), (255, 255, 255, 255)).save(other_dir / "black.png")
        output_dir = self.base_dir / "dithered"

        code, _ = self._run(
            [
                "dither",
                str(self.input_dir / "black.png"),
                str(other_dir / "black.png"),
                "-o",
                str(output_dir),
            ]
        )

        self.assertEqual(code, 1)
        self.assertFalse((output_dir / "black.png").exists())

    def test_parse_argb(self):
        self.assertEqual(parse_argb("255,0,255,255"), Pixel(255, 0, 255, 255))
        self.assertEqual(parse_argb("#80FF0010"), Pixel(0x80, 0xFF, 0x00, 0x10))
        self.assertIsNone(parse_argb("none"))
        with self.assertRaises(PrezrError):
            parse_argb("1,2,3")
        with self.assertRaises(PrezrError):
            parse_argb("1,2,3,300")


if __name__ == "__main__":
    unittest.main()
