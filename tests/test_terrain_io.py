"""Tests for heightmap raster I/O."""

import pytest
import numpy as np
import rasterio
from PIL import Image
from rasterio.transform import from_origin
from py_terrain.core.terrain_io import (
    Terrain, UnsupportedRasterFormat, heightmap_to_image, read_ascii_grid,
    read_geotiff, read_image, write_ascii_grid
)


def write_geotiff(path, data, pixel_scale=0.001, nodata=None):
    with rasterio.open(
        path, "w", driver="GTiff",
        height=data.shape[0], width=data.shape[1], count=1,
        dtype=str(data.dtype),
        transform=from_origin(10.0, 50.0, pixel_scale, pixel_scale),
        nodata=nodata,
    ) as dst:
        dst.write(data, 1)


class TestReadImage:
    """Test grayscale image loading."""

    def test_rescales_to_range(self, tmp_path):
        """Test that the darkest and brightest pixels map to the range ends."""
        pixels = np.tile(np.arange(0, 256, 5, dtype=np.uint8), (4, 1))
        path = tmp_path / "height.png"
        Image.fromarray(pixels).save(path)

        terrain = read_image(path, 100.0, 200.0, spacing=30.0)

        assert terrain.heightmap.dtype == np.float32
        assert terrain.heightmap.shape == pixels.shape
        assert terrain.heightmap.min() == pytest.approx(100.0)
        assert terrain.heightmap.max() == pytest.approx(200.0)
        assert terrain.spacing == 30.0

    def test_constant_image(self, tmp_path):
        """Test that a constant image maps to the minimum."""
        path = tmp_path / "flat.png"
        Image.fromarray(np.full((3, 3), 77, dtype=np.uint8)).save(path)

        terrain = read_image(path, -5.0, 5.0, spacing=1.0)
        np.testing.assert_array_equal(terrain.heightmap, -5.0)

    def test_color_image_is_converted(self, tmp_path):
        """Test that colour images are read as grayscale."""
        path = tmp_path / "rgb.png"
        rgb = np.zeros((4, 4, 3), dtype=np.uint8)
        rgb[2:, :] = 255
        Image.fromarray(rgb).save(path)

        terrain = read_image(path, 0.0, 1.0, spacing=1.0)
        assert terrain.heightmap.shape == (4, 4)
        np.testing.assert_allclose(terrain.heightmap[2:], 1.0)

    def test_missing_file(self, tmp_path):
        """Test that a missing file is reported."""
        with pytest.raises(FileNotFoundError):
            read_image(tmp_path / "nope.png", 0.0, 1.0, 1.0)


class TestReadGeotiff:
    """Test GeoTIFF loading."""

    def test_values_and_spacing(self, tmp_path):
        """Test elevation values and degree-based spacing."""
        data = np.arange(12, dtype=np.int16).reshape(3, 4)
        path = tmp_path / "dem.tif"
        write_geotiff(path, data)

        terrain = read_geotiff(path)

        assert terrain.heightmap.dtype == np.float32
        np.testing.assert_array_equal(terrain.heightmap, data)
        assert terrain.spacing == pytest.approx(110.0)

    def test_custom_conversion(self, tmp_path):
        """Test an explicit degrees-to-metres factor."""
        path = tmp_path / "dem.tif"
        write_geotiff(path, np.zeros((2, 2), dtype=np.float32), pixel_scale=0.01)

        terrain = read_geotiff(path, degrees_to_meters=100000.0)
        assert terrain.spacing == pytest.approx(1000.0)

    def test_nodata_becomes_nan(self, tmp_path):
        """Test that nodata cells are undefined."""
        data = np.ones((3, 3), dtype=np.float32)
        data[1, 1] = -9999.0
        path = tmp_path / "dem.tif"
        write_geotiff(path, data, nodata=-9999.0)

        terrain = read_geotiff(path)
        assert np.isnan(terrain.heightmap[1, 1])
        assert np.isnan(terrain.heightmap).sum() == 1

    def test_unsupported_sample_type(self, tmp_path):
        """Test that unsigned 32-bit samples are rejected."""
        path = tmp_path / "dem.tif"
        write_geotiff(path, np.zeros((2, 2), dtype=np.uint32))

        with pytest.raises(UnsupportedRasterFormat):
            read_geotiff(path)

    def test_missing_file(self, tmp_path):
        """Test that a missing file is reported."""
        with pytest.raises(FileNotFoundError):
            read_geotiff(tmp_path / "missing.tif")


class TestHeightmapToImage:
    """Test 8-bit visualisation."""

    def test_auto_range(self):
        """Test that the field's own range spans 0-255."""
        image = heightmap_to_image(np.array([[10.0, 20.0], [30.0, 40.0]]))

        assert image.dtype == np.uint8
        assert image.min() == 0
        assert image.max() == 255

    def test_explicit_range_clips(self):
        """Test that values outside an explicit range are clipped."""
        image = heightmap_to_image(np.array([[-10.0, 0.0, 50.0, 200.0]]), 0.0, 100.0)
        np.testing.assert_array_equal(image, [[0, 0, 127, 255]])

    def test_flat_field(self):
        """Test that a degenerate range gives black."""
        image = heightmap_to_image(np.full((3, 3), 4.0))
        np.testing.assert_array_equal(image, 0)

    def test_nan_is_black(self):
        """Test that undefined cells render as zero."""
        image = heightmap_to_image(np.array([[np.nan, 0.0, 1.0]]))
        np.testing.assert_array_equal(image, [[0, 0, 255]])


class TestAsciiGrid:
    """Test Esri ASCII grid files."""

    def test_header_and_body(self, tmp_path):
        """Test the five header lines and row-major values."""
        path = tmp_path / "terrain.asc"
        heightmap = np.array([[1.5, 2.0, 3.0], [4.0, 5.0, 6.25]], dtype=np.float32)
        write_ascii_grid(path, Terrain(heightmap, 30.0))

        lines = path.read_text().splitlines()
        assert lines[0].split() == ["ncols", "3"]
        assert lines[1].split() == ["nrows", "2"]
        assert lines[2].split() == ["xllcorner", "0.0"]
        assert lines[3].split() == ["yllcorner", "0.0"]
        assert lines[4].split() == ["cellsize", "30.0"]
        assert lines[5].split() == ["1.5", "2", "3"]
        assert lines[6].split() == ["4", "5", "6.25"]

    def test_read_back(self, tmp_path):
        """Test that a written grid reads back."""
        path = tmp_path / "terrain.asc"
        heightmap = np.arange(12, dtype=np.float32).reshape(3, 4) / 4
        write_ascii_grid(path, Terrain(heightmap, 12.5))

        terrain = read_ascii_grid(path)
        np.testing.assert_allclose(terrain.heightmap, heightmap)
        assert terrain.spacing == 12.5

    def test_bad_header(self, tmp_path):
        """Test that a malformed header is rejected."""
        path = tmp_path / "bad.asc"
        path.write_text("rows 3\n1 2 3\n")
        with pytest.raises(UnsupportedRasterFormat):
            read_ascii_grid(path)
