"""
Heightmap raster I/O.

Loads elevation data from grayscale images and single-band GeoTIFFs, converts
heightmaps to 8-bit images for viewing and reads/writes the Esri ASCII grid
format.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
import rasterio
import structlog
from PIL import Image

from ..config import settings

logger = structlog.get_logger()

PathLike = Union[str, Path]

# Sample types accepted from GeoTIFFs
SUPPORTED_SAMPLE_TYPES = frozenset(
    {"int8", "int16", "int32", "uint8", "uint16", "float32", "float64"}
)

ASCII_HEADER_KEYS = ("ncols", "nrows", "xllcorner", "yllcorner", "cellsize")


class UnsupportedRasterFormat(ValueError):
    """Raster sample type or layout that cannot be read as elevation."""


@dataclass
class Terrain:
    """Heightmap with its linear cell spacing in metres."""

    heightmap: np.ndarray
    spacing: float


def _require_file(path: PathLike) -> Path:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return path


def read_image(path: PathLike, min_value: float, max_value: float, spacing: float) -> Terrain:
    """
    Load a grayscale image as a heightmap.

    The darkest pixel maps to ``min_value`` and the brightest to ``max_value``.

    Args:
        path: Image file readable by Pillow
        min_value: Elevation of the darkest pixel
        max_value: Elevation of the brightest pixel
        spacing: Cell spacing in metres

    Returns:
        Terrain with a float32 heightmap
    """
    path = _require_file(path)
    with Image.open(path) as img:
        if img.mode not in ("L", "I;16", "I", "F"):
            img = img.convert("L")
        pixels = np.asarray(img, dtype=np.float64)

    vmin, vmax = float(pixels.min()), float(pixels.max())
    if vmax > vmin:
        scale = (max_value - min_value) / (vmax - vmin)
        heightmap = pixels * scale + (min_value - scale * vmin)
    else:
        heightmap = np.full(pixels.shape, min_value, dtype=np.float64)

    logger.info("Loaded image heightmap", path=str(path), shape=heightmap.shape)
    return Terrain(heightmap.astype(np.float32), float(spacing))


def read_geotiff(path: PathLike, degrees_to_meters: Optional[float] = None) -> Terrain:
    """
    Load the first band of a GeoTIFF as a heightmap.

    The cell spacing is the horizontal pixel scale converted from degrees to
    metres with a fixed approximation. Nodata cells become NaN.

    Args:
        path: GeoTIFF file
        degrees_to_meters: Conversion factor, defaults to settings

    Returns:
        Terrain with a float32 heightmap

    Raises:
        FileNotFoundError: If the file does not exist
        UnsupportedRasterFormat: If the sample type is not supported
    """
    path = _require_file(path)
    factor = settings.degrees_to_meters if degrees_to_meters is None else degrees_to_meters

    with rasterio.open(path) as src:
        dtype = src.dtypes[0]
        if dtype not in SUPPORTED_SAMPLE_TYPES:
            raise UnsupportedRasterFormat(
                f"Unsupported sample type {dtype} in {path}"
            )
        band = src.read(1, masked=True)
        pixel_scale = abs(float(src.res[0]))

    heightmap = np.ma.filled(band.astype(np.float32), np.nan)
    spacing = pixel_scale * factor

    logger.info(
        "Loaded GeoTIFF heightmap",
        path=str(path),
        shape=heightmap.shape,
        sample_type=dtype,
        spacing=spacing,
    )
    return Terrain(heightmap, spacing)


def heightmap_to_image(
    heightmap: np.ndarray,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> np.ndarray:
    """
    Map a heightmap linearly onto 0-255.

    The range defaults to the heightmap's own finite min and max. Values
    outside the range are clipped and NaN becomes 0.
    """
    heightmap = np.asarray(heightmap, dtype=np.float64)
    finite = heightmap[np.isfinite(heightmap)]
    if min_value is None:
        min_value = float(finite.min()) if finite.size else 0.0
    if max_value is None:
        max_value = float(finite.max()) if finite.size else 0.0

    if max_value <= min_value:
        return np.zeros(heightmap.shape, dtype=np.uint8)

    normalized = 255.0 * (heightmap - min_value) / (max_value - min_value)
    normalized = np.nan_to_num(normalized, nan=0.0)
    return np.clip(normalized, 0, 255).astype(np.uint8)


def write_ascii_grid(path: PathLike, terrain: Terrain) -> None:
    """Write ``terrain`` as an Esri ASCII grid (``*.asc``)."""
    heightmap = np.asarray(terrain.heightmap)
    rows, cols = heightmap.shape
    with open(path, "w") as f:
        f.write(f"ncols        {cols}\n")
        f.write(f"nrows        {rows}\n")
        f.write("xllcorner    0.0\n")
        f.write("yllcorner    0.0\n")
        f.write(f"cellsize     {terrain.spacing}\n")
        np.savetxt(f, heightmap, fmt="%g", delimiter=" ")

    logger.info("Wrote ASCII grid", path=str(path), shape=heightmap.shape)


def read_ascii_grid(path: PathLike) -> Terrain:
    """Read an Esri ASCII grid written by ``write_ascii_grid``."""
    path = _require_file(path)
    header = {}
    with open(path) as f:
        for key in ASCII_HEADER_KEYS:
            parts = f.readline().split()
            if len(parts) != 2 or parts[0].lower() != key:
                raise UnsupportedRasterFormat(f"Expected '{key}' header line in {path}")
            header[key] = parts[1]
        heightmap = np.loadtxt(f, dtype=np.float32, ndmin=2)

    rows, cols = int(header["nrows"]), int(header["ncols"])
    if heightmap.shape != (rows, cols):
        raise UnsupportedRasterFormat(
            f"Grid body has shape {heightmap.shape}, header says {(rows, cols)}"
        )
    return Terrain(heightmap, float(header["cellsize"]))
