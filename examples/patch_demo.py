#!/usr/bin/env python3
"""
Simple demo script showing patch placement with seam removal.
"""

import numpy as np
from py_terrain.core import place_patch, place_mask, seam_ring, heightmap_to_image
from py_terrain.utils.logging import configure_logging


def main():
    """Demonstrate patch compositing."""
    configure_logging(fmt="console")

    print("Py-Terrain Patch Placement Demo")
    print("=" * 40)

    # Ramp terrain rising to the east
    size = 40
    terrain = np.tile(np.arange(size, dtype=np.float32), (size, 1))

    # Constant plateau patch with a round mask
    patch = np.full((9, 9), 5.0, dtype=np.float32)
    yy, xx = np.mgrid[-4:5, -4:5]
    mask = (xx ** 2 + yy ** 2) <= 16
    offset = (15, 15)

    for couple in (False, True):
        field = terrain.copy()
        print(f"\ncouple_boundary={couple}")
        print("-" * 30)

        result = place_patch(field, patch, mask, offset, couple_boundary=couple)
        placed = place_mask(field.shape, mask, offset)
        ring = seam_ring(terrain, placed)

        print(f"  Unknowns: {result.unknowns}, rows: {result.rows}")
        print(f"  Converged: {result.converged} after {result.solve.iterations} iterations")
        print(f"  Patch range: {field[placed].min():.2f}-{field[placed].max():.2f}")
        print(f"  Max ring change: {np.abs(field[ring] - terrain[ring]).max():.4f}")

        image = heightmap_to_image(field)
        print(f"  Preview image: {image.shape} {image.dtype}")


if __name__ == "__main__":
    main()
