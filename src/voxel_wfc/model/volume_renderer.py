"""Renders voxel volumes as layer-by-layer preview images."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from PIL import Image

from voxel_wfc.constants import LAYER_SPACING_DEFAULT, VOXEL_PALETTE_DEFAULT, VOXEL_SIZE_DEFAULT

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray


class VolumeRenderer:
    """Renders a voxel volume as a horizontal strip of its horizontal layers.

    Each y layer of the volume is drawn as a top-down image (x to the right, z downwards) with one square of
    voxel_size pixels per voxel. The layers are placed next to each other from the top layer (y = 0) to the bottom
    layer, separated by a gap of layer_spacing pixels.
    """

    # The edge length of a single voxel square in pixels.
    _voxel_size: int
    # The gap between two neighboring layer images in pixels.
    _layer_spacing: int
    # A dictionary mapping voxel values to RGB colors.
    _palette: dict[int, tuple[int, int, int]]
    # One image of a single voxel square per voxel value, created on demand.
    _voxel_imgs: dict[int, Image.Image]

    def __init__(
        self,
        voxel_size: int = VOXEL_SIZE_DEFAULT,
        layer_spacing: int = LAYER_SPACING_DEFAULT,
        palette: dict[int, tuple[int, int, int]] | None = None,
    ) -> None:
        """Initializes the renderer.

        Args:
            voxel_size: The edge length of a single voxel square in pixels.
            layer_spacing: The gap between two neighboring layer images in pixels.
            palette: A dictionary mapping voxel values to RGB colors. Values missing from it get a color derived
                from the value itself. Defaults to constants.VOXEL_PALETTE_DEFAULT.
        """
        if voxel_size < 1:
            raise ValueError(f"Voxel size must be positive, got {voxel_size}.")
        self._voxel_size = voxel_size
        self._layer_spacing = max(layer_spacing, 0)
        self._palette = dict(VOXEL_PALETTE_DEFAULT if palette is None else palette)
        self._voxel_imgs = {}

    def get_color(self, voxel_value: int) -> tuple[int, int, int]:
        """Returns the RGB color of a voxel value."""
        if voxel_value in self._palette:
            return self._palette[voxel_value]
        # Spread unknown values over the color space so that neighboring values look different.
        return (voxel_value * 97) % 256, (voxel_value * 57 + 80) % 256, (voxel_value * 23 + 160) % 256

    def get_layer_img(self, volume: NDArray[np.int_], y: int) -> Image.Image:
        """Renders a single y layer of a volume into a PIL Image object.

        Args:
            volume: The voxel volume (indexed [x, y, z]).
            y: The index of the layer to render.

        Returns:
            A PIL Image of (x * voxel_size, z * voxel_size) pixels.
        """
        img_size = (volume.shape[0] * self._voxel_size, volume.shape[2] * self._voxel_size)
        layer_img = Image.new("RGB", img_size)
        for x in range(volume.shape[0]):
            for z in range(volume.shape[2]):
                box = (
                    x * self._voxel_size,
                    z * self._voxel_size,
                    (x + 1) * self._voxel_size,
                    (z + 1) * self._voxel_size,
                )
                layer_img.paste(self._get_voxel_img(int(volume[x, y, z])), box)
        return layer_img

    def get_volume_img(self, volume: NDArray[np.int_]) -> Image.Image:
        """Renders all layers of a volume next to each other into a single PIL Image object.

        Args:
            volume: The voxel volume (indexed [x, y, z]).

        Returns:
            A PIL Image showing every y layer, from the top layer on the left to the bottom layer on the right.
        """
        layer_width = volume.shape[0] * self._voxel_size
        layer_height = volume.shape[2] * self._voxel_size
        layer_count = volume.shape[1]
        img_size = (
            layer_count * layer_width + max(layer_count - 1, 0) * self._layer_spacing,
            layer_height,
        )
        volume_img = Image.new("RGB", img_size, (255, 255, 255))
        for y in range(layer_count):
            volume_img.paste(self.get_layer_img(volume, y), (y * (layer_width + self._layer_spacing), 0))
        return volume_img

    def save_volume_img(self, volume_img: Image.Image, file_path: str | Path) -> None:
        """Saves a rendered volume image to the specified file path.

        Args:
            volume_img: The PIL Image object to be saved.
            file_path: The destination path (including filename and extension).
        """
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        volume_img.save(path)

    def _get_voxel_img(self, voxel_value: int) -> Image.Image:
        """Returns the cached single-color square for a voxel value."""
        if voxel_value not in self._voxel_imgs:
            self._voxel_imgs[voxel_value] = Image.new(
                "RGB", (self._voxel_size, self._voxel_size), self.get_color(voxel_value)
            )
        return self._voxel_imgs[voxel_value]
