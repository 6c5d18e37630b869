from __future__ import annotations

from io import BytesIO

import numpy as np
from PIL import Image, UnidentifiedImageError

ANALYSIS_SIZE = (256, 256)
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)


class KeywordExtractor:
    """Describes an image with a few gallery-style tags from NumPy colour statistics.

    Inputs are encoded image bytes; outputs are tags ordered strongest first.
    """

    @staticmethod
    def load(data: bytes) -> np.ndarray:
        """Decode to a float32 RGB array in [0, 1], downscaled for analysis."""
        try:
            img = Image.open(BytesIO(data))
            img.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise ValueError(f"Invalid image file: {exc}") from exc
        except Image.DecompressionBombError as exc:
            raise ValueError(f"Image is too large: {exc}") from exc
        rgb = img.convert("RGB")
        rgb.thumbnail(ANALYSIS_SIZE)
        return np.asarray(rgb).astype(np.float32) / 255.0

    # Saturation per pixel: (max - min) / max, 0 where max == 0
    @staticmethod
    def saturation(matrix: np.ndarray) -> np.ndarray:
        mx = matrix.max(axis=2)
        mn = matrix.min(axis=2)
        return np.where(mx > 0, (mx - mn) / np.maximum(mx, 1e-6), 0.0).astype(np.float32)

    # Edge energy: mean absolute luminance difference between neighbours
    @staticmethod
    def edge_energy(matrix: np.ndarray) -> float:
        gray = np.dot(matrix[..., :3], LUMA_WEIGHTS)
        energy = 0.0
        if gray.shape[0] > 1:
            energy += float(np.abs(np.diff(gray, axis=0)).mean())
        if gray.shape[1] > 1:
            energy += float(np.abs(np.diff(gray, axis=1)).mean())
        return energy

    @classmethod
    def score_tags(cls, matrix: np.ndarray) -> list[tuple[str, float]]:
        brightness = float(matrix.mean())
        saturation = float(cls.saturation(matrix).mean())
        red, green, blue = (float(c) for c in matrix[..., :3].reshape(-1, 3).mean(axis=0))
        edges = cls.edge_energy(matrix)

        scores: list[tuple[str, float]] = []
        if saturation < 0.1:
            scores.append(("black and white", 1.0 - saturation * 10.0))
        if saturation > 0.45:
            scores.append(("colorful", saturation))
        if brightness < 0.25:
            scores.append(("night", 1.0 - brightness * 4.0))
        if saturation >= 0.1 and red > blue + 0.2 and red >= green:
            scores.append(("sunset", red - blue))
        if blue > red + 0.1 and blue >= green:
            scores.append(("water", blue - red))
        greenness = green - max(red, blue)
        if greenness > 0.05:
            scores.append(("nature", greenness))
            if brightness < 0.4:
                scores.append(("forest", greenness * 0.9))
        if edges < 0.02:
            scores.append(("minimal", 0.5))
        elif edges > 0.15:
            scores.append(("texture", min(1.0, edges * 3.0)))
        if not scores:
            scores.append(("abstract", 0.1))
        return sorted(scores, key=lambda item: item[1], reverse=True)

    @classmethod
    def extract_keywords(cls, image_bytes: bytes, limit: int = 3) -> list[str]:
        """Return up to ``limit`` descriptive tags for an encoded image.

        Raises:
            ValueError: If the bytes are not a decodable image, or decode to
                more pixels than Pillow allows.
        """
        matrix = cls.load(image_bytes)
        return [tag for tag, _ in cls.score_tags(matrix)[:limit]]
