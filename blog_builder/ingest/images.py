from __future__ import annotations

import base64
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from PIL import Image, ImageFilter, UnidentifiedImageError

from .models import SourceFile
from .paths import public_asset_url

logger = logging.getLogger(__name__)

DEFAULT_BLUR_SIZE = 10
DEFAULT_BLUR_RADIUS = 1.5


class BlurPreviewGenerator:
    """
    Produces tiny blurred PNG placeholders encoded as data URLs.

    Each image is handled independently, so `generate_all` can fan out over
    a thread pool; results land in one map guarded by a lock.
    """

    def __init__(self, size: int = DEFAULT_BLUR_SIZE, radius: float = DEFAULT_BLUR_RADIUS, workers: int = 1):
        self.size = size
        self.radius = radius
        self.workers = max(1, workers)
        self._lock = threading.Lock()

    def generate(self, image_path: Path) -> Optional[str]:
        try:
            with Image.open(image_path) as img:
                preview = img.convert("RGB").resize((self.size, self.size), Image.Resampling.BILINEAR)
        except (OSError, UnidentifiedImageError, Image.DecompressionBombError, ValueError) as exc:
            logger.warning("Cannot build blur preview for %s: %s", image_path, exc)
            return None
        preview = preview.filter(ImageFilter.GaussianBlur(self.radius))
        return self._image_to_data_url(preview)

    def generate_all(self, images: Iterable[SourceFile]) -> Dict[str, Optional[str]]:
        """Map each image's public URL to its payload (None when unreadable)."""
        results: Dict[str, Optional[str]] = {}
        pending: List[SourceFile] = list(images)

        def _work(source: SourceFile) -> None:
            payload = self.generate(source.path)
            with self._lock:
                results[public_asset_url(source.relative_path)] = payload

        if self.workers == 1 or len(pending) < 2:
            for source in pending:
                _work(source)
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                list(pool.map(_work, pending))
        return results

    def _image_to_data_url(self, image: Image.Image) -> str:
        buffer = BytesIO()
        image.save(buffer, format="PNG")
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"
