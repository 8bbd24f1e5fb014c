"""Local visual regression plugin.

Compares the most recent screenshot against a stored baseline image
pixel-by-pixel and writes a diff image highlighting the changes. The first
run for a label stores the screenshot as its baseline.
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image, ImageChops

from smokeshot.core.exceptions import VisualDiffError, VisualMismatchError
from smokeshot.plugins.base import Plugin, PluginContext, PluginInfo

logger = logging.getLogger(__name__)

# Summed RGB delta above which a pixel counts as changed (~4% per channel)
PIXEL_TOLERANCE = 30


@dataclass
class DiffResult:
    label: str
    is_match: bool
    diff_percentage: float
    diff_pixel_count: int
    total_pixels: int
    baseline_created: bool = False
    diff_image_path: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


def slugify(label: str) -> str:
    """'Main Screen' -> 'main-screen'"""
    slug = re.sub(r"[^a-z0-9]+", "-", label.lower()).strip("-")
    return slug or "screenshot"


def compare_images(actual: bytes, expected: bytes) -> tuple[int, int, bytes | None]:
    """Compare two PNG images.

    Returns (changed pixels, total pixels, diff PNG or None when identical).
    Images of different size count as fully changed.
    """
    img_actual = Image.open(io.BytesIO(actual)).convert("RGB")
    img_expected = Image.open(io.BytesIO(expected)).convert("RGB")

    width, height = img_actual.size
    total = width * height
    if img_actual.size != img_expected.size:
        return total, total, None

    # Channel sum saturates at 255, which is still above the tolerance
    r, g, b = ImageChops.difference(img_actual, img_expected).split()
    summed = ImageChops.add(ImageChops.add(r, g), b)
    mask = summed.point(lambda v: 255 if v > PIXEL_TOLERANCE else 0)
    diff_count = mask.histogram()[255]
    if diff_count == 0:
        return 0, total, None

    # Red for differences, the dimmed original elsewhere
    dimmed = Image.eval(img_actual, lambda v: v // 3)
    red = Image.new("RGB", (width, height), (255, 0, 0))
    diff_img = Image.composite(red, dimmed, mask)
    buf = io.BytesIO()
    diff_img.save(buf, format="PNG")
    return diff_count, total, buf.getvalue()


class VisualDiffPlugin(Plugin):
    """Pixel-level comparison of the last screenshot against a baseline.

    Call the plugin with a label: ``await plugin("Main Screen")``.
    """

    def __init__(self) -> None:
        self._context: PluginContext | None = None
        self.baseline_dir = Path("./baselines")
        self.diff_dir = Path("./plugin_data/diffs")
        self.threshold = 0.01
        self.fail_on_mismatch = True

    def info(self) -> PluginInfo:
        return PluginInfo(
            id="builtin.visual_diff",
            name="Visual Regression Testing",
            version="1.0.0",
            description="Compare screenshots against local baselines",
        )

    async def on_init(self, context: PluginContext) -> None:
        self._context = context
        cfg = context.config
        self.baseline_dir = Path(cfg.get("baseline_dir", "./baselines"))
        self.diff_dir = Path(context.data_dir) / "diffs"
        self.threshold = float(cfg.get("threshold", 0.01))
        self.fail_on_mismatch = bool(cfg.get("fail_on_mismatch", True))
        self.baseline_dir.mkdir(parents=True, exist_ok=True)

    @property
    def screenshot_path(self) -> Path:
        if self._context is None:
            raise VisualDiffError("Plugin used before on_init", code=6001)
        return Path(self._context.screenshot_path)

    def baseline_path(self, label: str) -> Path:
        return self.baseline_dir / f"{slugify(label)}.png"

    async def __call__(self, label: str) -> DiffResult:
        return await self.compare_with_baseline(label)

    async def compare_with_baseline(self, label: str) -> DiffResult:
        """Compare the last screenshot with the baseline stored for ``label``."""
        source = self.screenshot_path
        if not source.is_file():
            raise VisualDiffError(f"No screenshot found at {source}", code=6002)
        actual = source.read_bytes()

        baseline = self.baseline_path(label)
        if not baseline.exists():
            baseline.write_bytes(actual)
            logger.info("Saved baseline for %r: %s", label, baseline)
            return DiffResult(
                label=label, is_match=True, diff_percentage=0.0,
                diff_pixel_count=0, total_pixels=0, baseline_created=True,
            )

        try:
            diff_count, total, diff_png = compare_images(actual, baseline.read_bytes())
        except OSError as e:
            raise VisualDiffError(f"Could not compare {source} with {baseline}: {e}", code=6003)

        diff_pct = diff_count / total * 100 if total > 0 else 0.0
        result = DiffResult(
            label=label,
            is_match=diff_pct <= self.threshold * 100,
            diff_percentage=diff_pct,
            diff_pixel_count=diff_count,
            total_pixels=total,
        )
        if diff_png:
            self.diff_dir.mkdir(parents=True, exist_ok=True)
            diff_path = self.diff_dir / f"{slugify(label)}.diff.png"
            diff_path.write_bytes(diff_png)
            result.diff_image_path = str(diff_path)

        logger.info("Visual diff %r: %.2f%% changed", label, diff_pct)
        if not result.is_match and self.fail_on_mismatch:
            raise VisualMismatchError(
                f"{label!r} differs from baseline by {diff_pct:.2f}% "
                f"(threshold {self.threshold * 100:.2f}%)",
                code=6004,
            )
        return result
