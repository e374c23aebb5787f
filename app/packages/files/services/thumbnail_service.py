"""缩略图生成：按目标宽度等比缩放原图，保持原始图片格式输出。"""

from __future__ import annotations

import io

from PIL import Image, UnidentifiedImageError

from app.packages.files.core.exceptions import JobFailedError


class ThumbnailService:
    FALLBACK_FORMAT = "PNG"
    JPEG_QUALITY = 85
    MAX_ORIG_BYTES = 50 * 1024 * 1024

    def make_thumbnail(self, data: bytes, *, width: int) -> bytes:
        """生成宽度为 ``width`` 的缩略图，高度按原图比例计算（至少 1 像素）。"""
        if len(data) > self.MAX_ORIG_BYTES:
            raise JobFailedError("Original image too large")
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise JobFailedError(f"Cannot decode image: {exc}") from exc

        fmt = (img.format or self.FALLBACK_FORMAT).upper()
        orig_width, orig_height = img.size
        height = max(1, round(orig_height * width / orig_width))
        resized = img.resize((width, height), Image.LANCZOS)

        out = io.BytesIO()
        if fmt in ("JPEG", "JPG"):
            if resized.mode not in ("RGB", "L"):
                resized = resized.convert("RGB")
            resized.save(out, format="JPEG", quality=self.JPEG_QUALITY, optimize=True)
        else:
            try:
                resized.save(out, format=fmt)
            except (KeyError, OSError, ValueError):
                # 部分格式（如 GIF 调色板、少见编码）无法直接写回，统一退回 PNG
                out = io.BytesIO()
                resized.save(out, format=self.FALLBACK_FORMAT)
        return out.getvalue()


thumbnail_service = ThumbnailService()
