# plugins/images.py
from __future__ import annotations

import io
import logging
from dataclasses import replace
from typing import Dict, List, Optional

from PIL import Image

from ..cache import FileCache
from ..pipeline import SourceFile, Step, named

logger = logging.getLogger(__name__)

RASTER_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif"}


def compress_image(
    data: bytes,
    *,
    interlaced: bool = True,
    progressive: bool = True,
    quantize: bool = True,
) -> bytes:
    """
    Re-encode a PNG/JPEG/GIF smaller. Returns the input unchanged when
    the result would not be smaller or the format is not handled.
    """
    out = io.BytesIO()
    with Image.open(io.BytesIO(data)) as im:
        fmt = im.format
        if fmt == "PNG":
            img = im
            if quantize and im.mode in ("RGB", "RGBA"):
                # palette quantization, the pngquant step
                img = im.quantize(colors=256, method=Image.Quantize.FASTOCTREE)
            img.save(out, format="PNG", optimize=True)
        elif fmt == "JPEG":
            # reuse the source quantization tables; only the encoding changes
            im.save(out, format="JPEG", quality="keep", optimize=True, progressive=progressive)
        elif fmt == "GIF":
            im.save(out, format="GIF", save_all=True, optimize=True, interlace=interlaced)
        else:
            return data

    result = out.getvalue()
    return result if len(result) < len(data) else data


def imagemin(
    *,
    cache: Optional[FileCache] = None,
    interlaced: bool = True,
    progressive: bool = True,
    quantize: bool = True,
) -> Step:
    """
    Compress raster images; other files (SVG, ICO, ...) pass through.

    With a cache, an image whose bytes and options were seen before is
    not recompressed.
    """
    options: Dict[str, bool] = {
        "interlaced": interlaced,
        "progressive": progressive,
        "quantize": quantize,
    }

    def transform(data: bytes) -> bytes:
        return compress_image(data, **options)

    @named("imagemin")
    def step(files: List[SourceFile]) -> List[SourceFile]:
        out: List[SourceFile] = []
        saved = 0
        for f in files:
            if f.relative.suffix.lower() not in RASTER_SUFFIXES:
                out.append(f)
                continue
            label = f.relative.as_posix()
            if cache is not None:
                data = cache.cached("imagemin", f.contents, transform, options=options, label=label)
            else:
                data = transform(f.contents)
            saved += len(f.contents) - len(data)
            out.append(replace(f, contents=data))
        logger.info("imagemin: %d file(s), saved %d bytes", len(out), saved)
        return out

    return step
