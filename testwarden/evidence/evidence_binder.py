"""Evidence binder: attach screenshots to acceptance criteria by filename.

Convention: ``ac<number>-<words>.<ext>`` in the evidence directory, e.g.
``ac1-empty-title-error.png`` binds to AC-1 with the caption
"Empty Title Error". Every image is embedded as a base64 data URI so the
report stays a single self-contained file.
"""

import base64
import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from testwarden.data_types import EvidenceImage
from testwarden.utils import RunContext

logger = logging.getLogger("testwarden.evidence.evidence_binder")

EVIDENCE_DIR_CANDIDATES = [
    "tests/evidence",
    "test-evidence",
    "evidence",
    "tests/screenshots",
]

IMAGE_MEDIA_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

SCREENSHOT_AC = re.compile(r"^ac(\d+)", re.IGNORECASE)
SCREENSHOT_AC_PREFIX = re.compile(r"^ac\d+-?", re.IGNORECASE)


def find_evidence_dir(ctx: RunContext) -> Optional[Path]:
    """First existing conventional evidence directory, or None."""
    for candidate in EVIDENCE_DIR_CANDIDATES:
        path = ctx.project_root / candidate
        if path.is_dir():
            return path
    return None


def screenshot_ac(filename: str) -> Optional[str]:
    """``AC1-login.png`` -> ``AC-1``."""
    match = SCREENSHOT_AC.match(filename)
    return f"AC-{match.group(1)}" if match else None


def screenshot_caption(filename: str) -> str:
    """Human-readable caption from the filename, minus the AC prefix."""
    stem = re.sub(r"\.\w+$", "", filename)
    remainder = SCREENSHOT_AC_PREFIX.sub("", stem)
    words = [w for w in re.split(r"[-_]", remainder) if w]
    if not words:
        return filename
    return " ".join(w[0].upper() + w[1:] for w in words)


def encode_image(image_path: Path) -> Tuple[str, str]:
    """Load an image file and encode it to base64.

    Returns:
        Tuple of (base64_string, media_type).

    Raises:
        OSError: the file cannot be read.
        ValueError: the image format is not supported.
    """
    media_type = IMAGE_MEDIA_TYPES.get(image_path.suffix.lower())
    if not media_type:
        raise ValueError(
            f"Unsupported image format: {image_path.suffix}. "
            f"Supported: {', '.join(IMAGE_MEDIA_TYPES.keys())}"
        )
    with open(image_path, "rb") as f:
        b64_data = base64.b64encode(f.read()).decode("utf-8")
    return b64_data, media_type


def list_images(evidence_dir: Path) -> List[Path]:
    return sorted(
        (p for p in evidence_dir.iterdir()
         if p.is_file() and p.suffix.lower() in IMAGE_MEDIA_TYPES),
        key=lambda p: p.name,
    )


def bind_evidence(evidence_dir: Optional[Path]) -> List[EvidenceImage]:
    """Encode every image in the evidence directory, sorted by filename.

    Unreadable images are logged and skipped.
    """
    if evidence_dir is None:
        logger.info("No evidence directory found; report will have no screenshots")
        return []

    images: List[EvidenceImage] = []
    for path in list_images(evidence_dir):
        try:
            b64_data, media_type = encode_image(path)
        except (OSError, ValueError) as e:
            logger.warning(f"Skipping unreadable screenshot {path.name}: {e}")
            continue
        images.append(EvidenceImage(
            filename=path.name,
            ac=screenshot_ac(path.name),
            caption=screenshot_caption(path.name),
            data_uri=f"data:{media_type};base64,{b64_data}",
        ))

    logger.info(f"Embedded {len(images)} screenshots from {evidence_dir}")
    return images
