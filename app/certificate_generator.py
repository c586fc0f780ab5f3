"""Certificate Generator Module.

Renders the certificate template to a PDF with Pillow and publishes it into the
artifact directory.

Key features:
- Fixed template: title, "This certifies that", holder name, completion line,
  certificate number and issue date, each centered on an A4 page (or on a
  configured background image)
- Dynamic font resizing keeps long names within margins
- Atomic, no-clobber publish: render in memory, write a temporary file, link it into place
"""

from __future__ import annotations

import io
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from app.errors import GenerationFailed
from app.verification import VerifiedCertificate


logger = logging.getLogger(__name__)

# A4 portrait at 150 dpi
PAGE_SIZE = (1240, 1754)
PAGE_DPI = 150.0
# A4 width in PDF points; font sizes below are in points and scaled to the page.
A4_WIDTH_PT = 595.0

COMPLETION_LINE = "has successfully completed the training"


def _document_timestamp(date_of_issue: Optional[str]) -> time.struct_time:
    """PDF creation/modification date for a record: its issue date, or the epoch."""
    try:
        return time.strptime((date_of_issue or "").strip(), "%d/%m/%Y")
    except ValueError:
        # Pattern-valid dates such as 31/02/2024 are not real calendar dates.
        return time.gmtime(0)


def check_file_name(file_name: str) -> str:
    """Reject anything that is not a plain ``*.pdf`` name in the flat artifact namespace."""
    name = (file_name or "").strip()
    if (
        not name
        or "/" in name
        or "\\" in name
        or name.startswith(".")
        or Path(name).name != name
        or not name.lower().endswith(".pdf")
    ):
        raise ValueError(f"Invalid certificate file name: {file_name!r}")
    return name


class CertificateGenerator:
    """Render certificates to PDF and manage the artifact directory."""

    def __init__(self, output_dir: str = "certificates", template_path: Optional[str] = None,
                 title: str = "OSHEQ TRAINING"):
        project_root = Path(__file__).resolve().parents[1]
        self._project_root = project_root

        output_candidate = Path((output_dir or "").replace("\\", "/"))
        if not output_candidate.is_absolute():
            output_candidate = project_root / output_candidate
        self.output_dir = str(output_candidate)

        self.template_path: Optional[str] = None
        if template_path:
            template_candidate = Path(template_path.replace("\\", "/"))
            if not template_candidate.is_absolute():
                template_candidate = project_root / template_candidate
            self.template_path = str(template_candidate)

        self.title = title
        self._font_path: Optional[str] = None
        self._font_resolved = False

    def ensure_output_dir(self) -> None:
        os.makedirs(self.output_dir, exist_ok=True)

    def _resolve_font_path(self) -> Optional[str]:
        """Resolve a TTF/OTF font path (recommended) to enable resizing."""
        env_font = (os.getenv("CERT_FONT_PATH") or "").strip()
        if env_font:
            p = Path(env_font.replace("\\", "/"))
            if not p.is_absolute():
                p = self._project_root / p
            if p.is_file():
                return str(p)

        candidates = [
            self._project_root / "templates" / "DejaVuSans.ttf",
            self._project_root / "templates" / "fonts" / "DejaVuSans.ttf",
            Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
            Path("/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf"),
            Path("/usr/share/fonts/truetype/freefont/FreeSans.ttf"),
            Path("C:/Windows/Fonts/arial.ttf"),
        ]
        for c in candidates:
            if c.is_file():
                return str(c)
        return None

    def _load_font(self, size: int) -> ImageFont.ImageFont:
        if not self._font_resolved:
            self._font_path = self._resolve_font_path()
            self._font_resolved = True
        if self._font_path:
            return ImageFont.truetype(self._font_path, size=size)
        # Pillow ships a scalable default font when FreeType is available.
        return ImageFont.load_default(size=size)

    def _fit_text(self, draw: ImageDraw.ImageDraw, text: str, *, max_width: int, start_size: int,
                  min_size: int) -> ImageFont.ImageFont:
        """Return a font resized so that text width <= max_width.

        If even min_size doesn't fit, this will still return min_size; caller can truncate.
        """
        size = start_size
        while size >= min_size:
            font = self._load_font(size)
            left, _, right, _ = draw.textbbox((0, 0), text, font=font)
            if right - left <= max_width:
                return font
            size -= 2
        return self._load_font(min_size)

    @staticmethod
    def _truncate_to_fit(draw: ImageDraw.ImageDraw, text: str, font: ImageFont.ImageFont, max_width: int) -> str:
        """Truncate with ellipsis if needed to ensure no overflow."""
        ellipsis = "..."
        left, _, right, _ = draw.textbbox((0, 0), text, font=font)
        if right - left <= max_width:
            return text

        base = text.strip()
        lo, hi = 0, len(base)
        best = ""
        while lo <= hi:
            mid = (lo + hi) // 2
            candidate = (base[:mid].rstrip() + ellipsis) if mid < len(base) else base
            l, _, r, _ = draw.textbbox((0, 0), candidate, font=font)
            if r - l <= max_width:
                best = candidate
                lo = mid + 1
            else:
                hi = mid - 1
        return best or ellipsis

    def _template_lines(self, certificate: VerifiedCertificate) -> List[Tuple[str, int, float]]:
        # (text, font size in points, space after in lines)
        return [
            (self.title, 20, 1.0),
            ("This certifies that", 16, 1.0),
            (certificate.holder_name, 24, 1.0),
            (COMPLETION_LINE, 16, 2.0),
            (f"Certificate Number: {certificate.certificate_number}", 14, 0.5),
            (f"Issued on: {certificate.date_of_issue or ''}", 14, 0.0),
        ]

    def _canvas(self) -> Image.Image:
        if self.template_path:
            if not os.path.exists(self.template_path):
                raise FileNotFoundError(f"Template image not found: {self.template_path}")
            with Image.open(self.template_path) as img_in:
                return img_in.convert("RGB")
        return Image.new("RGB", PAGE_SIZE, (255, 255, 255))

    def render(self, certificate: VerifiedCertificate) -> bytes:
        """Render the certificate template and return the PDF bytes."""
        name = (certificate.holder_name or "").strip()
        if not name:
            raise ValueError("Holder name is empty")

        img = self._canvas()
        draw = ImageDraw.Draw(img)
        width, height = img.size

        scale = width / A4_WIDTH_PT
        margin = int(width * float(os.getenv("CERT_MARGIN_RATIO", "0.12")))
        max_text_width = max(1, width - 2 * margin)
        y = height * float(os.getenv("CERT_TOP_RATIO", "0.25"))

        for text, points, space_after in self._template_lines(certificate):
            size = max(8, int(points * scale))
            font = self._fit_text(draw, text, max_width=max_text_width, start_size=size,
                                  min_size=max(8, size // 2))
            text = self._truncate_to_fit(draw, text, font, max_text_width)

            left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
            x = (width - (right - left)) / 2 - left
            draw.text((x, y - top), text, font=font, fill=(0, 0, 0))
            y += (bottom - top) + size * (0.5 + space_after)

        stamp = _document_timestamp(certificate.date_of_issue)
        buf = io.BytesIO()
        img.save(buf, "PDF", resolution=PAGE_DPI, title=certificate.certificate_number,
                 creationDate=stamp, modDate=stamp)
        return buf.getvalue()

    def publish(self, file_name: str, data: bytes) -> str:
        """Atomically place data at ``<output_dir>/<file_name>`` unless it already exists.

        Readers see either no file or the complete file, never a partial write.
        The first published file is kept; later writers leave it untouched.
        """
        name = check_file_name(file_name)
        self.ensure_output_dir()
        final_path = os.path.join(self.output_dir, name)

        fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self.output_dir)
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            try:
                os.link(tmp_path, final_path)
            except FileExistsError:
                logger.info("Certificate %s was already published", name)
        finally:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
        return final_path

    def generate_certificate(self, certificate: VerifiedCertificate, file_name: Optional[str] = None) -> str:
        """
        Render and publish a certificate

        Args:
            certificate: Verified certificate data
            file_name: Artifact name; defaults to the certificate's expected file name

        Returns:
            Path to the published PDF

        Raises:
            GenerationFailed: If rendering or writing fails
        """
        name = file_name or certificate.expected_file_name
        try:
            path = self.publish(name, self.render(certificate))
        except Exception as e:
            raise GenerationFailed(cause=e) from e
        logger.info("Generated certificate %s", path)
        return path

    def certificate_exists(self, file_name: str) -> bool:
        """
        Check if certificate already exists

        Args:
            file_name: Artifact file name

        Returns:
            True if certificate exists, False otherwise
        """
        try:
            return os.path.isfile(self.get_certificate_path(file_name))
        except ValueError:
            return False

    def get_certificate_path(self, file_name: str) -> str:
        return os.path.join(self.output_dir, check_file_name(file_name))
