"""QR code rendering for TOTP provisioning URIs."""

import base64
import io
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import qrcode
from PIL import Image
from qrcode.exceptions import DataOverflowError

from twofactor_api.exceptions import ProvisioningDegradedError
from twofactor_api.utils.secure_logging import log_warning

logger = logging.getLogger(__name__)

ERROR_CORRECTION_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}


class QrRenderError(Exception):
    """Raised when a renderer cannot produce an image."""

    pass


@dataclass(frozen=True)
class QrRenderOptions:
    """Rendering parameters. Colors of None use the renderer defaults."""

    error_correction: str = "L"
    width: int = 200
    margin: int = 2
    dark_color: str | None = None
    light_color: str | None = None


@dataclass(frozen=True)
class QrRenderAttempt:
    """One URI/options pair in a fallback chain."""

    uri: str
    options: QrRenderOptions


class QrRenderer(Protocol):
    """Renders a provisioning URI into an image data URI."""

    def render(self, uri: str, options: QrRenderOptions) -> str:
        """Render ``uri`` or raise QrRenderError."""
        ...


class QrCodeRenderer:
    """PNG renderer built on qrcode and Pillow."""

    def render(self, uri: str, options: QrRenderOptions) -> str:
        """Generate QR code as data URI for embedding in HTML/JSON.

        Args:
            uri: Data to encode
            options: Rendering parameters

        Returns:
            Data URI string (data:image/png;base64,...)

        Raises:
            QrRenderError: If the data or options cannot be rendered
        """
        level = ERROR_CORRECTION_LEVELS.get(options.error_correction.upper())
        if level is None:
            raise QrRenderError(f"Unknown error correction level: {options.error_correction}")

        try:
            qr = qrcode.QRCode(error_correction=level, box_size=1, border=options.margin)
            qr.add_data(uri)
            qr.make(fit=True)

            # Scale modules so the image is close to the requested width
            total_modules = qr.modules_count + 2 * options.margin
            qr.box_size = max(1, options.width // total_modules)

            img = qr.make_image(
                fill_color=options.dark_color or "black",
                back_color=options.light_color or "white",
            ).get_image()
            if img.size[0] != options.width:
                img = img.resize((options.width, options.width), Image.Resampling.NEAREST)

            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
        except (DataOverflowError, ValueError, OSError) as e:
            raise QrRenderError(f"QR rendering failed: {type(e).__name__}") from e

        b64 = base64.b64encode(buffer.getvalue()).decode("utf-8")
        return f"data:image/png;base64,{b64}"


def render_with_fallback(renderer: QrRenderer, attempts: Sequence[QrRenderAttempt]) -> str:
    """Try each attempt in order and return the first rendered image.

    Args:
        renderer: QR renderer
        attempts: Attempts ordered by decreasing fidelity

    Returns:
        Data URI of the first successful attempt

    Raises:
        ProvisioningDegradedError: If every attempt failed
    """
    for index, attempt in enumerate(attempts, start=1):
        try:
            return renderer.render(attempt.uri, attempt.options)
        except QrRenderError as e:
            log_warning(logger, f"QR render attempt {index} of {len(attempts)} failed", e)

    raise ProvisioningDegradedError(attempts=len(attempts))


# Global instance
_qr_renderer: QrCodeRenderer | None = None


def get_qr_renderer() -> QrCodeRenderer:
    """Get or create the QR renderer singleton."""
    global _qr_renderer
    if _qr_renderer is None:
        _qr_renderer = QrCodeRenderer()
    return _qr_renderer
