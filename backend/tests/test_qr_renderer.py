"""Tests for QR rendering and the fallback chain."""

import base64
import io

import pytest
from PIL import Image

from twofactor_api.exceptions import ProvisioningDegradedError
from twofactor_api.services.qr_renderer import (
    QrCodeRenderer,
    QrRenderAttempt,
    QrRenderError,
    QrRenderOptions,
    render_with_fallback,
)

URI = "otpauth://totp/jdoe?secret=JBSWY3DPEHPK3PXP&issuer=ERP"


def _decode(data_uri: str) -> Image.Image:
    prefix = "data:image/png;base64,"
    assert data_uri.startswith(prefix)
    return Image.open(io.BytesIO(base64.b64decode(data_uri[len(prefix) :])))


class FailingRenderer:
    def __init__(self, fail_on: set[int]) -> None:
        self.fail_on = fail_on
        self.calls = 0

    def render(self, uri: str, options: QrRenderOptions) -> str:
        self.calls += 1
        if self.calls in self.fail_on:
            raise QrRenderError("boom")
        return f"data:image/png;base64,{self.calls}"


class TestQrCodeRenderer:
    """Tests for the qrcode/Pillow renderer."""

    def test_renders_png_at_requested_width(self) -> None:
        data_uri = QrCodeRenderer().render(URI, QrRenderOptions(width=200, margin=2))
        image = _decode(data_uri)

        assert image.format == "PNG"
        assert image.size == (200, 200)

    def test_custom_colors(self) -> None:
        options = QrRenderOptions(width=120, margin=2, dark_color="#000000", light_color="#FFFFFF")
        image = _decode(QrCodeRenderer().render(URI, options)).convert("RGB")

        # The margin is always light
        assert image.getpixel((0, 0)) == (255, 255, 255)

    def test_unknown_error_correction_level(self) -> None:
        with pytest.raises(QrRenderError):
            QrCodeRenderer().render(URI, QrRenderOptions(error_correction="X"))

    def test_invalid_color_raises_render_error(self) -> None:
        with pytest.raises(QrRenderError):
            QrCodeRenderer().render(URI, QrRenderOptions(dark_color="not-a-color"))

    def test_oversized_data_raises_render_error(self) -> None:
        with pytest.raises(QrRenderError):
            QrCodeRenderer().render("x" * 5000, QrRenderOptions(error_correction="H"))


class TestRenderWithFallback:
    """Tests for the ordered attempt chain."""

    def _attempts(self) -> list[QrRenderAttempt]:
        return [
            QrRenderAttempt(URI, QrRenderOptions(dark_color="#000000", light_color="#FFFFFF")),
            QrRenderAttempt("otpauth%3A%2F%2F...", QrRenderOptions()),
        ]

    def test_first_attempt_wins(self) -> None:
        renderer = FailingRenderer(fail_on=set())

        assert render_with_fallback(renderer, self._attempts()) == "data:image/png;base64,1"
        assert renderer.calls == 1

    def test_falls_back_to_second_attempt(self) -> None:
        renderer = FailingRenderer(fail_on={1})

        assert render_with_fallback(renderer, self._attempts()) == "data:image/png;base64,2"
        assert renderer.calls == 2

    def test_all_attempts_failing_is_degraded(self) -> None:
        renderer = FailingRenderer(fail_on={1, 2})

        with pytest.raises(ProvisioningDegradedError) as exc_info:
            render_with_fallback(renderer, self._attempts())

        assert exc_info.value.details == {"attempts": 2}

    def test_unexpected_errors_propagate(self) -> None:
        """Only render errors trigger the fallback."""

        class BrokenRenderer:
            def render(self, uri: str, options: QrRenderOptions) -> str:
                raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            render_with_fallback(BrokenRenderer(), self._attempts())
