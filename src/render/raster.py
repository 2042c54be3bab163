"""Растеризация CompositeFrame в изображение Pillow."""

from __future__ import annotations

from typing import TYPE_CHECKING

from PIL import Image, ImageDraw

from shared.constants import BACKGROUND_COLOR, ResamplingQuality

if TYPE_CHECKING:
    from render.compositor import CompositeFrame, FrameLayer, PivotIndicator

_RESAMPLING = {
    ResamplingQuality.BILINEAR: Image.Resampling.BILINEAR,
    ResamplingQuality.NEAREST: Image.Resampling.NEAREST,
}


def resampling_filter(quality: ResamplingQuality) -> Image.Resampling:
    return _RESAMPLING[quality]


def render_layer(
    layer: FrameLayer,
    size: tuple[int, int],
    quality: ResamplingQuality = ResamplingQuality.BILINEAR,
) -> Image.Image:
    """Слой на прозрачном холсте ``size`` с учётом масштаба и прозрачности."""
    canvas = Image.new('RGBA', size, (0, 0, 0, 0))
    for placement in layer.placements:
        tile = placement.image
        if tile.mode != 'RGBA':
            tile = tile.convert('RGBA')
        # paste() допускает отрицательные смещения, alpha_composite() нет
        canvas.paste(tile, (placement.dx, placement.dy), tile)

    if layer.scale != 1.0:
        px, py = layer.pivot if layer.pivot is not None else (size[0] / 2, size[1] / 2)
        inv = 1.0 / layer.scale
        # Обратное аффинное преобразование: масштаб вокруг pivot
        canvas = canvas.transform(
            size,
            Image.Transform.AFFINE,
            (inv, 0.0, px - px * inv, 0.0, inv, py - py * inv),
            resample=resampling_filter(quality),
        )

    if layer.opacity < 1.0:
        alpha = canvas.getchannel('A').point(
            lambda a: round(a * max(0.0, layer.opacity))
        )
        canvas.putalpha(alpha)
    return canvas


def draw_indicator(img: Image.Image, indicator: PivotIndicator) -> None:
    left, top, width, height = indicator.scaled_rect
    c = indicator.shade
    draw = ImageDraw.Draw(img)
    draw.rectangle(
        (round(left), round(top), round(left + width), round(top + height)),
        outline=(c, c, c),
    )


def render_frame(frame: CompositeFrame) -> Image.Image:
    """Render all layers over the background and return an RGB image."""
    width, height = frame.size
    base = Image.new('RGBA', (max(1, width), max(1, height)), (*BACKGROUND_COLOR, 255))
    for layer in frame.layers:
        if layer.opacity <= 0.0:
            continue
        base.alpha_composite(render_layer(layer, base.size, frame.quality))
    if frame.indicator is not None:
        draw_indicator(base, frame.indicator)
    return base.convert('RGB')
