#!/usr/bin/env python3
"""Generate synthetic manga panels for the demo session manifest.

Creates 4 panels with different aspect ratios in examples/demo-panels/.
Each panel is a flat tone with a framed border and a big panel number,
so the push-ins and pans in demo-session.yaml are easy to follow.

Usage:
    python examples/generate_demo_panels.py
    # Then play or export:
    mangamotion play --manifest examples/demo-session.yaml
    mangamotion export --manifest examples/demo-session.yaml --offline
"""

from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

OUTPUT_DIR = Path(__file__).resolve().parent / "demo-panels"

# Wide, tall and square panels so fitting is exercised in both directions.
PANELS = [
    ("panel-01", (900, 600),  (236, 232, 222)),  # paper
    ("panel-02", (600, 900),  (200, 206, 214)),  # cold grey
    ("panel-03", (1200, 500), (230, 214, 196)),  # warm
    ("panel-04", (700, 700),  (214, 222, 206)),  # sage
]


def _make_panel(label: str, size: tuple[int, int], tone: tuple[int, int, int]) -> Image.Image:
    img = Image.new("RGB", size, tone)
    draw = ImageDraw.Draw(img)
    w, h = size
    draw.rectangle([(12, 12), (w - 13, h - 13)], outline=(20, 20, 20), width=8)
    # Screentone-ish diagonal hatching in one corner.
    for i in range(0, min(w, h) // 2, 14):
        draw.line([(12 + i, 12), (12, 12 + i)], fill=(90, 90, 90), width=2)
    try:
        font = ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", min(w, h) // 4
        )
    except OSError:
        font = ImageFont.load_default()
    bbox = draw.textbbox((0, 0), label, font=font)
    tw, th = bbox[2] - bbox[0], bbox[3] - bbox[1]
    draw.text(((w - tw) / 2, (h - th) / 2), label, fill=(20, 20, 20), font=font)
    return img


def main():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    for name, size, tone in PANELS:
        out = OUTPUT_DIR / f"{name}.png"
        if out.exists():
            print(f"  skip {name} (exists)")
            continue
        _make_panel(name.split("-")[1], size, tone).save(out)
        print(f"  wrote {out.name} ({size[0]}x{size[1]})")
    print(f"Done: {len(PANELS)} panels in {OUTPUT_DIR}")


if __name__ == "__main__":
    main()
