import io
import struct
from dataclasses import replace

import numpy as np
import pytest
from PIL import Image

from tiled_palette_quant import (
    ExportError,
    PaletteOverflow,
    QuantizationSettings,
    SourceImage,
    run,
)
from tiled_palette_quant.export import (
    base_name_from,
    bgr555,
    bmp_filename,
    bmp_size,
    c_identifier,
    decode_indexed_bmp,
    export,
    palette_filename,
    preview_filename,
)


# Indexed bitmap


def test_bmp_headers(small_result):
    data = export(small_result, "bmp")
    assert len(data) == 1078 + 4 * 2 == bmp_size(4, 2)
    assert struct.unpack_from("<2sIHHI", data, 0) == (b"BM", len(data), 0, 0, 1078)
    info = struct.unpack_from("<IiiHHIIiiII", data, 14)
    assert info == (40, 4, 2, 1, 8, 0, 8, 2835, 2835, 256, 0)


def test_bmp_colour_table_is_bgr_in_global_order(small_result):
    data = export(small_result, "bmp")
    table = data[54:1078]
    assert table[0:4] == bytes([0, 0, 255, 0])  # red
    assert table[4:8] == bytes([0, 255, 0, 0])  # green
    assert table[16:20] == bytes([255, 0, 0, 0])  # blue, block 1 slot 0
    assert table[20:24] == bytes([255, 255, 255, 0])
    assert table[32:] == bytes(1024 - 32)


def test_bmp_rows_are_bottom_up(small_result):
    data = export(small_result, "bmp")
    assert data[1078:1082] == bytes([1, 0, 5, 4])
    assert data[1082:1086] == bytes([0, 1, 4, 5])


def test_bmp_row_padding():
    assert bmp_size(5, 3) == 1102
    assert bmp_size(16, 16) == 1334
    assert bmp_size(1, 1) == 1078 + 4


def test_bmp_opens_in_pillow(small_result):
    with Image.open(io.BytesIO(export(small_result, "bmp"))) as im:
        assert im.mode == "P"
        assert im.size == (4, 2)
        assert np.array(im).tolist() == small_result.indices.tolist()
        assert im.getpalette()[:6] == [255, 0, 0, 0, 255, 0]


def test_bmp_decodes_back(small_result):
    palette, indices = decode_indexed_bmp(export(small_result, "bmp"))
    assert len(palette) == 256
    assert palette[:8] == small_result.global_palette()
    assert np.array_equal(indices, small_result.indices)


@pytest.mark.parametrize("width", [13, 14, 15])
def test_unaligned_width_round_trips_through_engine(width):
    rng = np.random.default_rng(width)
    rgb = rng.integers(0, 256, size=(7, width, 3)).astype(np.uint8)
    settings = QuantizationSettings(tile_size=4, palette_count=2, colors_per_palette=8)
    result = run(settings, SourceImage.from_array(rgb))
    data = export(result, "bmp")

    assert len(data) == bmp_size(width, 7)
    palette, indices = decode_indexed_bmp(data)
    assert indices.shape == (7, width)
    assert np.array_equal(indices, result.indices)
    flat = result.global_palette()
    assert palette[: len(flat)] == flat

    with Image.open(io.BytesIO(data)) as im:
        assert im.mode == "P"
        assert im.size == (width, 7)
        assert np.array_equal(np.array(im), result.indices)
        expected = [v for colour in flat for v in colour]
        assert im.getpalette()[: len(expected)] == expected


def test_bmp_rejects_more_than_256_colours(small_result):
    big = replace(
        small_result,
        settings=QuantizationSettings(palette_count=20, colors_per_palette=16),
    )
    with pytest.raises(PaletteOverflow):
        export(big, "bmp")


def test_decode_rejects_foreign_data():
    with pytest.raises(ExportError):
        decode_indexed_bmp(b"PK" + bytes(2000))


# Palette files


def test_gpl_text(small_result):
    text = export(small_result, "gpl", 1, name="hero")
    assert text == (
        "GIMP Palette\n"
        "Name: hero P1\n"
        "Columns: 4\n"
        "#\n"
        "0 0 255\n"
        "255 255 255\n"
        "0 0 0\n"
        "0 0 0\n"
    )


def test_jasc_pal_text(small_result):
    text = export(small_result, "jasc-pal")
    assert text == "JASC-PAL\n0100\n4\n255 0 0\n0 255 0\n0 0 0\n0 0 0\n"


def test_act_table(small_result):
    data = export(small_result, "act", 1)
    assert len(data) == 768
    assert data[:6] == bytes([0, 0, 255, 255, 255, 255])
    assert data[6:] == bytes(762)


def test_firmware_genesis(small_result):
    text = export(small_result, "firmware-c", 0, name="hero", target="genesis")
    assert text == (
        "#include <genesis.h>\n"
        "\n"
        "const u16 hero_pal0[4] = {\n"
        "  RGB24_TO_VDPCOLOR(255, 0, 0),\n"
        "  RGB24_TO_VDPCOLOR(0, 255, 0),\n"
        "  RGB24_TO_VDPCOLOR(0, 0, 0),\n"
        "  RGB24_TO_VDPCOLOR(0, 0, 0)\n"
        "};\n"
    )


def test_firmware_snes_and_gba(small_result):
    snes = export(small_result, "firmware-c", 1, name="hero", target="snes")
    assert snes.startswith("#include <stdint.h>\n\nconst uint16_t hero_pal1[4] = {\n")
    assert "  0x7C00,\n  0x7FFF,\n  0x0000,\n  0x0000\n};\n" in snes

    gba = export(small_result, "firmware-c", 0, name="hero", target="gba")
    assert "const COLOR hero_pal0[4]" in gba
    assert "  RGB15(31, 0, 0),\n  RGB15(0, 31, 0)," in gba


def test_bgr555_packing():
    assert bgr555((255, 0, 0)) == 0x001F
    assert bgr555((0, 255, 0)) == 0x03E0
    assert bgr555((0, 0, 255)) == 0x7C00
    assert bgr555((255, 255, 255)) == 0x7FFF


def test_c_identifier():
    assert c_identifier("hero") == "hero"
    assert c_identifier("Hero Sprite-2") == "Hero_Sprite_2"
    assert c_identifier("8bit") == "_8bit"


# Errors


def test_block_index_checked(small_result):
    with pytest.raises(ExportError):
        export(small_result, "gpl", 2)
    with pytest.raises(ExportError):
        export(small_result, "act", -1)
    with pytest.raises(ExportError):
        export(small_result, "jasc-pal", True)


def test_unknown_format_and_target(small_result):
    with pytest.raises(ExportError):
        export(small_result, "png")
    with pytest.raises(ExportError):
        export(small_result, "firmware-c", target="nes")


# File names


def test_output_names():
    settings = QuantizationSettings(tile_size=8, palette_count=2, colors_per_palette=4)
    assert bmp_filename("sprite", settings) == "sprite-8x8-2p4c-u.bmp"
    shared = replace(settings, color_zero_behavior="shared")
    assert bmp_filename("sprite", shared) == "sprite-8x8-2p4c-s.bmp"
    keyed = replace(settings, color_zero_behavior="transparentFromColor")
    assert bmp_filename("sprite", keyed) == "sprite-8x8-2p4c-t.bmp"

    assert palette_filename("sprite", 3, "jasc-pal") == "sprite-p3.pal"
    assert palette_filename("sprite", 0, "firmware-c") == "sprite-p0.c"
    assert preview_filename("sprite") == "sprite-preview.png"
    with pytest.raises(ExportError):
        palette_filename("sprite", 0, "bmp")


def test_base_name():
    assert base_name_from("art/Hero Sprite.PNG") == "Hero Sprite"
    assert base_name_from("") == "image"
    assert base_name_from(None) == "image"
