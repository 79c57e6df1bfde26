"""TIS-620 decoding, address heuristics, dates and masking."""

import base64
import io

from PIL import Image

from readers import decoder


def tis(text: str) -> bytes:
    return text.encode("cp874")


class TestText:
    def test_decode_replaces_delimiters_and_collapses_spaces(self):
        assert decoder.decode_tis620(tis("นาย#สมชาย##ใจดี   ")) == "นาย สมชาย ใจดี"

    def test_decode_undefined_byte_does_not_raise(self):
        assert "�" in decoder.decode_tis620(b"A\xdbB")

    def test_split_pads_missing_parts(self):
        assert decoder.split_tis620(tis("Mr.#John"), 4) == ["Mr.", "John", "", ""]

    def test_split_keeps_extra_delimiters_in_last_part(self):
        assert decoder.split_tis620(tis("a#b#c#d#e"), 4) == ["a", "b", "c", "d#e"]

    def test_split_trims_each_part(self):
        parts = decoder.split_tis620(tis("  นาย  #ก"), 2)
        assert parts == ["นาย", "ก"]


class TestAddress:
    def test_seven_part_layout(self):
        parts = ["1", "2", "", "", "ตำบลบางนา", "อำเภอบางนา", "กรุงเทพ"]
        assert decoder.select_division_indices(parts) == (4, 5, 6)

    def test_eight_part_layout_when_index_four_empty(self):
        parts = ["1", "2", "", "", "", "ตำบลบางนา", "อำเภอบางนา", "กรุงเทพ"]
        assert decoder.select_division_indices(parts) == (5, 6, 7)

    def test_garbage_only_index_four_counts_as_empty(self):
        parts = ["1", "2", "", "", "x 9", "ตำบลบางนา", "อำเภอบางนา", "กรุงเทพ"]
        assert decoder.select_division_indices(parts) == (5, 6, 7)

    def test_parse_eight_part_address(self):
        raw = tis("99/1#หมู่ที่ 3###  #ตำบลในเมือง#อำเภอเมือง#จังหวัดขอนแก่น")
        address = decoder.parse_address(raw)

        assert address.house_no == "99/1"
        assert address.village_no == "หมู่ที่ 3"
        assert address.tambol == "ตำบลในเมือง"
        assert address.amphur == "อำเภอเมือง"
        assert address.province == "จังหวัดขอนแก่น"
        assert address.combined == "99/1 หมู่ที่ 3 ตำบลในเมือง อำเภอเมือง จังหวัดขอนแก่น"

    def test_truncates_at_first_garbage_byte(self):
        raw = tis("1#2#3#4#ตำบล#อำเภอ#จังหวัด") + b"\x00\x01" + tis("ขยะ")
        assert decoder.truncate_address_garbage(raw) == tis("1#2#3#4#ตำบล#อำเภอ#จังหวัด")

    def test_strip_division_garbage(self):
        assert decoder.strip_division_garbage("ตำบลบางนา 12 x ก") == "ตำบลบางนา"

    def test_combined_order_puts_road_before_lane(self):
        parts = decoder.AddressParts("1", "", "ซอย", "ถนน", "ต", "อ", "จ")
        assert parts.combined == "1 ถนน ซอย ต อ จ"


class TestPhoto:
    def test_chunks_concatenated_in_order(self):
        assert decoder.combine_photo_chunks([b"ab", b"cd"]) == base64.b64encode(b"abcd").decode()

    def test_inspect_valid_jpeg(self):
        buf = io.BytesIO()
        Image.new("RGB", (4, 5)).save(buf, format="JPEG")
        assert decoder.inspect_photo(buf.getvalue()) == ("JPEG", (4, 5))

    def test_inspect_truncated_photo_is_not_fatal(self, caplog):
        assert decoder.inspect_photo(b"\xff\xd8\xff\xe0garbage") is None
        assert "could not be decoded" in caplog.text


class TestDates:
    def test_slash_format(self):
        assert decoder.format_date_slash("25330115") == "2533/01/15"
        assert decoder.format_date_slash("2533") == "2533"

    def test_thai_format(self):
        assert decoder.format_thai_date("25330115") == "15 ม.ค. 2533"
        assert decoder.format_thai_date("25331301") == "25331301"

    def test_lifetime_expiry(self):
        assert decoder.normalize_expiry("99999999") == "29991231"
        assert decoder.normalize_expiry("25700114") == "25700114"

    def test_buddhist_era_conversion(self):
        assert decoder.be_to_gregorian("25330115") == "19900115"


def test_masking():
    assert decoder.mask_citizen_id("1101700207366") == "*********7366"
    assert decoder.mask_address("กรุงเทพมหานคร") == "[hidden] กรุงเทพมหานคร"
    assert decoder.mask_address("") == "[masked address]"
