"""
Thai national ID card (บัตรประจำตัวประชาชน) reader.

Fields are read with vendor READ BINARY commands (CLA 0x80) after selecting
the Thai ID applet. T=0 readers answer with 61 XX and need GET RESPONSE
chaining to collect the data.
"""

import logging
from typing import List

from . import decoder
from .apdu import APDU, classify_status, interpret_status
from .exceptions import ApduError
from .models import IdentityRecord

logger = logging.getLogger(__name__)


class ThaiIDCardReader:
    """
    Reads one card over an open connection.

    `connection` is anything with `transmit(apdu) -> (data, sw1, sw2)`:
    a CardSession or pyscard's CardConnection.
    """

    NAME_PARTS = 4  # prefix#first#middle#last

    def __init__(self, connection, card_config):
        self.connection = connection
        self.config = card_config

    def send_apdu(self, apdu: List[int]) -> bytes:
        """
        Send a command and return its data.

        61 XX answers are followed with GET RESPONSE until a terminal status
        arrives; anything but 90 00 raises ApduError.
        """
        data, sw1, sw2 = self.connection.transmit(apdu)

        if sw1 == 0x61:
            result = bytearray(data)
            remaining = sw2
            while True:
                data, sw1, sw2 = self.connection.transmit(APDU.get_response(remaining))
                result.extend(data)
                if sw1 == 0x61:
                    remaining = sw2
                    continue
                if sw1 == 0x90 and sw2 == 0x00:
                    return bytes(result)
                logger.debug(f"GET RESPONSE status {sw1:02X}{sw2:02X}: {classify_status(sw1, sw2).value}")
                raise ApduError.from_status("GET RESPONSE", sw1, sw2)

        if sw1 == 0x90 and sw2 == 0x00:
            return bytes(data)

        logger.debug(f"APDU status {sw1:02X}{sw2:02X}: {classify_status(sw1, sw2).value} ({interpret_status(sw1, sw2)})")
        raise ApduError.from_status("APDU", sw1, sw2)

    def select_application(self):
        try:
            self.send_apdu(self.config.select_apdu_bytes())
        except ApduError as e:
            raise ApduError(f"Failed to SELECT Thai ID applet: {e}", e.sw1, e.sw2) from e

    def read_field_raw(self, name: str) -> bytes:
        """
        Raw field bytes, delimiters kept.

        Unconfigured fields read as empty. A failed read of a field marked
        `required = false` is logged and reads as empty too.
        """
        command = self.config.get_field(name)
        if command is None:
            logger.warning(f"Field '{name}' not found in config, using empty value")
            return b""
        try:
            return self.send_apdu(command.to_bytes())
        except ApduError as e:
            if not command.required:
                logger.warning(f"Optional field '{name}' unreadable: {e}")
                return b""
            raise ApduError(f"Failed to read field '{name}': {e}", e.sw1, e.sw2) from e

    def read_field(self, name: str) -> str:
        return decoder.decode_tis620(self.read_field_raw(name))

    def read_photo_chunks(self) -> List[bytes]:
        """Read every configured chunk in order; failed chunks are skipped"""
        commands = self.config.photo_chunk_bytes()
        total = len(commands)
        chunks = []
        for i, apdu in enumerate(commands):
            try:
                data = self.send_apdu(apdu)
                logger.debug(f"Photo chunk {i + 1}/{total}: {len(data)} bytes")
                chunks.append(data)
            except ApduError as e:
                logger.warning(f"Failed to read photo chunk {i + 1}/{total}: {e}")

        total_bytes = sum(len(c) for c in chunks)
        if len(chunks) < total:
            logger.warning(f"Photo incomplete: read {len(chunks)}/{total} chunks ({total_bytes} bytes)")
        else:
            logger.info(f"Photo complete: {len(chunks)}/{total} chunks ({total_bytes} bytes)")
        return chunks

    def read_identity(self) -> IdentityRecord:
        """Run the full read sequence"""
        self.select_application()

        citizen_id = self.read_field("citizen_id")
        th_name = decoder.split_tis620(self.read_field_raw("full_name_th"), self.NAME_PARTS)
        en_name_raw = self.read_field_raw("full_name_en")
        en_name = decoder.split_tis620(en_name_raw, self.NAME_PARTS)
        date_of_birth = self.read_field("date_of_birth")
        sex = self.read_field("gender")
        issuer = self.read_field("card_issuer")
        issue_date = self.read_field("issue_date")
        expire_date = decoder.normalize_expiry(self.read_field("expire_date"))

        address = decoder.parse_address(self.read_field_raw("address"))
        logger.info(f"Address decoded: {decoder.mask_address(address.province)}")

        photo_chunks = self.read_photo_chunks()
        photo_bytes = b"".join(photo_chunks)
        photo_info = decoder.inspect_photo(photo_bytes)
        if photo_info:
            logger.debug(f"Photo {photo_info[0]} {photo_info[1][0]}x{photo_info[1][1]}")

        return IdentityRecord(
            citizen_id=citizen_id,
            th_prefix=th_name[0],
            th_firstname=th_name[1],
            th_middlename=th_name[2],
            th_lastname=th_name[3],
            en_prefix=en_name[0],
            en_firstname=en_name[1],
            en_middlename=en_name[2],
            en_lastname=en_name[3],
            full_name_en=decoder.decode_tis620(en_name_raw),
            birthday=date_of_birth,
            sex=sex,
            issuer=issuer,
            issue_date=issue_date,
            expire_date=expire_date,
            address=address.combined,
            addr_house_no=address.house_no,
            addr_village_no=address.village_no,
            addr_lane=address.lane,
            addr_road=address.road,
            addr_tambol=address.tambol,
            addr_amphur=address.amphur,
            addr_province=address.province,
            photo=decoder.combine_photo_chunks(photo_chunks),
        )
