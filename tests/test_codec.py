from hostdiag.net.codec import TCP_ROW, UDP_ROW, decode_address, decode_port

from conftest import raw_address, raw_port


def test_decode_address():
    assert decode_address(raw_address("10.0.0.5")) == "10.0.0.5"
    assert decode_address(raw_address("93.184.216.34")) == "93.184.216.34"
    assert decode_address(0) == "0.0.0.0"


def test_decode_address_reads_little_endian_integer():
    # 127.0.0.1 stored in network order reads back as 0x0100007F on little-endian hosts
    assert decode_address(0x0100007F) == "127.0.0.1"


def test_decode_port_uses_first_two_bytes_in_network_order():
    assert decode_port(b"\x01\xbb\x00\x00") == 443
    assert decode_port(b"\xd4\x31\xff\xff") == 54321
    assert decode_port(raw_port(135)) == 135


def test_row_sizes_match_mib_layouts():
    assert TCP_ROW.size == 24
    assert UDP_ROW.size == 12
