import pytest

from teachos.coff import (
    NOFFMAGIC,
    AoutHeader,
    CoffError,
    FileHeader,
    NoffHeader,
    SectionHeader,
    Segment,
)
from teachos.coff2noff import coff_to_noff, main, section_line


def build_coff(sections, file_magic=None):
    header_end = FileHeader.SIZE + AoutHeader.SIZE + SectionHeader.SIZE * len(sections)
    headers = []
    body = bytearray()
    for name, paddr, payload in sections:
        if isinstance(payload, int):
            headers.append(SectionHeader(name=name, paddr=paddr, vaddr=paddr, size=payload))
        else:
            headers.append(SectionHeader(name=name, paddr=paddr, vaddr=paddr,
                                         size=len(payload), scnptr=header_end + len(body)))
            body += payload
    fh = FileHeader(nscns=len(sections)) if file_magic is None else FileHeader(magic=file_magic, nscns=len(sections))
    return fh.to_bytes() + AoutHeader().to_bytes() + b"".join(h.to_bytes() for h in headers) + bytes(body)


TEXT = b"\x01\x02\x03\x04" * 4
DATA = b"abcdefgh"


def test_section_line_format():
    section = SectionHeader(name=".text", paddr=0, size=0x10, scnptr=0x50)
    assert section_line(section) == '\t".text", filepos 0x50, mempos 0x0, size 0x10'


def test_segments_follow_header():
    out = coff_to_noff(build_coff([(".text", 0, TEXT), (".data", 0x40, DATA), (".bss", 0x100, 32)]))
    header = NoffHeader.from_bytes(out)
    assert header.magic == NOFFMAGIC
    assert header.code == Segment(0, NoffHeader.SIZE, len(TEXT))
    assert header.init_data == Segment(0x40, NoffHeader.SIZE + len(TEXT), len(DATA))
    assert header.uninit_data.virtual_addr == 0x100
    assert header.uninit_data.size == 32
    assert out[NoffHeader.SIZE:] == TEXT + DATA


def test_rdata_counts_as_initialised_data():
    out = coff_to_noff(build_coff([(".rdata", 0x80, DATA)]))
    header = NoffHeader.from_bytes(out)
    assert header.init_data == Segment(0x80, NoffHeader.SIZE, len(DATA))
    assert header.code.size == 0


def test_data_and_rdata_rejected():
    with pytest.raises(CoffError, match="data and rdata"):
        coff_to_noff(build_coff([(".data", 0, DATA), (".rdata", 0x40, DATA)]))


def test_unknown_segment_rejected():
    with pytest.raises(CoffError, match="Unknown segment type: .comment"):
        coff_to_noff(build_coff([(".comment", 0, DATA)]))


def test_empty_sections_ignored():
    out = coff_to_noff(build_coff([(".comment", 0, b"")]))
    assert len(out) == NoffHeader.SIZE
    assert NoffHeader.from_bytes(out) == NoffHeader()


def test_separate_bss_sections_accumulate():
    out = coff_to_noff(build_coff([(".sbss", 0x200, 16), (".bss", 0x300, 32)]))
    header = NoffHeader.from_bytes(out)
    assert header.uninit_data.virtual_addr == 0x200
    assert header.uninit_data.size == 16 + 32


def test_contiguous_bss_sections_rejected():
    with pytest.raises(CoffError, match="bss and sbss"):
        coff_to_noff(build_coff([(".sbss", 0x200, 16), (".bss", 0x200 + 16, 32)]))


def test_bad_magic():
    with pytest.raises(CoffError, match="MIPSEL"):
        coff_to_noff(build_coff([], file_magic=0x1234))


def test_main_writes_noff(tmp_path, capsys):
    source = tmp_path / "prog.coff"
    target = tmp_path / "prog.noff"
    data = build_coff([(".text", 0, TEXT)])
    source.write_bytes(data)
    assert main([str(source), str(target)]) == 0
    assert target.read_bytes() == coff_to_noff(data)
    assert "Loading 1 sections:" in capsys.readouterr().out


def test_main_removes_output_on_error(tmp_path):
    source = tmp_path / "prog.coff"
    target = tmp_path / "prog.noff"
    source.write_bytes(build_coff([(".weird", 0, DATA)]))
    target.write_bytes(b"old")
    assert main([str(source), str(target)]) == 1
    assert not target.exists()


def test_main_usage(capsys):
    assert main([]) == 1
    assert "Usage" in capsys.readouterr().err