"""
Inline file materials: data URL encoding, size limit, filename sanitization.
"""
import base64

import pytest

from teaching.files import MaterialFileSettings, file_to_data_url


def test_encodes_payload_as_data_url():
    out = file_to_data_url(b"hello", "text/plain; charset=utf-8", "Notas da aula.txt")
    assert out.content == "data:text/plain;base64," + base64.b64encode(b"hello").decode("ascii")
    assert out.file_type == "text/plain"
    assert out.file_name == "Notas-da-aula.txt"


def test_oversized_payload_rejected():
    with pytest.raises(ValueError) as exc:
        file_to_data_url(b"x" * 11, "application/pdf", "a.pdf", MaterialFileSettings(max_size_bytes=10))
    assert str(exc.value) == "file_too_large"


def test_payload_at_limit_accepted():
    out = file_to_data_url(b"x" * 10, "application/pdf", "a.pdf", MaterialFileSettings(max_size_bytes=10))
    assert out.content.startswith("data:application/pdf;base64,")


@pytest.mark.parametrize(
    "data, mime, name, code",
    [
        (b"", "text/plain", "a.txt", "empty_file"),
        (b"x", "not a mime", "a.txt", "invalid_mime_type"),
        (b"x", "text/plain", "", "invalid_filename"),
    ],
)
def test_invalid_inputs(data, mime, name, code):
    with pytest.raises(ValueError) as exc:
        file_to_data_url(data, mime, name)
    assert str(exc.value) == code


def test_path_components_stripped_from_filename():
    out = file_to_data_url(b"x", "image/png", "../../etc/Foto Ação.PNG")
    assert out.file_name == "Foto-Acao.png"


def test_missing_mime_defaults_to_octet_stream():
    assert file_to_data_url(b"x", "", "blob.bin").file_type == "application/octet-stream"


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("MATERIAL_MAX_BYTES", "2048")
    assert MaterialFileSettings.from_env().max_size_bytes == 2048
    monkeypatch.setenv("MATERIAL_MAX_BYTES", "abc")
    assert MaterialFileSettings.from_env().max_size_bytes == 8 * 1024 * 1024
