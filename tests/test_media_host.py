import io

import cloudinary.exceptions
import cloudinary.uploader
import pytest
from PIL import Image

from bookshare.config import Settings
from bookshare.errors import ExternalServiceError
from bookshare.services.media_host import (
    CloudinaryMediaHost,
    destroy_quietly,
    is_hosted,
    public_id_from_url,
    to_data_url,
)

HOSTED = "https://res.cloudinary.com/demo/image/upload/v1712345/abc123.jpg"


def make_host(**overrides):
    options = dict(cloudinary_cloud_name="demo", cloudinary_api_key="key", cloudinary_api_secret="shh")
    options.update(overrides)
    return CloudinaryMediaHost(config=Settings(**options))


@pytest.fixture
def sdk_calls(monkeypatch):
    """Record calls to the Cloudinary uploader instead of hitting the network."""
    calls = []

    def fake_upload(file, **options):
        calls.append(("upload", file, options))
        return {"public_id": "abc123", "secure_url": HOSTED}

    def fake_destroy(public_id, **options):
        calls.append(("destroy", public_id, options))
        return {"result": "ok"}

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
    monkeypatch.setattr(cloudinary.uploader, "destroy", fake_destroy)
    return calls


def test_url_helpers():
    assert is_hosted(HOSTED)
    assert not is_hosted("https://api.dicebear.com/9.x/avataaars/svg?seed=alice")
    assert not is_hosted(None)
    assert public_id_from_url(HOSTED) == "abc123"
    assert to_data_url(b"hi", "image/png") == "data:image/png;base64,aGk="


def test_upload_sends_data_url_with_credentials(sdk_calls):
    assert make_host().upload(b"jpeg-bytes") == HOSTED

    kind, payload, options = sdk_calls[0]
    assert kind == "upload"
    assert payload.startswith("data:image/jpeg;base64,")
    assert options["cloud_name"] == "demo"
    assert options["api_key"] == "key"
    assert options["api_secret"] == "shh"


def test_upload_passes_urls_through(sdk_calls):
    make_host().upload("data:image/png;base64,xx", "image/png")
    assert sdk_calls[0][1] == "data:image/png;base64,xx"


def test_destroy_by_public_id(sdk_calls):
    make_host().destroy("abc123")
    assert [(kind, public_id) for kind, public_id, _ in sdk_calls] == [("destroy", "abc123")]


def test_sdk_errors_become_external_service_errors(monkeypatch):
    def failing(*args, **kwargs):
        raise cloudinary.exceptions.Error("Invalid image file")

    monkeypatch.setattr(cloudinary.uploader, "upload", failing)
    monkeypatch.setattr(cloudinary.uploader, "destroy", failing)
    host = make_host()
    with pytest.raises(ExternalServiceError, match="Invalid image file"):
        host.upload("data:image/png;base64,xx")
    with pytest.raises(ExternalServiceError):
        host.destroy("abc123")


def test_missing_secure_url_is_an_error(monkeypatch):
    monkeypatch.setattr(cloudinary.uploader, "upload", lambda file, **options: {"public_id": "x"})
    with pytest.raises(ExternalServiceError, match="no URL"):
        make_host().upload("data:image/png;base64,xx")


def test_unconfigured_host_refuses_without_calling_out(sdk_calls):
    host = make_host(cloudinary_api_secret=None)
    assert not host.is_available()
    with pytest.raises(ExternalServiceError, match="not configured"):
        host.upload("data:image/png;base64,xx")
    assert sdk_calls == []


def test_destroy_quietly(media_host):
    assert destroy_quietly(media_host, HOSTED) is True
    assert media_host.destroyed == ["abc123"]

    assert destroy_quietly(media_host, "https://example.com/a.png") is False
    assert media_host.destroyed == ["abc123"]

    media_host.fail_destroy = True
    assert destroy_quietly(media_host, HOSTED) is False


@pytest.mark.integration
def test_live_upload_and_destroy():
    host = CloudinaryMediaHost()
    if not host.is_available():
        pytest.skip("CLOUDINARY_* ayarları yok")
    out = io.BytesIO()
    Image.new("RGB", (8, 8), color=(10, 120, 10)).save(out, format="PNG")
    url = host.upload(out.getvalue(), "image/png")
    assert is_hosted(url)
    host.destroy(public_id_from_url(url))
