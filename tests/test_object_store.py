import io

import pytest
from botocore.exceptions import ClientError

from halftone_config import HalftoneSettings
from halftone_errors import ObjectNotFoundError, StorageNotConfiguredError
from object_store import ObjectStore, output_key, sanitize_filename, upload_key


def client_error(code, operation="HeadObject"):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class StubS3Client:
    def __init__(self, objects=None, error=None):
        self.objects = dict(objects or {})
        self.error = error
        self.calls = []

    def head_object(self, Bucket, Key):
        self.calls.append(("head_object", Bucket, Key))
        if self.error:
            raise self.error
        if Key not in self.objects:
            raise client_error("404")
        return {"ContentLength": len(self.objects[Key])}

    def get_object(self, Bucket, Key):
        self.calls.append(("get_object", Bucket, Key))
        if Key not in self.objects:
            raise client_error("NoSuchKey", "GetObject")
        return {"Body": io.BytesIO(self.objects[Key])}

    def put_object(self, Bucket, Key, Body, ContentType):
        self.calls.append(("put_object", Bucket, Key, ContentType))
        self.objects[Key] = Body

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        self.calls.append(("presign", operation, Params, ExpiresIn))
        return f"https://r2.example/{Params['Key']}?op={operation}&ttl={ExpiresIn}"


def test_sanitize_filename():
    assert sanitize_filename("my art (final).png") == "my_art__final_.png"
    assert sanitize_filename("../../etc/passwd") == ".._.._etc_passwd"
    assert sanitize_filename(None) == "file"


def test_keys_have_expected_layout():
    image_id, key = upload_key("logo.png")
    assert image_id.startswith("img_")
    assert key == f"uploads/{image_id}/logo.png"
    assert output_key().startswith("outputs/ht_")
    assert output_key().endswith(".png")


def test_head_and_get():
    client = StubS3Client({"uploads/a.png": b"12345"})
    store = ObjectStore(client, "bucket")
    assert store.head_size("uploads/a.png") == 5
    assert store.get_bytes("uploads/a.png") == b"12345"
    assert client.calls[0] == ("head_object", "bucket", "uploads/a.png")


def test_missing_objects_raise_not_found():
    store = ObjectStore(StubS3Client(), "bucket")
    with pytest.raises(ObjectNotFoundError):
        store.head_size("missing")
    with pytest.raises(ObjectNotFoundError):
        store.get_bytes("missing")


def test_other_client_errors_propagate():
    store = ObjectStore(StubS3Client(error=client_error("AccessDenied")), "bucket")
    with pytest.raises(ClientError):
        store.head_size("anything")


def test_put_and_presign():
    client = StubS3Client()
    store = ObjectStore(client, "bucket", expires_seconds=600)
    store.put_png("outputs/x.png", b"png")
    assert client.objects["outputs/x.png"] == b"png"
    assert client.calls[0] == ("put_object", "bucket", "outputs/x.png", "image/png")

    put_url = store.presign_put("uploads/y.png", "image/png")
    assert "op=put_object" in put_url and "ttl=600" in put_url
    assert client.calls[-1][2] == {"Bucket": "bucket", "Key": "uploads/y.png", "ContentType": "image/png"}
    assert "op=get_object" in store.presign_get("outputs/x.png")


def test_from_settings_requires_configuration():
    with pytest.raises(StorageNotConfiguredError):
        ObjectStore.from_settings(HalftoneSettings())


def test_from_settings_builds_client():
    settings = HalftoneSettings(
        r2_endpoint="https://account.r2.cloudflarestorage.com",
        r2_bucket="halftones",
        r2_region="auto",
        r2_access_key_id="key",
        r2_secret_access_key="secret",
        url_expires_seconds=120,
    )
    store = ObjectStore.from_settings(settings)
    assert store.bucket == "halftones"
    assert store.expires_seconds == 120
    url = store.presign_get("outputs/x.png")
    assert url.startswith("https://")
    assert "r2.cloudflarestorage.com" in url
    assert "outputs/x.png" in url
