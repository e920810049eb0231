import base64

import pytest

from contractor_bids import file_storage
from contractor_bids.file_storage import GCSFileStorage, InMemoryFileStorage, object_name


class FakeBlob:
    def __init__(self, name):
        self.name = name
        self.uploads = []

    @property
    def public_url(self):
        return f"https://storage.googleapis.com/uploads-bucket/{self.name}"

    def upload_from_string(self, content, content_type=None):
        self.uploads.append((content, content_type))


class FakeBucket:
    def __init__(self, name):
        self.name = name
        self.blobs = []

    def blob(self, name):
        blob = FakeBlob(name)
        self.blobs.append(blob)
        return blob


class FakeClient:
    def __init__(self, project=None):
        self.project = project

    def bucket(self, name):
        return FakeBucket(name)


@pytest.fixture
def gcs(monkeypatch):
    monkeypatch.setattr(file_storage.storage, "Client", FakeClient)
    return GCSFileStorage(project_id="demo-project", bucket_name="uploads-bucket")


def test_object_name_keeps_extension_only():
    name = object_name("My Logo.PNG")
    assert name.startswith("uploads/")
    assert name.endswith(".png")
    assert "My Logo" not in name
    assert object_name("My Logo.PNG") != name


def test_gcs_upload_returns_public_url(gcs):
    url = gcs.upload("logo.png", b"\x89PNG", "image/png")

    blob = gcs.bucket.blobs[0]
    assert blob.uploads == [(b"\x89PNG", "image/png")]
    assert url == f"https://storage.googleapis.com/uploads-bucket/{blob.name}"
    assert gcs.client.project == "demo-project"


def test_in_memory_upload_returns_data_url():
    storage = InMemoryFileStorage()

    url = storage.upload("logo.png", b"abc", "image/png")

    assert url == "data:image/png;base64," + base64.b64encode(b"abc").decode()
    assert list(storage.files.values()) == [("image/png", b"abc")]
