import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from edushare.core.errors import NotFoundError, PermissionDeniedError, UnavailableError
from edushare.utils.file_utils import sanitize_filename
from edushare.utils.s3_utils import LocalBlobStore, S3BlobStore

BASE_URL = "https://course-files.s3.eu-west-1.amazonaws.com"


class FakeS3Client:
    def __init__(self, error=None):
        self.error = error
        self.uploads = []
        self.deleted = []

    def upload_fileobj(self, fileobj, bucket, key, ExtraArgs=None):
        if self.error:
            raise self.error
        self.uploads.append((bucket, key, fileobj.read(), ExtraArgs))

    def delete_object(self, Bucket, Key):
        if self.error:
            raise self.error
        self.deleted.append((Bucket, Key))


def client_error(code, status):
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "PutObject",
    )


async def test_s3_put_returns_public_url_and_delete_uses_the_key():
    client = FakeS3Client()
    blobs = S3BlobStore(client=client, bucket="course-files", base_url=BASE_URL)

    url = await blobs.put("pdfs/1700000000000_week 1.pdf", b"%PDF", "application/pdf")
    assert url == f"{BASE_URL}/pdfs/1700000000000_week%201.pdf"
    assert client.uploads == [
        ("course-files", "pdfs/1700000000000_week 1.pdf", b"%PDF", {"ContentType": "application/pdf"})
    ]

    await blobs.delete(url)
    assert client.deleted == [("course-files", "pdfs/1700000000000_week 1.pdf")]


@pytest.mark.parametrize("error, expected", [
    (client_error("AccessDenied", 403), PermissionDeniedError),
    (client_error("NoSuchKey", 404), NotFoundError),
    (client_error("SlowDown", 503), UnavailableError),
    (EndpointConnectionError(endpoint_url=BASE_URL), UnavailableError),
])
async def test_s3_failures_map_to_store_errors(error, expected):
    blobs = S3BlobStore(client=FakeS3Client(error), bucket="course-files", base_url=BASE_URL)
    with pytest.raises(expected):
        await blobs.put("pdfs/x.pdf", b"data")


async def test_unconfigured_s3_is_unavailable():
    blobs = S3BlobStore(client=None, bucket=None, base_url=None)
    with pytest.raises(UnavailableError, match="S3_BUCKET_NAME"):
        await blobs.put("pdfs/x.pdf", b"data")


async def test_local_store_round_trip(tmp_path):
    blobs = LocalBlobStore(root=str(tmp_path), base_url="/files")

    url = await blobs.put("powerpoints/1_intro.pptx", b"slides")
    assert url == "/files/powerpoints/1_intro.pptx"
    assert (tmp_path / "powerpoints" / "1_intro.pptx").read_bytes() == b"slides"

    await blobs.delete(url)
    assert not (tmp_path / "powerpoints" / "1_intro.pptx").exists()
    with pytest.raises(NotFoundError):
        await blobs.delete(url)


async def test_local_store_refuses_paths_outside_its_root(tmp_path):
    blobs = LocalBlobStore(root=str(tmp_path / "files"))
    with pytest.raises(PermissionDeniedError):
        await blobs.put("../escape.pdf", b"data")


def test_sanitize_filename_strips_directories_and_unsafe_characters():
    assert sanitize_filename("C:\\Users\\me\\notes?.pdf") == "notes_.pdf"
    assert sanitize_filename("../../etc/passwd") == "passwd"
    assert sanitize_filename("") == "file"
