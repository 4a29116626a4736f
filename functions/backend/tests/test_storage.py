import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from backend.storage import (
    MAX_PRESIGN_SECONDS,
    CosStorageClient,
    FirebaseStorageClient,
    InMemoryStorageClient,
)

EXPIRES = datetime(2030, 1, 1, tzinfo=timezone.utc)


class InMemoryStorageClientTests(unittest.TestCase):
    def test_upload_then_signed_url(self):
        storage = InMemoryStorageClient()
        storage.upload_bytes("year-news/1985/hero/a.png", b"png", "image/png")

        self.assertEqual(
            storage.stored_objects["year-news/1985/hero/a.png"], (b"png", "image/png")
        )
        self.assertEqual(
            storage.signed_read_url("year-news/1985/hero/a.png", EXPIRES),
            f"https://example.test/storage/year-news/1985/hero/a.png?op=get&expires={int(EXPIRES.timestamp())}",
        )

    def test_missing_object(self):
        with self.assertRaises(FileNotFoundError):
            InMemoryStorageClient().signed_read_url("nope.png", EXPIRES)


class FirebaseStorageClientTests(unittest.TestCase):
    @patch("backend.storage.firebase_storage.bucket")
    def test_upload_and_sign(self, mock_bucket):
        blob = mock_bucket.return_value.blob.return_value
        blob.generate_signed_url.return_value = "https://signed"
        storage = FirebaseStorageClient()

        storage.upload_bytes("a.png", b"png", "image/png")
        url = storage.signed_read_url("a.png", EXPIRES)

        mock_bucket.assert_called_once_with(None)
        blob.upload_from_string.assert_called_once_with(b"png", content_type="image/png")
        blob.generate_signed_url.assert_called_once_with(
            expiration=EXPIRES, method="GET", version="v2"
        )
        self.assertEqual(url, "https://signed")


class CosStorageClientTests(unittest.TestCase):
    def _client(self, mock_boto):
        return CosStorageClient(
            bucket="bucket",
            region="ap-guangzhou",
            endpoint="https://cos.ap-guangzhou.myqcloud.com",
            access_key_id="id",
            secret_access_key="secret",
        )

    @patch("backend.storage.boto3.client")
    def test_upload(self, mock_boto):
        storage = self._client(mock_boto)
        storage.upload_bytes("a.png", b"png", "image/png")

        mock_boto.return_value.put_object.assert_called_once_with(
            Bucket="bucket", Key="a.png", Body=b"png", ContentType="image/png"
        )
        _, kwargs = mock_boto.call_args
        self.assertEqual(kwargs["endpoint_url"], "https://cos.ap-guangzhou.myqcloud.com")

    @patch("backend.storage.boto3.client")
    def test_presign_is_capped_at_a_week(self, mock_boto):
        storage = self._client(mock_boto)
        storage.signed_read_url("a.png", datetime.now(timezone.utc) + timedelta(days=365))

        _, kwargs = mock_boto.return_value.generate_presigned_url.call_args
        self.assertEqual(kwargs["ExpiresIn"], MAX_PRESIGN_SECONDS)
        self.assertEqual(kwargs["Params"], {"Bucket": "bucket", "Key": "a.png"})


if __name__ == "__main__":
    unittest.main()
