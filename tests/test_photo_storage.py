import os
import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.services.photo_storage import PhotoStorage, build_photo_key


class PhotoStorageTests(unittest.TestCase):
    def _storage(self, client: MagicMock) -> PhotoStorage:
        with patch("app.services.photo_storage.boto3.client", return_value=client):
            return PhotoStorage()

    def test_key_uses_prefix(self):
        self.assertEqual(build_photo_key("photo_1_1.jpg"), "photos/photo_1_1.jpg")

    def test_save_creates_missing_bucket_once(self):
        client = MagicMock()
        client.head_bucket.side_effect = ClientError({"Error": {"Code": "404"}}, "HeadBucket")
        storage = self._storage(client)

        storage.save("photos/a.jpg", b"abc", "image/jpeg")
        storage.save("photos/b.jpg", b"def", "image/jpeg")

        client.create_bucket.assert_called_once_with(Bucket=storage.bucket)
        self.assertEqual(client.put_object.call_count, 2)
        client.put_object.assert_called_with(
            Bucket=storage.bucket, Key="photos/b.jpg", Body=b"def", ContentType="image/jpeg"
        )

    def test_unexpected_bucket_error_propagates(self):
        client = MagicMock()
        client.head_bucket.side_effect = ClientError({"Error": {"Code": "403"}}, "HeadBucket")
        storage = self._storage(client)
        with self.assertRaises(ClientError):
            storage.save("photos/a.jpg", b"abc", "image/jpeg")
        client.put_object.assert_not_called()


if __name__ == "__main__":
    unittest.main()
