import logging
import shutil
from pathlib import Path
from typing import BinaryIO, Iterator
import boto3
from botocore.exceptions import ClientError, NoCredentialsError
from fastapi import HTTPException, status

from config import STORAGE_TYPE, UPLOAD_DIR, AWS_S3_BUCKET_NAME, AWS_S3_REGION, AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY

logger = logging.getLogger(__name__)

# Locally stored uploads are served by the app under this URL prefix (see main.py)
LOCAL_URL_BASE = "/uploads"
CHUNK_SIZE = 64 * 1024

class StorageService:
    """
    A storage service that can operate in two modes:
    - 'local': Saves files to the local filesystem. Ideal for development.
    - 's3': Saves files to an AWS S3 bucket. For production.

    The mode is determined by the `STORAGE_TYPE` environment variable.
    """
    def __init__(self, mode: str = None, base_path: str = None):
        self.mode = mode or STORAGE_TYPE

        logger.info(f"Initializing StorageService in '{self.mode}' mode.")

        if self.mode == "local":
            self._init_local(Path(base_path or UPLOAD_DIR))
        elif self.mode == "s3":
            self._init_s3()
        else:
            raise ValueError(f"Invalid STORAGE_TYPE: '{self.mode}'. Must be 'local' or 's3'.")

    def _init_local(self, base_path: Path):
        """Initializes the local storage directory."""
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Local storage initialized at: {self.base_path}")

    def _init_s3(self):
        """Initializes the S3 client and verifies the connection."""
        self.bucket_name = AWS_S3_BUCKET_NAME
        self.region = AWS_S3_REGION

        if not all([self.bucket_name, self.region, AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY]):
            logger.error("S3 mode selected, but one or more required AWS environment variables are missing.")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="S3 storage is not configured correctly.")

        try:
            self.s3_client = boto3.client(
                "s3",
                aws_access_key_id=AWS_ACCESS_KEY_ID,
                aws_secret_access_key=AWS_SECRET_ACCESS_KEY,
                region_name=self.region
            )
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            logger.info(f"Successfully connected to S3 bucket: {self.bucket_name}")
        except (NoCredentialsError, ClientError) as e:
            logger.error(f"Failed to connect to S3: {e}")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Could not connect to file storage.")

    def upload_file(self, file_obj: BinaryIO, object_key: str, content_type: str = None) -> str:
        if self.mode == 'local':
            return self._upload_file_local(file_obj, object_key)
        else: # s3
            return self._upload_file_s3(file_obj, object_key, content_type)

    def delete_file(self, object_key: str) -> bool:
        """Best-effort removal; a missing object is not an error."""
        if self.mode == 'local':
            return self._delete_file_local(object_key)
        else: # s3
            return self._delete_file_s3(object_key)

    def exists(self, object_key: str) -> bool:
        if self.mode == 'local':
            return self._local_path(object_key).is_file()
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=object_key)
            return True
        except ClientError:
            return False

    def read_bytes(self, object_key: str) -> bytes:
        return b"".join(self.iter_file(object_key))

    def iter_file(self, object_key: str) -> Iterator[bytes]:
        """Yields the stored object in chunks, for streaming responses."""
        if self.mode == 'local':
            return self._iter_file_local(object_key)
        else: # s3
            return self._iter_file_s3(object_key)

    def get_file_url(self, object_key: str) -> str:
        if self.mode == 'local':
            return f"{LOCAL_URL_BASE}/{object_key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{object_key}"

    # --- Local Mode Implementations ---

    def _local_path(self, object_key: str) -> Path:
        # Keys are generated server-side, but never let one escape the upload directory
        path = (self.base_path / object_key).resolve()
        if self.base_path.resolve() not in path.parents:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file key.")
        return path

    def _upload_file_local(self, file_obj: BinaryIO, object_key: str) -> str:
        file_path = self._local_path(object_key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "wb") as buffer:
            shutil.copyfileobj(file_obj, buffer)
        logger.info(f"Saved file locally to: {file_path}")
        return object_key

    def _delete_file_local(self, object_key: str) -> bool:
        try:
            file_path = self._local_path(object_key)
            file_path.unlink()
            logger.info(f"Deleted local file: {file_path}")
            return True
        except FileNotFoundError:
            logger.warning(f"Local file already absent: {object_key}")
            return False
        except (OSError, HTTPException) as e:
            logger.error(f"Failed to delete local file {object_key}: {e}")
            return False

    def _iter_file_local(self, object_key: str) -> Iterator[bytes]:
        source_path = self._local_path(object_key)
        if not source_path.is_file():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")

        def chunks():
            with open(source_path, "rb") as f:
                while True:
                    chunk = f.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk
        return chunks()

    # --- S3 Mode Implementations ---

    def _upload_file_s3(self, file_obj: BinaryIO, object_key: str, content_type: str = None) -> str:
        extra_args = {"ContentType": content_type} if content_type else {}
        try:
            self.s3_client.upload_fileobj(file_obj, self.bucket_name, object_key, ExtraArgs=extra_args)
            return object_key
        except ClientError as e:
            logger.error(f"S3 upload failed for {object_key}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not upload file to storage.")

    def _delete_file_s3(self, object_key: str) -> bool:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=object_key)
            return True
        except ClientError as e:
            logger.error(f"S3 delete failed for {object_key}: {e}")
            return False

    def _iter_file_s3(self, object_key: str) -> Iterator[bytes]:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=object_key)
        except ClientError as e:
            if e.response['Error']['Code'] in ("404", "NoSuchKey"):
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
            logger.error(f"S3 download failed for {object_key}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not read file from storage.")
        return response["Body"].iter_chunks(chunk_size=CHUNK_SIZE)
