from google.cloud import storage as gcs_storage
from app.config import get_settings


def get_storage_client():
    return gcs_storage.Client(project=get_settings().GCP_PROJECT_ID or None)


def get_bucket():
    client = get_storage_client()
    return client.bucket(get_settings().GCS_BUCKET_NAME)


def upload_file(path: str, file_bytes: bytes, content_type: str = "application/octet-stream") -> str:
    """Upload file to the avatar bucket. Returns the public object URL."""
    bucket = get_bucket()
    blob = bucket.blob(path)
    blob.upload_from_string(file_bytes, content_type=content_type)
    return f"https://storage.googleapis.com/{bucket.name}/{path}"


def delete_file(path: str) -> None:
    """Delete a file from the avatar bucket; a missing object is not an error."""
    from google.api_core.exceptions import NotFound

    bucket = get_bucket()
    blob = bucket.blob(path)
    try:
        blob.delete()
    except NotFound:
        pass


def object_path_from_url(url: str) -> str | None:
    """Inverse of the URL returned by :func:`upload_file`."""
    marker = f"https://storage.googleapis.com/{get_settings().GCS_BUCKET_NAME}/"
    if url.startswith(marker):
        return url[len(marker):]
    return None
