from functools import lru_cache

import boto3

from pdfstore.config import settings


@lru_cache(maxsize=1)
def get_s3_client():
    return boto3.client(
        "s3",
        endpoint_url=f"https://{settings.R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=settings.R2_ACCESS_KEY_ID,
        aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
        region_name="auto"
    )


def to_presigned_url(key: str, expires: int, filename: str = None) -> str:
    params = {"Bucket": settings.R2_BUCKET_NAME, "Key": key}
    if filename:
        params["ResponseContentDisposition"] = f'attachment; filename="{filename}"'

    return get_s3_client().generate_presigned_url(
        "get_object",
        Params=params,
        ExpiresIn=expires
    )
