from shotcache.storage.storage import BlobStore, StoreError
from shotcache.storage.s3_storage import S3BlobStore, create_s3_client
