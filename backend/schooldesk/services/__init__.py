"""
SchoolDesk Backend — Services Layer
=====================================

What:  Business logic between the routes (HTTP) and the repositories
       (persistence).

Service Inventory:
    - ImageStore (abstract): upload checks + store/delete/resolve_url
    - LocalImageStore:       images on local disk, served by this app
    - S3ImageStore:          images in an S3 bucket, with upload retries
    - SchoolService:         validates, stores images and persists records,
                             keeping each record and its image in step
"""
