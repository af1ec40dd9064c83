import argparse
import dataclasses
import datetime
import logging
import mimetypes
import os
import sys
from typing import Callable, List, Optional

import requests

from object_key import build_key
from post_policy import generate_form_fields
from upload_config import ConfigError, UploadConfig
from upload_errors import (
    MissingResponseHeaderError,
    RejectedStatusError,
    TransportError,
    UploadError,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = 'application/octet-stream'


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclasses.dataclass(frozen=True)
class UploadResult:
    etag: str
    location: str
    bucket: str
    key: str


class S3PostUploader:
    def __init__(
        self,
        config: UploadConfig,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], datetime.datetime] = utc_now,
    ):
        self.config = config
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.clock = clock

    def upload(
        self,
        file_name: str,
        content_type: str,
        data: bytes,
        upload_time: Optional[datetime.datetime] = None,
    ) -> UploadResult:
        """Upload bytes to the configured bucket with a signed POST policy."""
        if upload_time is None:
            upload_time = self.clock()

        key = build_key(self.config.prefix, file_name)
        fields = generate_form_fields(key, content_type, self.config, upload_time)
        files = [('file', (file_name, data, content_type))]

        response = self.make_request(self.config.upload_url, fields, files)

        etag = response.headers.get('ETag')
        if etag is None:
            raise MissingResponseHeaderError('ETag')
        location = response.headers.get('Location')
        if location is None:
            raise MissingResponseHeaderError('Location')

        result = UploadResult(
            etag=etag.strip('"'),
            location=location,
            bucket=self.config.bucket,
            key=key,
        )
        logger.info('Uploaded %s to %s (ETag %s)', key, result.location, result.etag)
        return result

    def upload_file(
        self,
        file_path: str,
        content_type: Optional[str] = None,
        file_name: Optional[str] = None,
        upload_time: Optional[datetime.datetime] = None,
    ) -> UploadResult:
        """Upload a local file, guessing its content type from the name."""
        if file_name is None:
            file_name = os.path.basename(file_path)
        if content_type is None:
            content_type = mimetypes.guess_type(file_name)[0] or DEFAULT_CONTENT_TYPE

        with open(file_path, 'rb') as f:
            data = f.read()

        logger.debug('Read %d bytes from %s', len(data), file_path)
        return self.upload(file_name, content_type, data, upload_time)

    def make_request(self, url: str, fields: List, files: List) -> requests.Response:
        """POST the multipart form and return the successful response."""
        logger.debug('Making POST request to %s', url)
        for name, value in fields:
            logger.debug('%s: %s', name, value)

        try:
            response = self.session.post(url, data=fields, files=files, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f'POST to {url} failed: {e}') from e

        if not 200 <= response.status_code < 300:
            logger.debug('Response body: %s', response.text)
            raise RejectedStatusError(response.status_code, response.text)
        return response


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Upload a file to S3 with a signed POST policy.',
        epilog='Credentials are read from AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY.',
    )
    parser.add_argument('file', help='local file to upload')
    parser.add_argument('--bucket', help='target bucket (default: $S3_BUCKET)')
    parser.add_argument('--region', help='bucket region (default: $AWS_REGION)')
    parser.add_argument('--host', help='S3 endpoint host (default: $S3_HOST or s3.amazonaws.com)')
    parser.add_argument('--prefix', help='object key prefix (default: $S3_PREFIX)')
    parser.add_argument('--acl', help='canned ACL (default: $S3_ACL or public-read)')
    parser.add_argument('--success-action-status', type=int, help='HTTP status S3 should answer with')
    parser.add_argument('--content-type', help='content type (default: guessed from the file name)')
    parser.add_argument('--key-name', help='file name to use in the object key')
    parser.add_argument('--timeout', type=float, default=30.0, help='request timeout in seconds')
    parser.add_argument('-v', '--verbose', action='store_true', help='enable debug logging')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    environ = dict(os.environ)
    overrides = {
        'S3_BUCKET': args.bucket,
        'AWS_REGION': args.region,
        'S3_HOST': args.host,
        'S3_PREFIX': args.prefix,
        'S3_ACL': args.acl,
    }
    environ.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = UploadConfig.from_env(environ)
        if args.success_action_status is not None:
            config = config.with_success_action_status(args.success_action_status)
        uploader = S3PostUploader(config, timeout=args.timeout)
        result = uploader.upload_file(args.file, content_type=args.content_type, file_name=args.key_name)
    except (ConfigError, UploadError, OSError) as e:
        logger.error('Upload failed: %s', e)
        return 1

    print(result.location)
    print(f'ETag: {result.etag}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
