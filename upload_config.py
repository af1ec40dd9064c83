import dataclasses
import logging
import os
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_HOST = 's3.amazonaws.com'
DEFAULT_ACL = 'public-read'
DEFAULT_SUCCESS_ACTION_STATUS = 201


class ConfigError(ValueError):
    """Raised when an upload configuration cannot be assembled."""


@dataclasses.dataclass(frozen=True)
class UploadConfig:
    """Credentials and bucket settings shared by every upload.

    Instances are immutable; the ``with_*`` methods return a modified copy.
    ``secret_key`` is kept out of ``repr()`` so it never ends up in logs.
    """

    access_key: str
    secret_key: str = dataclasses.field(repr=False)
    bucket: str
    region: str
    host: str = DEFAULT_HOST
    prefix: str = ''
    acl: str = DEFAULT_ACL
    success_action_status: int = DEFAULT_SUCCESS_ACTION_STATUS

    @property
    def upload_url(self) -> str:
        return f'https://{self.bucket}.{self.host}'

    def with_host(self, host: str) -> 'UploadConfig':
        return dataclasses.replace(self, host=host)

    def with_prefix(self, prefix: str) -> 'UploadConfig':
        return dataclasses.replace(self, prefix=prefix)

    def with_acl(self, acl: str) -> 'UploadConfig':
        return dataclasses.replace(self, acl=acl)

    def with_success_action_status(self, status: int) -> 'UploadConfig':
        return dataclasses.replace(self, success_action_status=status)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'UploadConfig':
        """Build a config from AWS_* / S3_* environment variables."""
        if environ is None:
            environ = os.environ

        def required(name: str) -> str:
            value = environ.get(name)
            if not value:
                raise ConfigError(f'Missing required environment variable {name}')
            return value

        status_raw = environ.get('S3_SUCCESS_ACTION_STATUS')
        if status_raw:
            try:
                status = int(status_raw)
            except ValueError as e:
                raise ConfigError(
                    f'S3_SUCCESS_ACTION_STATUS must be an integer, got {status_raw!r}'
                ) from e
        else:
            status = DEFAULT_SUCCESS_ACTION_STATUS

        config = cls(
            access_key=required('AWS_ACCESS_KEY_ID'),
            secret_key=required('AWS_SECRET_ACCESS_KEY'),
            bucket=required('S3_BUCKET'),
            region=required('AWS_REGION'),
            host=environ.get('S3_HOST') or DEFAULT_HOST,
            prefix=environ.get('S3_PREFIX', ''),
            acl=environ.get('S3_ACL') or DEFAULT_ACL,
            success_action_status=status,
        )
        logger.debug('Loaded upload config from environment: %r', config)
        return config
