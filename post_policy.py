"""AWS Signature Version 4 signing for S3 browser-style POST uploads.

The policy document and its signature are pure functions of the upload
config, the object key, the content type and the upload time. The caller
reads the clock once and passes the timestamp in.
"""
import base64
import dataclasses
import datetime
import hashlib
import hmac
import json
import logging
from typing import List, Tuple, Union

from upload_config import UploadConfig

logger = logging.getLogger(__name__)

ALGORITHM = 'AWS4-HMAC-SHA256'
SERVICE = 's3'
SCOPE_TERMINATOR = 'aws4_request'
POLICY_LIFETIME = datetime.timedelta(milliseconds=300_000)

FormFields = List[Tuple[str, str]]


# --- HMAC helpers ---

def hmac_sha256(key: Union[str, bytes], msg: Union[str, bytes]) -> bytes:
    """HMAC-SHA256 over UTF-8 encoded inputs, returning raw bytes."""
    if isinstance(key, str):
        key = key.encode('utf-8')
    if isinstance(msg, str):
        msg = msg.encode('utf-8')
    return hmac.new(key, msg, hashlib.sha256).digest()


def get_signature_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """Derive the SigV4 signing key: kSecret -> kDate -> kRegion -> kService -> kSigning."""
    k_date = hmac_sha256(f'AWS4{secret_key}', date_stamp)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    return hmac_sha256(k_service, SCOPE_TERMINATOR)


# --- Timestamps ---

def _as_utc(timestamp: datetime.datetime) -> datetime.datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=datetime.timezone.utc)
    return timestamp.astimezone(datetime.timezone.utc)


def format_iso8601(timestamp: datetime.datetime) -> str:
    """Format an instant as ISO-8601 UTC with a trailing 'Z'.

    Whole seconds carry no fraction, whole milliseconds carry three digits,
    anything finer carries six.
    """
    timestamp = _as_utc(timestamp)
    base = timestamp.strftime('%Y-%m-%dT%H:%M:%S')
    micros = timestamp.microsecond
    if micros == 0:
        return f'{base}Z'
    if micros % 1000 == 0:
        return f'{base}.{micros // 1000:03d}Z'
    return f'{base}.{micros:06d}Z'


# --- Policy document ---

@dataclasses.dataclass(frozen=True)
class PolicyDocument:
    expiration_time: datetime.datetime
    bucket: str
    key: str
    acl: str
    success_action_status: int
    content_type: str
    amz_credential_scope: str
    amz_algorithm: str
    amz_date: str
    yyyymmdd: str


def build_policy(
    upload_time: datetime.datetime,
    content_type: str,
    key: str,
    config: UploadConfig,
) -> PolicyDocument:
    """Describe the constraints a single POST upload must satisfy."""
    upload_time = _as_utc(upload_time)
    yyyymmdd = upload_time.date().isoformat().replace('-', '')
    credential_scope = '/'.join([
        config.access_key,
        yyyymmdd,
        config.region,
        SERVICE,
        SCOPE_TERMINATOR,
    ])

    return PolicyDocument(
        expiration_time=upload_time + POLICY_LIFETIME,
        bucket=config.bucket,
        key=key,
        acl=config.acl,
        success_action_status=config.success_action_status,
        content_type=content_type,
        amz_credential_scope=credential_scope,
        amz_algorithm=ALGORITHM,
        amz_date=f'{yyyymmdd}T000000Z',
        yyyymmdd=yyyymmdd,
    )


def encode_policy(doc: PolicyDocument) -> str:
    """Serialize the policy as compact JSON and base64 encode it.

    S3 verifies the signature against these exact bytes, so the field order
    and separators must not change.
    """
    policy = {
        'expiration': format_iso8601(doc.expiration_time),
        'conditions': [
            {'bucket': doc.bucket},
            {'key': doc.key},
            {'acl': doc.acl},
            {'success_action_status': str(doc.success_action_status)},
            {'Content-Type': doc.content_type},
            {'x-amz-credential': doc.amz_credential_scope},
            {'x-amz-algorithm': doc.amz_algorithm},
            {'x-amz-date': doc.amz_date},
        ],
    }
    policy_json = json.dumps(policy, separators=(',', ':'), ensure_ascii=False)
    logger.debug('Policy document: %s', policy_json)
    return base64.b64encode(policy_json.encode('utf-8')).decode('ascii')


def sign(base64_policy: str, doc: PolicyDocument, config: UploadConfig) -> str:
    """Sign the base64 policy with the key scoped to the policy's day and region."""
    signing_key = get_signature_key(config.secret_key, doc.yyyymmdd, config.region, SERVICE)
    return hmac.new(signing_key, base64_policy.encode('utf-8'), hashlib.sha256).hexdigest()


def generate_form_fields(
    key: str,
    content_type: str,
    config: UploadConfig,
    upload_time: datetime.datetime,
) -> FormFields:
    """Build the ordered multipart form fields that authorize an upload.

    The file part itself is not included; it must be sent after these.
    """
    doc = build_policy(upload_time, content_type, key, config)
    base64_policy = encode_policy(doc)
    signature = sign(base64_policy, doc, config)

    logger.debug('Signed POST policy for key %s with scope %s', key, doc.amz_credential_scope)

    return [
        ('key', key),
        ('acl', doc.acl),
        ('success_action_status', str(doc.success_action_status)),
        ('Content-Type', doc.content_type),
        ('X-Amz-Credential', doc.amz_credential_scope),
        ('X-Amz-Algorithm', doc.amz_algorithm),
        ('X-Amz-Date', doc.amz_date),
        ('Policy', base64_policy),
        ('X-Amz-Signature', signature),
    ]
