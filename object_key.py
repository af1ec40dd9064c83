def build_key(prefix: str, file_name: str) -> str:
    """Join an optional path prefix and a file name into an S3 object key.

    The prefix loses its leading and trailing slashes, the file name only its
    leading ones. A prefix that is empty (or nothing but slashes) yields the
    bare file name.
    """
    prefix = prefix.strip('/')
    file_name = file_name.lstrip('/')
    if not prefix:
        return file_name
    return f'{prefix}/{file_name}'
