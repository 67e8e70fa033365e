def has_extension(file_name: str, extensions) -> bool:
    return any(file_name.lower().endswith(ext.lower()) for ext in extensions)


def filter_by_extension(paths: list[str], extensions) -> list[str]:
    """Keep only the paths ending in one of ``extensions``, preserving order."""
    return [p for p in paths if has_extension(p, extensions)]
