"""Small value normalizers shared by the settings validators."""


def to_uppercase(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip().upper()


def to_lowercase(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip().lower()


def blank_to_none(value: str | None) -> str | None:
    """
    Treat an empty / whitespace-only env var as "not set".

    `DATABASE_URL_OVERRIDE=` in a .env file would otherwise produce an empty URL.
    """
    if value is None:
        return None
    value = value.strip()
    return value or None
