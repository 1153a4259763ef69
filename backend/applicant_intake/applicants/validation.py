"""Submission validation.

``validate_submission`` is a pure function: it takes the raw form values and
returns either the cleaned fields or the list of per-field errors. Each field
has its own check so they can be tested (and reused) in isolation. Nothing
here touches the database, the filesystem, or the HTTP layer.
"""

from dataclasses import dataclass, field
from pathlib import PurePosixPath, PureWindowsPath

from email_validator import EmailNotValidError, validate_email

from .schemas import FieldError, ResumeUpload, SubmissionInput, ValidatedSubmission

# HTML-significant characters and their entity replacements.
_ESCAPE_TABLE = str.maketrans(
    {
        "&": "&amp;",
        '"': "&quot;",
        "'": "&#x27;",
        "<": "&lt;",
        ">": "&gt;",
        "/": "&#x2F;",
        "\\": "&#x5C;",
        "`": "&#96;",
    }
)

# Provider domains with their own canonical local-part or domain form.
_GMAIL_DOMAINS = {"gmail.com", "googlemail.com"}
_ICLOUD_DOMAINS = {"icloud.com", "me.com"}
_OUTLOOK_DOMAINS = {
    "hotmail.at", "hotmail.be", "hotmail.ca", "hotmail.cl", "hotmail.co.il",
    "hotmail.co.nz", "hotmail.co.th", "hotmail.co.uk", "hotmail.com",
    "hotmail.com.ar", "hotmail.com.au", "hotmail.com.br", "hotmail.com.gr",
    "hotmail.com.mx", "hotmail.com.pe", "hotmail.com.tr", "hotmail.com.vn",
    "hotmail.cz", "hotmail.de", "hotmail.dk", "hotmail.es", "hotmail.fr",
    "hotmail.hu", "hotmail.id", "hotmail.ie", "hotmail.in", "hotmail.it",
    "hotmail.jp", "hotmail.kr", "hotmail.lv", "hotmail.my", "hotmail.ph",
    "hotmail.pt", "hotmail.sa", "hotmail.sg", "hotmail.sk",
    "live.be", "live.co.uk", "live.com", "live.com.ar", "live.com.mx",
    "live.de", "live.es", "live.eu", "live.fr", "live.it", "live.nl",
    "msn.com",
    "outlook.at", "outlook.be", "outlook.cl", "outlook.co.il", "outlook.co.nz",
    "outlook.co.th", "outlook.com", "outlook.com.ar", "outlook.com.au",
    "outlook.com.br", "outlook.com.gr", "outlook.com.pe", "outlook.com.tr",
    "outlook.com.vn", "outlook.cz", "outlook.de", "outlook.dk", "outlook.es",
    "outlook.fr", "outlook.hu", "outlook.id", "outlook.ie", "outlook.in",
    "outlook.it", "outlook.jp", "outlook.kr", "outlook.lv", "outlook.my",
    "outlook.ph", "outlook.pt", "outlook.sa", "outlook.sg", "outlook.sk",
    "passport.com",
}
_YAHOO_DOMAINS = {
    "rocketmail.com", "yahoo.ca", "yahoo.co.uk", "yahoo.com", "yahoo.de",
    "yahoo.fr", "yahoo.in", "yahoo.it", "ymail.com",
}
_YANDEX_DOMAINS = {"yandex.ru", "yandex.ua", "yandex.kz", "yandex.com", "yandex.by", "ya.ru"}


@dataclass
class ValidationResult:
    value: ValidatedSubmission | None = None
    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.value is not None and not self.errors


class _Invalid(Exception):
    def __init__(self, msg: str) -> None:
        super().__init__(msg)
        self.msg = msg


def escape(value: str) -> str:
    """Replace HTML-significant characters with their entities."""
    return value.translate(_ESCAPE_TABLE)


def normalize_email(address: str) -> str | None:
    """Canonical form used for storage and uniqueness.

    Lowercases the whole address, then applies provider rules:

    - Gmail / Googlemail: drop dots and ``+tag``, domain becomes ``gmail.com``
    - iCloud, Outlook/Hotmail/Live: drop ``+tag``
    - Yahoo: drop the last ``-tag``
    - Yandex: domain becomes ``yandex.ru``

    Returns None when a provider rule leaves nothing of the local part
    (e.g. ``+jobs@gmail.com``).
    """
    local, _, domain = address.strip().rpartition("@")
    local = local.lower()
    domain = domain.lower()

    if domain in _GMAIL_DOMAINS:
        local = local.split("+", 1)[0].replace(".", "")
        domain = "gmail.com"
    elif domain in _ICLOUD_DOMAINS or domain in _OUTLOOK_DOMAINS:
        local = local.split("+", 1)[0]
    elif domain in _YAHOO_DOMAINS:
        parts = local.split("-")
        local = "-".join(parts[:-1]) if len(parts) > 1 else parts[0]
    elif domain in _YANDEX_DOMAINS:
        domain = "yandex.ru"

    if not local:
        return None
    return f"{local}@{domain}"


def check_required_text(raw: str, label: str) -> str:
    value = raw.strip()
    if not value:
        raise _Invalid(f"{label} is required")
    return escape(value)


def check_email(raw: str) -> str:
    candidate = raw.strip()
    if not candidate:
        raise _Invalid("Email is required")
    try:
        parsed = validate_email(candidate, check_deliverability=False)
    except EmailNotValidError:
        raise _Invalid("Invalid email address") from None
    normalized = normalize_email(parsed.normalized)
    if normalized is None:
        raise _Invalid("Invalid email address")
    return normalized


def safe_filename(filename: str) -> str:
    """Basename of a client-supplied filename, with any directory part dropped."""
    return PurePosixPath(PureWindowsPath(filename).name).name.strip()


def check_resume(
    resume: ResumeUpload | None,
    allowed_extensions: tuple[str, ...] | list[str] = (),
    max_bytes: int = 0,
) -> str:
    if resume is None:
        raise _Invalid("Resume file is required")
    name = safe_filename(resume.filename)
    if not name or name in {".", ".."}:
        raise _Invalid("Resume file is required")
    if allowed_extensions:
        suffix = PurePosixPath(name).suffix.lower()
        if suffix not in allowed_extensions:
            raise _Invalid(f"Resume must be one of: {', '.join(allowed_extensions)}")
    if max_bytes and resume.size is not None and resume.size > max_bytes:
        raise _Invalid(f"Resume exceeds {max_bytes} bytes")
    return name


def validate_submission(
    data: SubmissionInput,
    allowed_extensions: tuple[str, ...] | list[str] = (),
    max_bytes: int = 0,
) -> ValidationResult:
    """Run every field check and collect all failures, not only the first."""
    errors: list[FieldError] = []
    cleaned: dict[str, str] = {}

    checks = [
        ("name", "name", data.name, lambda: check_required_text(data.name, "Name")),
        ("phone_no", "phoneNo", data.phone_no, lambda: check_required_text(data.phone_no, "Phone number")),
        ("email", "email", data.email, lambda: check_email(data.email)),
        (
            "resume_filename",
            "resume",
            data.resume.filename if data.resume else "",
            lambda: check_resume(data.resume, allowed_extensions, max_bytes),
        ),
    ]
    for key, path, raw, check in checks:
        try:
            cleaned[key] = check()
        except _Invalid as exc:
            errors.append(FieldError(value=raw, msg=exc.msg, path=path))

    if errors:
        return ValidationResult(errors=errors)
    return ValidationResult(value=ValidatedSubmission(**cleaned))
