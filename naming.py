"""
Naming normalization and validation.

Turns free-text form fields into the NCNG canonical title:

    NCNG-[Portfolio]-(AGOL|PORTAL)-[Purpose]-[Owner](-FY##)?

- Portfolio and Owner: uppercase alphanumeric
- Purpose: PascalCase alphanumeric, starting with a letter
- FY##: optional fiscal-year suffix

Pure functions only. No logging, no I/O.
"""

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum

# =============================================================================
# PATTERNS
# =============================================================================

# Unanchored: match with fullmatch() so a trailing newline is rejected
TITLE_PATTERN = re.compile(
    r'NCNG-[A-Z0-9]+-(AGOL|PORTAL)-[A-Za-z][A-Za-z0-9]+-[A-Z0-9]+(?:-FY[0-9]{2})?'
)
TITLE_GRAMMAR = "NCNG-[Portfolio]-(AGOL|PORTAL)-[Purpose]-[Owner]-[FY##?]"

FISCAL_YEAR_PATTERN = re.compile(r'FY[0-9]{2}')

_NON_UPPER_ALNUM = re.compile(r'[^A-Z0-9]')
_NON_ALNUM_RUN = re.compile(r'[^A-Za-z0-9]+')
_LEADING_NON_LETTERS = re.compile(r'^[^A-Za-z]+')

TITLE_PREFIX = "NCNG"

# Conventional folder for provisioned copies; also the default new-folder name
DEFAULT_FOLDER_TITLE = "NCNG-AGOL-Maps"

# Fiscal year starts October 1
FISCAL_YEAR_START_MONTH = 10


class Environment(Enum):
    """Platform the copy lives on."""
    AGOL = "AGOL"
    PORTAL = "PORTAL"


# =============================================================================
# NORMALIZERS
# =============================================================================

def normalize_uppercase_alnum(text: str | None) -> str:
    """
    Uppercase and keep only [A-Z0-9].

    Examples:
        "sad" -> "SAD"
        "J-3 ops" -> "J3OPS"
    """
    return _NON_UPPER_ALNUM.sub("", (text or "").upper())


def normalize_pascal_alnum(text: str | None) -> str:
    """
    PascalCase on runs of non-alphanumerics, then drop leading non-letters.

    Only the first letter of each token is uppercased; the rest of the
    token is kept as typed, so an already-PascalCase value is unchanged.
    After the leading strip the new first letter is uppercased too, which
    keeps the function idempotent for inputs like "3d viewer".

    Examples:
        "collab ops" -> "CollabOps"
        "3d viewer" -> "DViewer"
    """
    tokens = [t for t in _NON_ALNUM_RUN.split(text or "") if t]
    pascal = _LEADING_NON_LETTERS.sub("", "".join(t[0].upper() + t[1:] for t in tokens))
    return pascal[:1].upper() + pascal[1:]


def normalize_fiscal_year(text: str | None) -> str:
    """Trim and uppercase a typed fiscal year ("fy25 " -> "FY25")."""
    return (text or "").strip().upper()


def normalize_tags(text: str | None) -> str:
    """Comma-split, trim, drop empties, re-join ("a, ,b " -> "a,b")."""
    return ",".join(t.strip() for t in (text or "").split(",") if t.strip())


# =============================================================================
# TITLE
# =============================================================================

def build_canonical_title(
    portfolio: str,
    environment: Environment | str,
    purpose: str,
    owner: str,
    fiscal_year: str | None = None,
) -> str:
    """
    Compose the canonical title from raw form fields.

    The fiscal-year suffix is added only when the value is exactly FY##.
    Anything else is silently dropped (not an error).

    Example:
        build_canonical_title("sad", "AGOL", "collab ops", "geo", "FY25")
        -> "NCNG-SAD-AGOL-CollabOps-GEO-FY25"
    """
    env = environment.value if isinstance(environment, Environment) else environment
    year = f"-{fiscal_year}" if fiscal_year and FISCAL_YEAR_PATTERN.fullmatch(fiscal_year) else ""
    return (
        f"{TITLE_PREFIX}-{normalize_uppercase_alnum(portfolio)}-{env}"
        f"-{normalize_pascal_alnum(purpose)}-{normalize_uppercase_alnum(owner)}{year}"
    )


def is_valid_title(title: str | None) -> bool:
    """Check a title against the NCNG naming grammar."""
    return bool(title) and TITLE_PATTERN.fullmatch(title) is not None


def default_fiscal_year(current_date: date | None = None) -> str:
    """
    Fiscal year label for a date. FY runs Oct 1 – Sep 30.

    Examples:
        2025-09-30 -> "FY25"
        2025-10-01 -> "FY26"
    """
    today = current_date or date.today()
    fy = today.year + 1 if today.month >= FISCAL_YEAR_START_MONTH else today.year
    return f"FY{str(fy)[-2:]}"


@dataclass(frozen=True)
class NamingFields:
    """
    Raw naming inputs as the user typed them.

    The canonical title is always derived, never stored.
    """
    portfolio: str = ""
    environment: Environment = Environment.AGOL
    purpose: str = ""
    owner: str = ""
    fiscal_year: str = ""

    @property
    def title(self) -> str:
        return build_canonical_title(
            self.portfolio, self.environment, self.purpose, self.owner, self.fiscal_year
        )

    @property
    def title_valid(self) -> bool:
        return is_valid_title(self.title)


def preview_title(
    portfolio: str,
    purpose: str,
    owner: str,
    environment: str = "AGOL",
    fiscal_year: str | None = None,
) -> dict[str, object]:
    """Title preview for surfaces. fiscal_year None means the current fiscal year."""
    fy = normalize_fiscal_year(fiscal_year) if fiscal_year is not None else default_fiscal_year()
    title = build_canonical_title(portfolio, environment.strip().upper(), purpose, owner, fy)
    return {"title": title, "valid": is_valid_title(title), "grammar": TITLE_GRAMMAR}
