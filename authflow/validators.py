"""
Input validation and password strength scoring.

Every function here is pure: no I/O, no hidden state, safe to call from
any presentation layer or test in isolation.
"""

import re
from dataclasses import dataclass
from typing import Optional

EMAIL_PATTERN = r"[a-zA-Z0-9._%-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"
# Optional leading +, first digit 1-9, 11 to 15 digits in total
PHONE_PATTERN = r"\+?[1-9]\d{10,14}"
CONTACT_RE = re.compile(rf"(?:{EMAIL_PATTERN}|{PHONE_PATTERN})", re.ASCII)

LOGIN_PASSWORD_MIN_LENGTH = 6
CREATE_PASSWORD_MIN_LENGTH = 8
NAME_MIN_LENGTH = 2

STRENGTH_CHECKS = (
    re.compile(r".{8,}"),
    re.compile(r"[a-z]"),
    re.compile(r"[A-Z]"),
    re.compile(r"\d", re.ASCII),
    re.compile(r"[^a-zA-Z\d]", re.ASCII),
)

WEAK = "Weak"
MEDIUM = "Medium"
STRONG = "Strong"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a single field check."""
    valid: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(valid=False, error=error)


@dataclass(frozen=True)
class PasswordStrength:
    """Derived strength of a password. Never persisted."""
    score: int
    label: str

    def to_dict(self) -> dict:
        return {"score": self.score, "label": self.label}


@dataclass(frozen=True)
class PasswordRequirements:
    """Checklist shown while creating a password, one flag per rule."""
    min_length: bool
    uppercase: bool
    lowercase: bool
    number: bool

    @property
    def all_met(self) -> bool:
        return self.min_length and self.uppercase and self.lowercase and self.number

    def to_dict(self) -> dict:
        return {
            "min_length": self.min_length,
            "uppercase": self.uppercase,
            "lowercase": self.lowercase,
            "number": self.number,
        }


def validate_contact(value: str) -> ValidationResult:
    """
    Validate an email address or phone number.

    Examples:
        validate_contact("user@example.com") -> valid
        validate_contact("+12345678901") -> valid
        validate_contact("123") -> "Enter a valid email or phone number"
    """
    if not value:
        return ValidationResult.fail("Email or phone is required")

    if not CONTACT_RE.fullmatch(value):
        return ValidationResult.fail("Enter a valid email or phone number")

    return ValidationResult.ok()


def validate_password_create(value: str, required_message: str = "Password is required") -> ValidationResult:
    """Password rule for sign-up and reset: 8+ chars with upper, lower and digit."""
    if not value:
        return ValidationResult.fail(required_message)

    if len(value) < CREATE_PASSWORD_MIN_LENGTH:
        return ValidationResult.fail(
            f"Password must be at least {CREATE_PASSWORD_MIN_LENGTH} characters"
        )

    if not (re.search(r"[a-z]", value) and re.search(r"[A-Z]", value) and re.search(r"\d", value, re.ASCII)):
        return ValidationResult.fail("Password must contain uppercase, lowercase, and number")

    return ValidationResult.ok()


def validate_password_login(value: str) -> ValidationResult:
    """
    Password rule for sign-in.

    Only a minimum length is enforced here, unlike
    validate_password_create.
    """
    if not value:
        return ValidationResult.fail("Password is required")

    if len(value) < LOGIN_PASSWORD_MIN_LENGTH:
        return ValidationResult.fail(
            f"Password must be at least {LOGIN_PASSWORD_MIN_LENGTH} characters"
        )

    return ValidationResult.ok()


def validate_name(value: str) -> ValidationResult:
    """Validate a display name on sign-up."""
    name = (value or "").strip()
    if not name:
        return ValidationResult.fail("Full name is required")

    if len(name) < NAME_MIN_LENGTH:
        return ValidationResult.fail(f"Name must be at least {NAME_MIN_LENGTH} characters")

    return ValidationResult.ok()


def passwords_match(first: str, second: str) -> bool:
    return first == second


def validate_confirmation(
    password: str,
    confirmation: str,
    required_message: str = "Please confirm your password"
) -> ValidationResult:
    """Validate the confirm-password field against the password."""
    if not confirmation:
        return ValidationResult.fail(required_message)

    if not passwords_match(password, confirmation):
        return ValidationResult.fail("Passwords do not match")

    return ValidationResult.ok()


def password_requirements(value: str) -> PasswordRequirements:
    """Which create-password rules ``value`` already satisfies."""
    value = value or ""
    return PasswordRequirements(
        min_length=len(value) >= CREATE_PASSWORD_MIN_LENGTH,
        uppercase=bool(re.search(r"[A-Z]", value)),
        lowercase=bool(re.search(r"[a-z]", value)),
        number=bool(re.search(r"\d", value, re.ASCII)),
    )


def strength_label(score: int) -> str:
    if score < 2:
        return WEAK
    if score < 4:
        return MEDIUM
    return STRONG


def score_strength(value: str) -> PasswordStrength:
    """
    Score a password from 0 to 5.

    One point each for: length >= 8, a lowercase letter, an uppercase
    letter, a digit, and a non-alphanumeric character.

    Examples:
        score_strength("abcdefgh") -> PasswordStrength(2, "Medium")
        score_strength("Abcdef1!") -> PasswordStrength(5, "Strong")
        score_strength("") -> PasswordStrength(0, "Weak")
    """
    value = value or ""
    score = sum(1 for check in STRENGTH_CHECKS if check.search(value))
    return PasswordStrength(score=score, label=strength_label(score))
