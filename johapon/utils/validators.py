"""
Input Validation Utilities

FLOW OVERVIEW
- validate_email(email)
  • Syntax and length checks; returns the lowercased value.
- validate_password_strength(password)
  • Length and character variety for the system admin password.
- validate_name(name)
  • Member name: 1..50 characters, no markup.
- validate_phone_number(phone)
  • Korean mobile/landline numbers; returns the hyphenated form (010-1234-5678).
- validate_slug(slug)
  • Tenant slug: [a-z0-9_-], 2..50 characters, case-insensitive.
- validate_share_ratio(value)
  • Ownership share percentage in 0..100.
- sanitize_input(input, max_length)
  • Trim, bound length, remove null bytes, normalize line endings.
"""

import re
from typing import Optional, Any
from dataclasses import dataclass


@dataclass
class ValidationResult:
    """Result of validation operation"""
    is_valid: bool
    error_message: Optional[str] = None
    sanitized_value: Optional[Any] = None


class InputValidator:
    """Input validation for registration, admin and conflict-resolution payloads"""

    EMAIL_PATTERN = re.compile(
        r'^[a-zA-Z0-9.!#$%&\'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$'
    )

    SLUG_PATTERN = re.compile(r'^[a-z0-9_-]+$', re.IGNORECASE)

    # 010-1234-5678, 01012345678, 02-123-4567, 031-1234-5678
    PHONE_PATTERN = re.compile(r'^(01[016789]|02|0[3-6][1-5]|070)(\d{3,4})(\d{4})$')

    XSS_PATTERNS = [
        r'<script[^>]*>.*?</script>',
        r'javascript:',
        r'on\w+\s*=',
        r'<iframe[^>]*>',
        r'<svg[^>]*>',
        r'data:text/html',
        r'vbscript:',
    ]

    @classmethod
    def validate_email(cls, email: str) -> ValidationResult:
        """
        Validate email address

        Args:
            email: Email address to validate

        Returns:
            ValidationResult with validation status and sanitized value
        """
        if not email or not isinstance(email, str):
            return ValidationResult(False, "Email must be a non-empty string")

        email = email.strip()
        if email == "":
            return ValidationResult(False, "Email cannot be empty")

        if len(email) > 254:
            return ValidationResult(False, "Email address too long (max 254 characters)")

        if not cls.EMAIL_PATTERN.match(email):
            return ValidationResult(False, "Invalid email format")

        local_part, domain = email.split('@')
        if len(local_part) > 64:
            return ValidationResult(False, "Email local part too long (max 64 characters)")

        if local_part.startswith('.') or local_part.endswith('.') or '..' in local_part:
            return ValidationResult(False, "Invalid email format")

        if '..' in domain:
            return ValidationResult(False, "Domain cannot contain consecutive dots")

        return ValidationResult(True, sanitized_value=email.lower())

    @classmethod
    def validate_password_strength(cls, password: str) -> ValidationResult:
        """
        Validate password strength requirements

        Args:
            password: Password to validate

        Returns:
            ValidationResult with validation status
        """
        if not password or not isinstance(password, str):
            return ValidationResult(False, "Password must be a non-empty string")

        if len(password) < 8:
            return ValidationResult(False, "Password must be at least 8 characters long")

        if len(password) > 72:
            # bcrypt only looks at the first 72 bytes
            return ValidationResult(False, "Password too long (max 72 characters)")

        has_upper = any(c.isupper() for c in password)
        has_lower = any(c.islower() for c in password)
        has_digit = any(c.isdigit() for c in password)

        if not (has_upper and has_lower and has_digit):
            return ValidationResult(False, "Password must contain uppercase, lowercase, and numeric characters")

        return ValidationResult(True)

    @classmethod
    def validate_name(cls, name: str) -> ValidationResult:
        if not name or not isinstance(name, str):
            return ValidationResult(False, "이름을 입력해주세요.")

        name = cls.sanitize_input(name, max_length=100)
        if not name:
            return ValidationResult(False, "이름을 입력해주세요.")

        if len(name) > 50:
            return ValidationResult(False, "이름은 50자 이하로 입력해주세요.")

        if cls._contains_xss(name) or '<' in name or '>' in name:
            return ValidationResult(False, "이름에 사용할 수 없는 문자가 포함되어 있습니다.")

        return ValidationResult(True, sanitized_value=name)

    @classmethod
    def validate_phone_number(cls, phone: str) -> ValidationResult:
        """Accepts digits with optional hyphens/spaces and returns the hyphenated form"""
        if not phone or not isinstance(phone, str):
            return ValidationResult(False, "전화번호를 입력해주세요.")

        digits = re.sub(r'[\s-]', '', phone.strip())
        if not digits.isdigit():
            return ValidationResult(False, "전화번호 형식이 올바르지 않습니다.")

        match = cls.PHONE_PATTERN.match(digits)
        if not match:
            return ValidationResult(False, "전화번호 형식이 올바르지 않습니다.")

        return ValidationResult(True, sanitized_value='-'.join(match.groups()))

    @classmethod
    def validate_slug(cls, slug: str) -> ValidationResult:
        if not slug or not isinstance(slug, str):
            return ValidationResult(False, "Slug must be a non-empty string")

        if len(slug) < 2 or len(slug) > 50:
            return ValidationResult(False, "Slug must be between 2 and 50 characters")

        if not cls.SLUG_PATTERN.match(slug):
            return ValidationResult(False, "Slug may only contain letters, digits, '_' and '-'")

        return ValidationResult(True, sanitized_value=slug)

    @classmethod
    def validate_share_ratio(cls, value) -> ValidationResult:
        if value is None or isinstance(value, bool):
            return ValidationResult(False, "지분율은 숫자여야 합니다.")

        try:
            ratio = float(value)
        except (TypeError, ValueError):
            return ValidationResult(False, "지분율은 숫자여야 합니다.")

        if ratio < 0 or ratio > 100:
            return ValidationResult(False, "지분율은 0에서 100 사이여야 합니다.")

        return ValidationResult(True, sanitized_value=ratio)

    @classmethod
    def sanitize_input(cls, input_string: str, max_length: int = 1000) -> str:
        """
        Sanitize user input

        Args:
            input_string: Input string to sanitize
            max_length: Maximum allowed length

        Returns:
            Sanitized string
        """
        if not input_string:
            return ""

        sanitized = str(input_string).strip()

        if len(sanitized) > max_length:
            sanitized = sanitized[:max_length]

        sanitized = sanitized.replace('\x00', '')
        sanitized = sanitized.replace('\r\n', '\n').replace('\r', '\n')

        return sanitized

    @classmethod
    def _contains_xss(cls, text: str) -> bool:
        text_lower = text.lower()
        for pattern in cls.XSS_PATTERNS:
            if re.search(pattern, text_lower, re.IGNORECASE):
                return True
        return False


def validate_email(email: str) -> ValidationResult:
    return InputValidator.validate_email(email)


def validate_password_strength(password: str) -> ValidationResult:
    return InputValidator.validate_password_strength(password)


def validate_name(name: str) -> ValidationResult:
    return InputValidator.validate_name(name)


def validate_phone_number(phone: str) -> ValidationResult:
    return InputValidator.validate_phone_number(phone)


def validate_slug(slug: str) -> ValidationResult:
    return InputValidator.validate_slug(slug)


def validate_share_ratio(value) -> ValidationResult:
    return InputValidator.validate_share_ratio(value)


def sanitize_input(input_string: str, max_length: int = 1000) -> str:
    return InputValidator.sanitize_input(input_string, max_length)
