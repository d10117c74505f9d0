"""
Input Validation and Security Utilities

FLOW OVERVIEW
- validate_email(email)
  • RFC-like syntax checks and basic security checks; returns sanitized lowercased value.
- validate_password_hash(hash)
  • Enforce bcrypt hash format ($2a$/$2b$/$2y$, 60 chars).
- validate_password(password)
  • Minimum length only (6), bounded above.
- validate_name / validate_nim / validate_group / validate_role
  • Profile fields of users.
- validate_assignment_code / validate_week_number / validate_target_classes / validate_grade
  • Assignment and grading inputs.
- validate_article_title / validate_year / validate_document_filename
  • Article repository inputs.
- validate_iso_datetime / parse_bool
  • Timestamps normalised to naive UTC; form and JSON booleans.
- sanitize_input(input, max_length)
  • Trim, bound length, normalize, and remove null bytes.
"""

import re
from datetime import datetime, timezone
from typing import Optional, Any, List
from dataclasses import dataclass


@dataclass
class ValidationResult:
    """Result of validation operation"""
    is_valid: bool
    error_message: Optional[str] = None
    sanitized_value: Optional[Any] = None


class InputValidator:
    """Input validation for user, article and assignment payloads"""

    # RFC 5322 compliant email regex (simplified but secure)
    EMAIL_PATTERN = re.compile(
        r'^[a-zA-Z0-9.!#$%&\'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$'
    )

    BCRYPT_PATTERN = re.compile(r'^\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}$')
    NIM_PATTERN = re.compile(r'^\d{10}$')
    ASSIGNMENT_CODE_PATTERN = re.compile(r'^[A-Z0-9]{3,4}$')

    GROUPS = ('A', 'B')
    ROLES = ('ADMIN', 'USER')
    DOCUMENT_EXTENSIONS = ('pdf', 'doc', 'docx')
    TRUE_STRINGS = ('true', '1', 'yes', 'on')
    FALSE_STRINGS = ('false', '0', 'no', 'off', '')

    MIN_PASSWORD_LENGTH = 6
    MIN_NAME_LENGTH = 2
    MIN_TITLE_LENGTH = 3
    MIN_WEEK, MAX_WEEK = 1, 20

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
        Validate email address with basic security checks

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

        # Length validation (RFC 5321 limits)
        if len(email) > 254:
            return ValidationResult(False, "Email address too long (max 254 characters)")

        if not cls.EMAIL_PATTERN.match(email):
            return ValidationResult(False, "Invalid email format")

        local_part, domain = email.split('@')
        if len(local_part) > 64:
            return ValidationResult(False, "Email local part too long (max 64 characters)")

        if local_part.startswith('.') or local_part.endswith('.') or '..' in local_part:
            return ValidationResult(False, "Invalid email format")

        if '.' not in domain or '..' in domain:
            return ValidationResult(False, "Invalid email format")

        if cls._contains_xss(email):
            return ValidationResult(False, "Email contains invalid characters")

        return ValidationResult(True, sanitized_value=email.lower())

    @classmethod
    def validate_password_hash(cls, password_hash: str) -> ValidationResult:
        """
        Validate that a stored password hash is a bcrypt hash

        Args:
            password_hash: Password hash to validate

        Returns:
            ValidationResult with validation status
        """
        if not password_hash or not isinstance(password_hash, str):
            return ValidationResult(False, "Password hash must be a non-empty string")

        password_hash = password_hash.strip()
        if not cls.BCRYPT_PATTERN.match(password_hash):
            return ValidationResult(False, "Invalid password hash format: expected a bcrypt hash")

        return ValidationResult(True, sanitized_value=password_hash)

    @classmethod
    def validate_password(cls, password: str) -> ValidationResult:
        """Validate a plaintext password before hashing"""
        if not password or not isinstance(password, str):
            return ValidationResult(False, "Password is required")

        if len(password) < cls.MIN_PASSWORD_LENGTH:
            return ValidationResult(False, f"Password must be at least {cls.MIN_PASSWORD_LENGTH} characters long")

        # bcrypt ignores everything past 72 bytes
        if len(password.encode('utf-8')) > 72:
            return ValidationResult(False, "Password too long (max 72 bytes)")

        return ValidationResult(True, sanitized_value=password)

    @classmethod
    def validate_name(cls, name: str) -> ValidationResult:
        if not name or not isinstance(name, str):
            return ValidationResult(False, "Name is required")

        name = cls.sanitize_input(name, max_length=120)
        if len(name) < cls.MIN_NAME_LENGTH:
            return ValidationResult(False, f"Name must be at least {cls.MIN_NAME_LENGTH} characters long")

        if cls._contains_xss(name):
            return ValidationResult(False, "Name contains invalid characters")

        return ValidationResult(True, sanitized_value=name)

    @classmethod
    def validate_nim(cls, nim) -> ValidationResult:
        """Student numbers are exactly 10 digits"""
        if nim is None or nim == '':
            return ValidationResult(False, "NIM is required")

        nim = str(nim).strip()
        if not cls.NIM_PATTERN.match(nim):
            return ValidationResult(False, "NIM must be exactly 10 digits")

        return ValidationResult(True, sanitized_value=nim)

    @classmethod
    def validate_group(cls, group) -> ValidationResult:
        if not group or not isinstance(group, str):
            return ValidationResult(False, "Group is required")

        group = group.strip().upper()
        if group not in cls.GROUPS:
            return ValidationResult(False, f"Group must be one of {', '.join(cls.GROUPS)}")

        return ValidationResult(True, sanitized_value=group)

    @classmethod
    def validate_role(cls, role) -> ValidationResult:
        if not role or not isinstance(role, str):
            return ValidationResult(False, "Role is required")

        role = role.strip().upper()
        if role not in cls.ROLES:
            return ValidationResult(False, f"Role must be one of {', '.join(cls.ROLES)}")

        return ValidationResult(True, sanitized_value=role)

    @classmethod
    def validate_assignment_code(cls, code) -> ValidationResult:
        """Assignment codes are 3-4 uppercase letters or digits"""
        if not code or not isinstance(code, str):
            return ValidationResult(False, "Assignment code is required")

        code = code.strip().upper()
        if not cls.ASSIGNMENT_CODE_PATTERN.match(code):
            return ValidationResult(False, "Assignment code must be 3-4 uppercase letters or digits")

        return ValidationResult(True, sanitized_value=code)

    @classmethod
    def validate_week_number(cls, week) -> ValidationResult:
        try:
            week = int(week)
        except (TypeError, ValueError):
            return ValidationResult(False, "Week number must be an integer")

        if not cls.MIN_WEEK <= week <= cls.MAX_WEEK:
            return ValidationResult(False, f"Week number must be between {cls.MIN_WEEK} and {cls.MAX_WEEK}")

        return ValidationResult(True, sanitized_value=week)

    @classmethod
    def validate_target_classes(cls, classes) -> ValidationResult:
        if isinstance(classes, str):
            classes = [part for part in classes.split(',') if part.strip()]

        if not classes or not isinstance(classes, (list, tuple)):
            return ValidationResult(False, "At least one target class is required")

        normalized: List[str] = []
        for group in classes:
            result = cls.validate_group(group)
            if not result.is_valid:
                return ValidationResult(False, f"Invalid target class: {group}")
            if result.sanitized_value not in normalized:
                normalized.append(result.sanitized_value)

        return ValidationResult(True, sanitized_value=sorted(normalized))

    @classmethod
    def validate_grade(cls, grade) -> ValidationResult:
        if isinstance(grade, bool):
            return ValidationResult(False, "Grade must be a number")
        try:
            grade = float(grade)
        except (TypeError, ValueError):
            return ValidationResult(False, "Grade must be a number")

        if not 0 <= grade <= 100:
            return ValidationResult(False, "Grade must be between 0 and 100")

        return ValidationResult(True, sanitized_value=grade)

    @classmethod
    def validate_article_title(cls, title) -> ValidationResult:
        if not title or not isinstance(title, str):
            return ValidationResult(False, "Title is required")

        title = cls.sanitize_input(title, max_length=255)
        if len(title) < cls.MIN_TITLE_LENGTH:
            return ValidationResult(False, f"Title must be at least {cls.MIN_TITLE_LENGTH} characters long")

        return ValidationResult(True, sanitized_value=title)

    @classmethod
    def validate_year(cls, year) -> ValidationResult:
        try:
            year = int(year)
        except (TypeError, ValueError):
            return ValidationResult(False, "Year must be an integer")

        if not 1900 <= year <= datetime.utcnow().year + 1:
            return ValidationResult(False, "Year is out of range")

        return ValidationResult(True, sanitized_value=year)

    @classmethod
    def validate_document_filename(cls, filename) -> ValidationResult:
        """Only PDF, DOC and DOCX documents are accepted"""
        if not filename or not isinstance(filename, str) or '.' not in filename:
            return ValidationResult(False, "File must be a PDF, DOC or DOCX document")

        ext = filename.rsplit('.', 1)[-1].lower()
        if ext not in cls.DOCUMENT_EXTENSIONS:
            return ValidationResult(False, "File must be a PDF, DOC or DOCX document")

        return ValidationResult(True, sanitized_value=filename)

    @classmethod
    def validate_iso_datetime(cls, value) -> ValidationResult:
        if not value:
            return ValidationResult(True, sanitized_value=None)
        if isinstance(value, datetime):
            parsed = value
        else:
            try:
                # fromisoformat() rejects the trailing Z browsers send
                parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
            except ValueError:
                return ValidationResult(False, "Date must be an ISO 8601 timestamp")

        # Stored as naive UTC
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return ValidationResult(True, sanitized_value=parsed)

    @classmethod
    def parse_bool(cls, value) -> ValidationResult:
        """Accept JSON booleans and the usual form spellings"""
        if isinstance(value, bool):
            return ValidationResult(True, sanitized_value=value)
        if isinstance(value, int) and value in (0, 1):
            return ValidationResult(True, sanitized_value=bool(value))
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in cls.TRUE_STRINGS:
                return ValidationResult(True, sanitized_value=True)
            if lowered in cls.FALSE_STRINGS:
                return ValidationResult(True, sanitized_value=False)
        return ValidationResult(False, "Value must be true or false")

    @classmethod
    def sanitize_input(cls, input_string: str, max_length: int = 1000) -> str:
        """
        Sanitize user input to prevent injection attacks

        Args:
            input_string: Input string to sanitize
            max_length: Maximum allowed length

        Returns:
            Sanitized string
        """
        if not input_string:
            return ""

        input_string = str(input_string)

        sanitized = input_string.strip()

        if len(sanitized) > max_length:
            sanitized = sanitized[:max_length]

        # Remove null bytes
        sanitized = sanitized.replace('\x00', '')

        # Normalize line endings
        sanitized = sanitized.replace('\r\n', '\n').replace('\r', '\n')

        return sanitized

    @classmethod
    def _contains_xss(cls, text: str) -> bool:
        """Check if text contains XSS patterns"""
        for pattern in cls.XSS_PATTERNS:
            if re.search(pattern, text, re.IGNORECASE):
                return True
        return False


# Convenience functions for common validations
def validate_email(email: str) -> ValidationResult:
    """Validate email address"""
    return InputValidator.validate_email(email)


def validate_password_hash(password_hash: str) -> ValidationResult:
    """Validate password hash"""
    return InputValidator.validate_password_hash(password_hash)


def validate_password(password: str) -> ValidationResult:
    """Validate plaintext password"""
    return InputValidator.validate_password(password)


def validate_name(name: str) -> ValidationResult:
    return InputValidator.validate_name(name)


def validate_nim(nim) -> ValidationResult:
    return InputValidator.validate_nim(nim)


def validate_group(group) -> ValidationResult:
    return InputValidator.validate_group(group)


def validate_role(role) -> ValidationResult:
    return InputValidator.validate_role(role)


def validate_assignment_code(code) -> ValidationResult:
    return InputValidator.validate_assignment_code(code)


def validate_grade(grade) -> ValidationResult:
    return InputValidator.validate_grade(grade)


def sanitize_input(input_string: str, max_length: int = 1000) -> str:
    """Sanitize user input"""
    return InputValidator.sanitize_input(input_string, max_length)


def parse_bool(value) -> ValidationResult:
    return InputValidator.parse_bool(value)
