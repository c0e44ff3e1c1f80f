"""Input rules shared by the request schemas."""
import re

# Block common disposable email domains
BLOCKED_DOMAINS = frozenset(
    {
        "test.com",
        "example.com",
        "localhost.com",
        "tempmail.com",
        "throwaway.com",
        "mailinator.com",
        "guerrillamail.com",
        "yopmail.com",
        "temp-mail.org",
        "fakeinbox.com",
        "10minutemail.com",
        "trashmail.com",
        "sharklasers.com",
        "mailnesia.com",
        "disposable.com",
        "getnada.com",
        "dispostable.com",
        "maildrop.cc",
    }
)

# Passwords that satisfy the complexity rules yet are too common to accept
COMMON_PASSWORDS = frozenset(
    {
        "Password123!",
        "Admin123!",
        "P@ssw0rd",
        "P@ssw0rd2024",
        "P@ssw0rd2025",
        "Qwerty123!",
        "Welcome123!",
        "Secret123!",
        "Letmein123!",
        "ABC123abc!",
        "12345678Aa!",
        "Password1!",
        "Abcd1234!",
        "Login1234!",
        "Winter2025!",
        "Summer2025!",
        "Spring2025!",
        "Fall2025!",
        "Pa$$w0rd",
        "Adm1n123!",
        "L0g1n!123",
        "W3lc0me!",
        "Ch4ng3m3!",
    }
)

NAME_PATTERN = re.compile(r"^[A-Za-z\s]+$")
CODE_PATTERN = re.compile(r"^\d{6}$")

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 64


def check_name(value: str, label: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{label} is required")
    if len(value) > 50:
        raise ValueError(f"{label} cannot exceed 50 characters")
    if not NAME_PATTERN.match(value):
        raise ValueError(f"{label} can only contain letters and spaces")
    return value


def check_email_domain(email: str) -> str:
    domain = email.rsplit("@", 1)[-1].lower()
    if domain in BLOCKED_DOMAINS:
        raise ValueError(
            "This email domain is not allowed. Please use a different email address"
        )
    return email


def check_password_strength(password: str) -> str:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if len(password) > MAX_PASSWORD_LENGTH:
        raise ValueError(f"Password cannot exceed {MAX_PASSWORD_LENGTH} characters")
    if not re.search(r"[a-z]", password):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[0-9]", password):
        raise ValueError("Password must contain at least one number")
    if not re.search(r"[^a-zA-Z0-9]", password):
        raise ValueError("Password must contain at least one special character")
    if password in COMMON_PASSWORDS:
        raise ValueError("This password is too common. Please choose a stronger password")
    return password


def check_code(code: str) -> str:
    code = code.strip()
    if not CODE_PATTERN.match(code):
        raise ValueError("Code must be exactly 6 digits")
    return code
