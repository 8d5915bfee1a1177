import re
from typing import List, Tuple

SPECIAL_CHARACTERS = '@$!%*?&'


class PasswordValidator:
    def __init__(self, min_length: int = 8):
        self.min_length = min_length
        self.common_passwords = [
            'password', '123456', 'qwerty', 'admin', 'welcome',
            'letmein', 'monkey', 'dragon', 'baseball', 'football',
            'password1!', 'password123!', 'admin123!', 'welcome1!'
        ]

    def check_common_passwords(self, password: str) -> bool:
        """Check if the password is in the list of common passwords."""
        return password.lower() in self.common_passwords

    def validate_password(self, password: str) -> Tuple[bool, List[str]]:
        """Validate password strength and return (is_valid, issues)."""
        issues = []

        if not isinstance(password, str):
            return False, ["Password is required"]

        # Check minimum length
        if len(password) < self.min_length:
            issues.append(f"Password must be at least {self.min_length} characters long")

        # Check for required character types
        if not re.search(r'[a-z]', password):
            issues.append("Password must contain at least one lowercase letter")
        if not re.search(r'[A-Z]', password):
            issues.append("Password must contain at least one uppercase letter")
        if not re.search(r'\d', password):
            issues.append("Password must contain at least one number")
        if not re.search(f'[{re.escape(SPECIAL_CHARACTERS)}]', password):
            issues.append(f"Password must contain at least one special character ({SPECIAL_CHARACTERS})")

        # Check for common passwords
        if self.check_common_passwords(password):
            issues.append("Password is too common and easily guessable")

        return len(issues) == 0, issues
