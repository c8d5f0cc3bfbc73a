"""
Password Validation Service
Enforces password complexity rules and blocks common passwords
"""
import re
import logging
from typing import List, Optional, Tuple

from ..exceptions import ValidationError

logger = logging.getLogger(__name__)

COMMON_PASSWORDS = {
    "password", "123456", "12345678", "1234", "qwerty", "12345", "dragon",
    "baseball", "football", "letmein", "monkey", "696969", "abc123",
    "mustang", "michael", "shadow", "master", "jennifer", "111111", "2000",
    "jordan", "superman", "harley", "1234567", "hunter", "trustno1", "ranger",
    "buster", "thomas", "tigger", "robert", "soccer", "batman", "test", "pass",
    "killer", "hockey", "george", "charlie", "andrew", "michelle", "love",
    "sunshine", "jessica", "pepper", "daniel", "access", "123456789", "654321",
    "joshua", "maggie", "starwars", "silver", "william", "dallas", "yankees",
    "123123", "ashley", "666666", "hello", "amanda", "orange", "freedom",
    "computer", "thunder", "nicole", "ginger", "heather", "hammer", "summer",
    "corvette", "taylor", "austin", "1111", "merlin", "matthew", "121212",
    "golfer", "cheese", "princess", "martin", "chelsea", "patrick", "richard",
    "diamond", "yellow", "bigdog", "secret", "asdfgh", "sparky", "cowboy",
    "camaro", "anthony", "matrix", "password1", "qwerty123", "iloveyou",
    "password123", "admin123", "welcome1", "p@ssw0rd",
}


class PasswordPolicy:
    """Password policy configuration"""

    def __init__(
        self,
        min_length: int = 8,
        require_uppercase: bool = True,
        require_lowercase: bool = True,
        require_digit: bool = True,
        require_symbol: bool = False,
        block_common_passwords: bool = True,
    ):
        self.min_length = min_length
        self.require_uppercase = require_uppercase
        self.require_lowercase = require_lowercase
        self.require_digit = require_digit
        self.require_symbol = require_symbol
        self.block_common_passwords = block_common_passwords

    def is_common_password(self, password: str) -> bool:
        return password.lower() in COMMON_PASSWORDS


class PasswordValidator:
    """
    Password validator with configurable policy

    Usage:
        validator = PasswordValidator()
        validator.validate_or_raise("Secret1!")
    """

    def __init__(self, policy: Optional[PasswordPolicy] = None):
        self.policy = policy or PasswordPolicy()

    def validate(self, password: str) -> Tuple[bool, Optional[str]]:
        """
        Validate password against policy

        Returns:
            (True, None) if valid, (False, "error message") otherwise
        """
        if not password:
            return False, "Password is required"

        if len(password) < self.policy.min_length:
            return False, f"Password must be at least {self.policy.min_length} characters long"

        errors = []

        if self.policy.require_uppercase and not re.search(r'[A-ZА-ЯЁІЇЄҐ]', password):
            errors.append("one uppercase letter")

        if self.policy.require_lowercase and not re.search(r'[a-zа-яёіїєґ]', password):
            errors.append("one lowercase letter")

        if self.policy.require_digit and not re.search(r'\d', password):
            errors.append("one digit")

        if self.policy.require_symbol and not re.search(r'[!@#$%^&*()_+\-=\[\]{};:\'",.<>?/\\|`~]', password):
            errors.append("one special character")

        if errors:
            if len(errors) == 1:
                return False, f"Password must contain at least {errors[0]}"
            return False, f"Password must contain at least {', '.join(errors[:-1])} and {errors[-1]}"

        if self.policy.block_common_passwords and self.policy.is_common_password(password):
            # Generic message to avoid information leakage
            return False, "This password is too common. Please choose a more unique password"

        return True, None

    def validate_or_raise(self, password: str):
        """Raise ValidationError if the password does not satisfy the policy"""
        is_valid, error = self.validate(password)
        if not is_valid:
            raise ValidationError(error, details={"field": "password", "requirements": self.get_requirements_list()})

    def get_requirements_list(self) -> List[str]:
        requirements = [f"At least {self.policy.min_length} characters"]
        if self.policy.require_uppercase:
            requirements.append("One uppercase letter")
        if self.policy.require_lowercase:
            requirements.append("One lowercase letter")
        if self.policy.require_digit:
            requirements.append("One number (0-9)")
        if self.policy.require_symbol:
            requirements.append("One special character (!@#$%^&* etc.)")
        if self.policy.block_common_passwords:
            requirements.append("Not a commonly used password")
        return requirements
