"""Credential issuer — generates initial and rotated user passwords.

Two strategies:
- simple: adjective + noun + 3-digit number ("HappyTiger123"). Readable and
  easy to dictate, with roughly 13 bits of entropy. Meant for training and
  demo environments, not for protecting anything of value.
- secure: random characters with at least one lowercase letter, uppercase
  letter, digit and symbol.

Nothing here touches storage; the only input is the random source.
"""

import random
import secrets
import string
from enum import Enum
from typing import Optional

ADJECTIVES = ["Happy", "Smart", "Bright", "Quick", "Swift", "Bold", "Calm", "Cool"]
NOUNS = ["Tiger", "Eagle", "Lion", "Bear", "Wolf", "Fox", "Hawk", "Star"]

LOWERCASE = string.ascii_lowercase
UPPERCASE = string.ascii_uppercase
DIGITS = string.digits
SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"
ALL_CHARS = LOWERCASE + UPPERCASE + DIGITS + SYMBOLS

MIN_SECURE_LENGTH = 4


class PasswordStrategy(str, Enum):
    SIMPLE = "simple"
    SECURE = "secure"


class CredentialIssuer:
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or secrets.SystemRandom()

    def generate_simple(self) -> str:
        adjective = self.rng.choice(ADJECTIVES)
        noun = self.rng.choice(NOUNS)
        number = self.rng.randint(100, 999)
        return f"{adjective}{noun}{number}"

    def generate_secure(self, length: int = 12) -> str:
        if length < MIN_SECURE_LENGTH:
            raise ValueError(f"Secure passwords need at least {MIN_SECURE_LENGTH} characters")

        chars = [
            self.rng.choice(LOWERCASE),
            self.rng.choice(UPPERCASE),
            self.rng.choice(DIGITS),
            self.rng.choice(SYMBOLS),
        ]
        chars.extend(self.rng.choice(ALL_CHARS) for _ in range(length - MIN_SECURE_LENGTH))
        # Guaranteed classes must not sit at predictable positions
        self.rng.shuffle(chars)
        return "".join(chars)

    def generate(self, strategy: PasswordStrategy | str = PasswordStrategy.SIMPLE) -> str:
        strategy = PasswordStrategy(strategy)
        if strategy == PasswordStrategy.SECURE:
            return self.generate_secure()
        return self.generate_simple()
