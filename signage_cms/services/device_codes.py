"""
Device Code Generator Service for Signage CMS.

Generates the identifiers a player is known by:
- device_code: 16 lowercase hex characters, used by the TV app on every call
- device_key: 16 lowercase hex characters, the pairing secret typed on the
  device (admins may also choose their own key)

Both are unique across players.
"""

import secrets


class DeviceCodeError(Exception):
    """Raised when no unused code could be generated."""
    pass


class DeviceCodeGenerator:
    """
    Generate unique player identifiers.

    Codes come from ``secrets.token_hex`` and are checked against the
    players table; a collision triggers another draw up to MAX_TRIES.
    """

    CODE_BYTES = 8
    MAX_TRIES = 10
    FIELDS = ('device_code', 'device_key')

    @classmethod
    def random_code(cls) -> str:
        """Return a random 16-character hex string."""
        return secrets.token_hex(cls.CODE_BYTES)

    @classmethod
    def exists(cls, field: str, value: str) -> bool:
        from signage_cms.models import Player

        column = getattr(Player, field)
        return Player.query.filter(column == value).first() is not None

    @classmethod
    def generate_unique(cls, field: str) -> str:
        """
        Generate a value for ``field`` that no player uses yet.

        Args:
            field: 'device_code' or 'device_key'

        Returns:
            16-character hex string

        Raises:
            ValueError: If field is not a player identifier column
            DeviceCodeError: If MAX_TRIES draws all collided
        """
        if field not in cls.FIELDS:
            raise ValueError(f'Unknown player identifier field: {field}')

        for _ in range(cls.MAX_TRIES):
            value = cls.random_code()
            if not cls.exists(field, value):
                return value

        raise DeviceCodeError(f'Failed to generate unique {field}')
