from cryptography.fernet import Fernet # Symmetric encryption library.
from flask import current_app # To access application configuration (e.g., FERNET_KEY).

def get_fernet():
    """
    Returns a Fernet instance built from the application's FERNET_KEY.

    Raises:
        ValueError: If FERNET_KEY is not configured.
    """
    key = current_app.config.get('FERNET_KEY')
    if not key:
        current_app.logger.critical("FERNET_KEY is not configured. Subscription credentials cannot be encrypted or read.")
        raise ValueError("FERNET_KEY not configured properly. Please set it in your application configuration.")
    if isinstance(key, str):
        key = key.encode('utf-8')
    return Fernet(key)

def encrypt_value(value):
    """
    Encrypts a plain-text value (an account username or password) for storage.

    Args:
        value (str or None): The value to encrypt. None is passed through.

    Returns:
        str or None: The Fernet token as a UTF-8 string.
    """
    if value is None:
        return None
    return get_fernet().encrypt(value.encode('utf-8')).decode('utf-8')

def decrypt_value(token):
    """
    Decrypts a value produced by encrypt_value.

    Raises:
        cryptography.fernet.InvalidToken: If the token is corrupted or was encrypted
                                          with another key. Left to the caller.
    """
    if token is None:
        return None
    return get_fernet().decrypt(token.encode('utf-8')).decode('utf-8')
