"""
Enmascarado de datos sensibles en mensajes, logs y reportes.
"""

import re
from typing import Iterable

_PATTERNS = [
    r'password["\']?\s*[:=]\s*["\']?([^"\'\s]+)',
    r'passwd["\']?\s*[:=]\s*["\']?([^"\'\s]+)',
    r'token["\']?\s*[:=]\s*["\']?([^"\'\s]+)',
    r"PASSWORD\s+'((?:[^']|'')+)'",
    r'://[^:/@\s]+:([^@\s]+)@',
]


def mask_sensitive_data(text: str, secrets: Iterable[str] = (), mask_char: str = "*") -> str:
    """
    Enmascara datos sensibles en texto (secretos conocidos, contraseñas, tokens).

    Args:
        text: Texto a enmascarar
        secrets: Valores literales que nunca deben aparecer (secretos resueltos)
        mask_char: Carácter para enmascarar

    Returns:
        Texto con datos sensibles enmascarados
    """
    for secret in sorted({s for s in secrets if s}, key=len, reverse=True):
        text = text.replace(secret, mask_char * 8)
    for pattern in _PATTERNS:
        text = re.sub(
            pattern,
            lambda m: m.group(0).replace(m.group(1), mask_char * 8),
            text,
            flags=re.IGNORECASE,
        )
    return text
