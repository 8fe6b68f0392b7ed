from typing import Dict, Optional

from app.core.errors import ErrorKind

DEFAULT_LANGUAGE = "en"

MESSAGES: Dict[str, Dict[ErrorKind, str]] = {
    "en": {
        ErrorKind.ALREADY_EXISTS: "User already exists",
        ErrorKind.CREATION_FAILED: "User was not created",
        ErrorKind.INVALID_CREDENTIALS: "Username or password is invalid",
        ErrorKind.ADDRESS_MISMATCH: "Sign wallet address is incorrect",
        ErrorKind.SIGNATURE_INVALID: "Sign wallet info is incorrect",
        ErrorKind.REFRESH_TOKEN_INVALID: "Refresh token is invalid",
        ErrorKind.FORBIDDEN: "Forbidden",
        ErrorKind.UNAUTHORIZED: "Unauthorized",
        ErrorKind.CONFLICT: "Resource already exists",
        ErrorKind.USER_NOT_FOUND: "User does not exist",
        ErrorKind.SOMETHING_WENT_WRONG: "Something went wrong",
    },
    "es": {
        ErrorKind.ALREADY_EXISTS: "El usuario ya existe",
        ErrorKind.CREATION_FAILED: "No se pudo crear el usuario",
        ErrorKind.INVALID_CREDENTIALS: "Usuario o contraseña no válidos",
        ErrorKind.ADDRESS_MISMATCH: "La dirección de la billetera no es correcta",
        ErrorKind.SIGNATURE_INVALID: "La firma de la billetera no es correcta",
        ErrorKind.REFRESH_TOKEN_INVALID: "El token de actualización no es válido",
        ErrorKind.FORBIDDEN: "Prohibido",
        ErrorKind.UNAUTHORIZED: "No autorizado",
        ErrorKind.CONFLICT: "El recurso ya existe",
        ErrorKind.USER_NOT_FOUND: "El usuario no existe",
        ErrorKind.SOMETHING_WENT_WRONG: "Algo salió mal",
    },
}


def resolve_language(accept_language: Optional[str]) -> str:
    """
    Pick a supported language from an Accept-Language header value.
    e.g. "es-ES,es;q=0.9,en;q=0.8" -> "es". Unknown or missing -> DEFAULT_LANGUAGE.
    """
    if not accept_language:
        return DEFAULT_LANGUAGE
    for part in accept_language.split(","):
        tag = part.split(";")[0].strip().lower()
        primary = tag.split("-")[0]
        if primary in MESSAGES:
            return primary
    return DEFAULT_LANGUAGE


def format_message(kind: ErrorKind, language: str = DEFAULT_LANGUAGE) -> str:
    table = MESSAGES.get(language) or MESSAGES[DEFAULT_LANGUAGE]
    return table.get(kind) or MESSAGES[DEFAULT_LANGUAGE][kind]
