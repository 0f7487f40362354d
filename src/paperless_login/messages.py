"""
User-facing messages for the login negotiator.

Provides translations for login states, error descriptions and CLI output in
German (de) and English (en). Error descriptions depend only on the error
kind (and the status code and detail of unexpected responses).
"""

from typing import Optional

from .enums import CredentialStatus, LoginErrorKind, LoginStatus, RequestErrorKind
from .exceptions import LoginError


# Supported languages
SUPPORTED_LANGUAGES = frozenset({"de", "en"})
DEFAULT_LANGUAGE = "en"


# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Reachability states
    "login_state.empty": {
        "de": "Keine Serveradresse eingegeben",
        "en": "No server address entered",
    },
    "login_state.checking": {
        "de": "Server wird geprüft …",
        "en": "Checking server …",
    },
    "login_state.valid": {
        "de": "Server ist erreichbar",
        "en": "Server is reachable",
    },
    "login_state.error": {
        "de": "Server-Prüfung fehlgeschlagen",
        "en": "Server check failed",
    },

    # Credential states
    "credential_state.none": {
        "de": "Noch nicht angemeldet",
        "en": "Not logged in yet",
    },
    "credential_state.validating": {
        "de": "Anmeldedaten werden geprüft …",
        "en": "Validating credentials …",
    },
    "credential_state.valid": {
        "de": "Anmeldung erfolgreich",
        "en": "Login successful",
    },
    "credential_state.error": {
        "de": "Anmeldung fehlgeschlagen",
        "en": "Login failed",
    },

    # Login errors
    "error.invalid_url": {
        "de": "Die Serveradresse ist ungültig",
        "en": "The server address is invalid",
    },
    "error.invalid_login": {
        "de": "Benutzername oder Passwort sind falsch",
        "en": "Username or password are incorrect",
    },
    "error.invalid_token": {
        "de": "Das Token wurde vom Server abgelehnt",
        "en": "The token was rejected by the server",
    },
    "error.certificate": {
        "de": "Zertifikatsfehler: {detail}",
        "en": "Certificate error: {detail}",
    },
    "error.other": {
        "de": "Unbekannter Fehler: {detail}",
        "en": "Unknown error: {detail}",
    },
    "error.request.invalid_response": {
        "de": "Der Server hat eine ungültige Antwort geliefert",
        "en": "The server returned an invalid response",
    },
    "error.request.unsupported_version": {
        "de": "Die Server-Version wird nicht unterstützt oder der Benutzer hat nicht die nötigen Rechte",
        "en": "The server version is not supported or the user lacks the required permissions",
    },
    "error.request.unexpected_status_code": {
        "de": "Unerwarteter HTTP-Status {status_code}: {detail}",
        "en": "Unexpected HTTP status {status_code}: {detail}",
    },
    "error.request.local_network_denied": {
        "de": "Der Zugriff auf das lokale Netzwerk wurde verweigert",
        "en": "Access to the local network was denied",
    },

    # CLI messages
    "cli.description": {
        "de": "Verbindung und Anmeldung an einem Paperless-Server prüfen",
        "en": "Check connection and login to a Paperless server",
    },
    "cli.login_success": {
        "de": "Angemeldet als {username} bei {url}",
        "en": "Logged in as {username} at {url}",
    },
    "cli.connection_removed": {
        "de": "Verbindung {url} entfernt",
        "en": "Removed connection {url}",
    },
    "cli.connection_not_found": {
        "de": "Keine gespeicherte Verbindung für {url}",
        "en": "No stored connection for {url}",
    },
    "cli.no_connections": {
        "de": "Keine gespeicherten Verbindungen",
        "en": "No stored connections",
    },
    "cli.config_created": {
        "de": "Konfiguration erstellt: {path}",
        "en": "Configuration created: {path}",
    },
    "cli.config_exists": {
        "de": "Konfiguration existiert bereits: {path}",
        "en": "Configuration already exists: {path}",
    },
    "cli.config_write_failed": {
        "de": "Konfiguration konnte nicht geschrieben werden: {path}",
        "en": "Could not write configuration: {path}",
    },
    "cli.invalid_header": {
        "de": "Ungültiger Header '{header}', erwartet NAME=WERT",
        "en": "Invalid header '{header}', expected NAME=VALUE",
    },
    "cli.store_error": {
        "de": "Speicherfehler: {error}",
        "en": "Storage error: {error}",
    },
    "cli.missing_secret": {
        "de": "Kein Speicher-Geheimnis konfiguriert; 'config init' ausführen oder PAPERLESS_LOGIN_HMAC_SECRET setzen",
        "en": "No store secret configured; run 'config init' or set PAPERLESS_LOGIN_HMAC_SECRET",
    },
    "cli.missing_argument": {
        "de": "Fehlendes Argument: {argument}",
        "en": "Missing argument: {argument}",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'error.invalid_login')
        language: Language code ('de' or 'en'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string. Unknown keys are
        returned unchanged.

    Examples:
        >>> get_message('login_state.valid', 'en')
        'Server is reachable'
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language) or translations.get(DEFAULT_LANGUAGE)
    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except KeyError:
            pass

    return message


def error_message_key(error: LoginError) -> str:
    """Return the catalogue key describing a LoginError."""
    if error.kind == LoginErrorKind.REQUEST and error.request_error is not None:
        return f"error.request.{error.request_error.kind.value}"
    return f"error.{error.kind.value}"


def describe_error(error: LoginError, language: Optional[str] = None) -> str:
    """
    Describe a LoginError for the user.

    Args:
        error: The error to describe
        language: Language code ('de' or 'en')

    Returns:
        The translated description
    """
    key = error_message_key(error)
    if error.request_kind == RequestErrorKind.UNEXPECTED_STATUS_CODE:
        return get_message(
            key,
            language,
            status_code=error.request_error.status_code,
            detail=error.request_error.detail,
        )
    return get_message(key, language, detail=error.detail or "")


def describe_login_status(status: LoginStatus, language: Optional[str] = None) -> str:
    return get_message(f"login_state.{status.value}", language)


def describe_credential_status(status: CredentialStatus, language: Optional[str] = None) -> str:
    return get_message(f"credential_state.{status.value}", language)


def get_missing_translations(language: str) -> set[str]:
    """
    Get all message keys that are missing translations for a language.

    Args:
        language: The language code to check

    Returns:
        Set of message keys missing translations for the specified language.
    """
    return {key for key, translations in TRANSLATIONS.items() if language not in translations}
