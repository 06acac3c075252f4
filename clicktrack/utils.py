import re
from urllib.parse import quote

# Placeholders reconocidos en los links -> variable que los reemplaza
PLACEHOLDER_BINDINGS = {
    "USER_ID": "USER_ID",
    "UID": "USER_ID",
    "ID": "USER_ID",
    "MASKED_ID": "MASKED_ID",
    "MID": "MASKED_ID",
    "PROJECT_UID": "PROJECT_UID",
    "PID": "PROJECT_UID",
}

_PLACEHOLDER_RE = re.compile(
    r"\{(" + "|".join(sorted(PLACEHOLDER_BINDINGS, key=len, reverse=True)) + r")\}",
    re.IGNORECASE,
)

# Caracteres que encodeURIComponent deja sin escapar
_URI_COMPONENT_SAFE = "-_.!~*'()"


def replace_placeholders(url: str, bindings: dict | None = None) -> str:
    """
    Reemplaza los placeholders de un link ({USER_ID}, {mid}, {PID}, ...).

    - Se aceptan en mayúsculas o minúsculas.
    - Si falta el valor para un placeholder reconocido se reemplaza por "".
    - Los placeholders desconocidos quedan intactos.

    Ejemplos:
    - "https://s.com/?r={MASKED_ID}", {"MASKED_ID": "abc"} -> "https://s.com/?r=abc"
    - "https://s.com/?u={uid}&x={OTHER}", {} -> "https://s.com/?u=&x={OTHER}"
    """
    if not url:
        return url

    bindings = bindings or {}

    def _sub(match: re.Match) -> str:
        key = PLACEHOLDER_BINDINGS[match.group(1).upper()]
        value = bindings.get(key)
        return "" if value is None else str(value)

    return _PLACEHOLDER_RE.sub(_sub, url)


def safe_append_param(url: str, key: str, value) -> str:
    """
    Agrega key=value (URL-encoded) al final del link, con '&' si ya tiene query o '?' si no.
    Un link vacío se devuelve tal cual.
    """
    if not url:
        return url
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{quote(str(key), safe=_URI_COMPONENT_SAFE)}={quote(str(value), safe=_URI_COMPONENT_SAFE)}"
