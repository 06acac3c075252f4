"""
Errores de dominio del tracker de clicks.

Cada error conoce el código HTTP con el que se responde; main.py registra un
único handler que los convierte en una respuesta de texto plano.
"""


class ClickTrackError(Exception):
    """Base de todos los errores de dominio."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(ClickTrackError):
    """Parámetro inválido o faltante (mode, outcome, id)."""

    status_code = 400


class GateRefused(ClickTrackError):
    """El proyecto existe pero no está LIVE."""

    status_code = 403


class NotFoundError(ClickTrackError):
    status_code = 404


class SessionAlreadyClosed(ClickTrackError):
    """La sesión ya tiene un estado final; no se vuelve a modificar."""

    status_code = 409


class GenerationCollision(ClickTrackError):
    """
    No se pudo generar un identificador libre dentro del número de intentos permitido.
    Una colisión aislada nunca llega acá: se regenera y se reintenta.
    """

    status_code = 503
