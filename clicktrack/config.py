import os

class Settings:
    """Configuración de la aplicación que lee variables de entorno dinámicamente."""

    @property
    def app_name(self) -> str:
        return "ClickTrack"

    @property
    def environment(self) -> str:
        # Detectar producción por variables de Railway o ENV
        env = os.getenv("ENV", "").lower()
        railway_env = os.getenv("RAILWAY_ENVIRONMENT", "").lower()
        if env == "production" or railway_env == "production":
            return "production"
        return "development"

    @property
    def cors_origin(self) -> str:
        return os.getenv("CORS_ORIGIN", "http://localhost:3000")

    @property
    def log_level(self) -> str:
        return os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def public_base_url(self) -> str:
        """
        URL pública de este servidor (ej: https://track.midominio.com).
        Si está vacía se usa la URL base del request entrante.
        """
        return os.getenv("PUBLIC_BASE_URL", "").strip().rstrip("/")

    @property
    def token_max_attempts(self) -> int:
        # Intentos máximos al generar identificadores únicos antes de rendirse
        try:
            return max(1, int(os.getenv("TOKEN_MAX_ATTEMPTS", "20")))
        except ValueError:
            return 20

    @property
    def geo_country_header(self) -> str:
        # Header que agrega el proxy/CDN con el país del visitante (Cloudflare por defecto)
        return os.getenv("GEO_COUNTRY_HEADER", "CF-IPCountry")

# Instancia singleton de Settings (sin cache, lee valores dinámicamente)
_settings_instance = None

def get_settings() -> Settings:
    """Retorna la instancia de Settings. Lee variables de entorno dinámicamente."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance

def clear_settings_cache():
    """Limpia la instancia de settings (aunque no es necesario con propiedades dinámicas)."""
    global _settings_instance
    _settings_instance = None
