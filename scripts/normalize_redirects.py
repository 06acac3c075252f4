"""
Script para volver a normalizar las URLs de redirección guardadas en todos los proyectos.
Ejecutar desde el directorio backend con:

    PUBLIC_BASE_URL=https://track.midominio.com python scripts/normalize_redirects.py [--dry-run]

Sirve para proyectos viejos cuyas plantillas apuntan a otro host o tienen el
placeholder codificado (%7BMASKED_ID%7D) y por eso nunca se completaba el mid.
"""
import argparse
import os
import sys

# Permitir ejecutar el script sin instalar el paquete
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from clicktrack.config import get_settings  # noqa: E402
from clicktrack.database import SessionLocal  # noqa: E402
from clicktrack.services.redirect_normalizer import renormalize_stored_redirects  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Normaliza las redirecciones guardadas de los proyectos")
    parser.add_argument("--base-url", default=None, help="URL pública del servidor (por defecto PUBLIC_BASE_URL)")
    parser.add_argument("--dry-run", action="store_true", help="Mostrar los cambios sin guardarlos")
    args = parser.parse_args()

    base_url = (args.base_url or get_settings().public_base_url).rstrip("/")
    if not base_url:
        print("❌ Falta la URL base: usar --base-url o definir PUBLIC_BASE_URL")
        return 1

    print(f"📦 Normalizando redirecciones contra: {base_url}")

    db = SessionLocal()
    try:
        changes = renormalize_stored_redirects(db, base_url)

        for project_number, kind, old_url, new_url in changes:
            print(f"  ✓ Proyecto #{project_number} [{kind}]")
            print(f"    Antiguo: {old_url}")
            print(f"    Nuevo:   {new_url}\n")

        if not changes:
            print("✅ Todas las redirecciones ya están correctas. No se necesitaron cambios.")
        elif args.dry_run:
            db.rollback()
            print(f"ℹ️  Dry run: {len(changes)} cambios sin guardar.")
        else:
            db.commit()
            print(f"✅ Normalización completa. {len(changes)} redirecciones actualizadas.")
        return 0

    except Exception as e:
        db.rollback()
        print(f"❌ Error al normalizar redirecciones: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
