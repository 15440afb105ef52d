"""
Startup configuration validation module.

This module provides startup-time validation for critical configuration
to catch misconfigurations early (fail-fast) rather than at runtime when
a trainee tries to book a slot or a supervisor tries to sign an entry.

Usage:
    from shared.startup_validator import validate_startup_config, StartupValidationError

    async def main():
        try:
            await validate_startup_config()
        except StartupValidationError as e:
            logger.critical(f"Startup blocked: {e}")
            sys.exit(1)
"""

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import text

from shared.config import get_settings

logger = logging.getLogger(__name__)


class StartupValidationError(Exception):
    """Raised when critical startup validation fails."""

    pass


async def validate_startup_config(check_database: bool = True) -> dict[str, bool]:
    """
    Validate all critical configuration at startup.

    Performs tiered validation:
    - TIER 1 (CRITICAL): Block startup if any fail
    - TIER 2 (IMPORTANT): Warn but allow startup

    Args:
        check_database: If True, run a SELECT 1 against the configured database.
                        A failed connection is reported as a warning only.

    Returns:
        dict of {check_name: passed} for all validations

    Raises:
        StartupValidationError: If any CRITICAL check fails
    """
    settings = get_settings()
    results: dict[str, bool] = {}
    critical_failures: list[str] = []

    # =========================================================================
    # TIER 1: CRITICAL (block startup if any fail)
    # =========================================================================

    # 1. Identity token secret
    if settings.AUTH_JWT_SECRET == "jwt-secret-placeholder":
        critical_failures.append(
            "AUTH_JWT_SECRET is placeholder - set the identity provider signing secret"
        )
        results["jwt_secret"] = False
    else:
        results["jwt_secret"] = True
        logger.info("  [OK] Identity token secret configured")

    # 2. Governing timezone for day buckets
    try:
        ZoneInfo(settings.TIMEZONE)
        results["timezone"] = True
        logger.info(f"  [OK] Booking timezone: {settings.TIMEZONE}")
    except (ZoneInfoNotFoundError, ValueError):
        critical_failures.append(f"TIMEZONE is not a known IANA zone: {settings.TIMEZONE}")
        results["timezone"] = False

    # =========================================================================
    # TIER 2: IMPORTANT (warn but allow startup)
    # =========================================================================

    # 3. Database URL format validation
    if settings.DATABASE_URL.startswith("postgresql+asyncpg://"):
        results["database_url_format"] = True
    else:
        logger.warning(
            "DATABASE_URL is not a postgresql+asyncpg URL - "
            "serializable conflict detection depends on the backend"
        )
        results["database_url_format"] = False

    # 4. Database connectivity
    if check_database:
        results["database_connection"] = await validate_database_connection()

    passed = sum(1 for v in results.values() if v)
    total = len(results)
    logger.info(f"Startup validation: {passed}/{total} checks passed")

    if critical_failures:
        logger.critical("=" * 60)
        logger.critical("STARTUP BLOCKED - Critical configuration errors:")
        for i, failure in enumerate(critical_failures, 1):
            logger.critical(f"  {i}. {failure}")
        logger.critical("=" * 60)
        raise StartupValidationError(
            f"Critical startup validation failed ({len(critical_failures)} errors): "
            f"{'; '.join(critical_failures)}"
        )

    return results


async def validate_database_connection() -> bool:
    """
    Validate database connection is working.

    Returns:
        True if database connection successful, False otherwise
    """
    try:
        from database.connection import get_async_session

        async with get_async_session() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()

        logger.info("  [OK] Database connection successful")
        return True

    except Exception as e:
        logger.warning(f"  [WARN] Database connection failed: {e}")
        return False
