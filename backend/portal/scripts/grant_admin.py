"""Bootstrap the administrator registry.

The admin API requires an administrator, so the first one has to be
registered out of band.

Usage:
    cd backend && python -m portal.scripts.grant_admin <principal_id> <email>
    cd backend && python -m portal.scripts.grant_admin <principal_id> --revoke

Uses the configured document store (DOCUMENT_STORE). With the in-memory
store the grant is lost when the process exits, so the script refuses it.
"""

import argparse
import logging

from portal.models.admin_record import AdminRegistration
from portal.providers.document_store.base import DocumentStore
from portal.repositories.admin_registry_repository import AdminRegistryRepository

logger = logging.getLogger(__name__)


async def run_grant(
    store: DocumentStore,
    *,
    principal_id: str,
    email: str = "",
    revoke: bool = False,
) -> AdminRegistration | None:
    """Grant or revoke administrator rights.

    Args:
        store: Document store holding the registry.
        principal_id: Identity-provider id of the principal.
        email: Principal email, required when granting.
        revoke: Remove the registration instead.

    Returns:
        The new registration, or None after a revoke.

    Raises:
        ValueError: Granting without an email.
    """
    if revoke:
        removed = await AdminRegistryRepository.revoke(store, principal_id)
        logger.info("Revoked admin %s (existed: %s)", principal_id, removed)
        return None

    if not email.strip():
        raise ValueError("email is required when granting admin rights")
    registration = await AdminRegistryRepository.grant(store, principal_id, email)
    logger.info("Granted admin to %s <%s>", principal_id, registration.email)
    return registration


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("principal_id")
    parser.add_argument("email", nargs="?", default="")
    parser.add_argument("--revoke", action="store_true")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    """CLI entry point: grant or revoke against the configured store."""
    from portal.core.database import dispose_engine
    from portal.providers.document_store.sql_adapter import SqlDocumentStore
    from portal.providers.factory import get_document_store

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = _parse_args(argv)

    store = get_document_store()
    if not isinstance(store, SqlDocumentStore):
        logger.error("DOCUMENT_STORE is not persistent, set DOCUMENT_STORE=sql")
        return 1

    await store.create_schema()
    try:
        await run_grant(
            store, principal_id=args.principal_id, email=args.email, revoke=args.revoke
        )
    except ValueError as exc:
        logger.error("%s", exc)
        return 2
    finally:
        await dispose_engine()
    return 0


if __name__ == "__main__":
    import asyncio
    import sys

    sys.exit(asyncio.run(main()))
