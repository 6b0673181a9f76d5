"""Allow/deny checks for operations on user-owned resources."""

import logging

from .errors import ForbiddenError, NotOwnerError

logger = logging.getLogger(__name__)


def authorize_owner(identity: str, resource_owner_id: str) -> None:
    """Raise :class:`NotOwnerError` unless ``identity`` owns the resource.

    ``resource_owner_id`` must come from a fresh store read, never from the
    request.
    """
    if identity != resource_owner_id:
        logger.warning("ownership check failed user=%s owner=%s", identity, resource_owner_id)
        raise NotOwnerError()


def authorize_path_identity(token_identity: str, path_identity: str) -> None:
    """Raise :class:`ForbiddenError` when a ``/users/{id}`` path names someone else."""
    if token_identity != path_identity:
        logger.warning("path identity mismatch user=%s path=%s", token_identity, path_identity)
        raise ForbiddenError()
