"""Sidebar links managed by teachers and filtered per viewer."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from identity_access.domain import User
from teaching.models import SidebarLink
from teaching.ports import PortalRepoProtocol
from teaching.scope import filter_visible, make_scope, normalize_classrooms, normalize_years
from teaching.services.results import NOT_FOUND, PERSISTENCE_FAILED, SaveResult, writer_error

logger = logging.getLogger("portal.teaching")

_LINK_FIELDS = {"text", "url", "classrooms", "years"}


def _required(value: Any, code: str, max_len: int) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text or len(text) > max_len:
        raise ValueError(code)
    return text


@dataclass
class LinksService:
    repo: PortalRepoProtocol

    def list_for(self, viewer: Optional[User]) -> List[SidebarLink]:
        return filter_visible(self.repo.list_links(), viewer)

    def create_link(
        self,
        actor: Optional[User],
        *,
        text: str,
        url: str,
        classrooms: Optional[Iterable[Any]] = None,
        years: Optional[Iterable[Any]] = None,
        simulating: bool = False,
    ) -> SaveResult:
        error = writer_error(actor, simulating)
        if error:
            return SaveResult.failure(error)
        try:
            values = dict(
                text=_required(text, "invalid_text", 200),
                url=_required(url, "invalid_url", 2048),
                scope=make_scope(classrooms, years),
            )
        except ValueError as exc:
            return SaveResult.failure(str(exc))
        try:
            link = self.repo.create_link(**values)
        except Exception as exc:
            logger.warning("Link create failed: %s", exc.__class__.__name__)
            return SaveResult.failure(PERSISTENCE_FAILED)
        return SaveResult.success(link)

    def update_link(self, actor: Optional[User], link_id: str, *, simulating: bool = False, **changes: Any) -> SaveResult:
        error = writer_error(actor, simulating)
        if error:
            return SaveResult.failure(error)
        if set(changes) - _LINK_FIELDS:
            return SaveResult.failure("invalid_field")
        try:
            current = self.repo.get_link(link_id)
        except Exception as exc:
            logger.warning("Link load failed: %s", exc.__class__.__name__)
            return SaveResult.failure(PERSISTENCE_FAILED)
        if current is None:
            return SaveResult.failure(NOT_FOUND)
        fields: Dict[str, Any] = {}
        try:
            if "text" in changes:
                fields["text"] = _required(changes["text"], "invalid_text", 200)
            if "url" in changes:
                fields["url"] = _required(changes["url"], "invalid_url", 2048)
            if "classrooms" in changes or "years" in changes:
                classrooms = normalize_classrooms(changes["classrooms"]) if "classrooms" in changes else current.scope.classrooms
                years = normalize_years(changes["years"]) if "years" in changes else current.scope.years
                fields["scope"] = make_scope(classrooms, years)
        except ValueError as exc:
            return SaveResult.failure(str(exc))
        try:
            updated = self.repo.update_link(link_id, **fields)
        except Exception as exc:
            logger.warning("Link update failed: %s", exc.__class__.__name__)
            return SaveResult.failure(PERSISTENCE_FAILED)
        if updated is None:
            return SaveResult.failure(NOT_FOUND)
        return SaveResult.success(updated)

    def delete_link(self, actor: Optional[User], link_id: str, *, simulating: bool = False) -> SaveResult:
        error = writer_error(actor, simulating)
        if error:
            return SaveResult.failure(error)
        try:
            deleted = self.repo.delete_link(link_id)
        except Exception as exc:
            logger.warning("Link delete failed: %s", exc.__class__.__name__)
            return SaveResult.failure(PERSISTENCE_FAILED)
        if not deleted:
            return SaveResult.failure(NOT_FOUND)
        return SaveResult.success(link_id)


__all__ = ["LinksService"]
