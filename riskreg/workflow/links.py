"""Link-aware control resolution.

A row's effective controls are its embedded controls plus the hub controls
linked to it. Link overrides shadow a hub control's scores for that one row
and are written to the link, never to the control.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from riskreg.domain.models import Control, ControlLink, EntityKind, Role, Row, score_product
from riskreg.errors import DuplicateLinkError, EntityNotFoundError, InvalidFieldValueError, InvalidLinkError
from riskreg.logging_config import get_logger
from riskreg.scoring.aggregator import resolve_link_scores
from riskreg.store.base import EntityStore
from riskreg.workflow.permissions import ensure_can_edit_definitions

logger = get_logger(name=__name__)


@dataclass(frozen=True)
class EffectiveControl:
    control: Control
    link: Optional[ControlLink]
    net_probability: Optional[int]
    net_impact: Optional[int]

    @property
    def is_linked(self) -> bool:
        return self.link is not None

    @property
    def net_score(self) -> Optional[int]:
        return score_product(self.net_probability, self.net_impact)

    @property
    def has_override(self) -> bool:
        return self.link is not None and (
            self.link.net_probability is not None or self.link.net_impact is not None
        )


class ControlLinkService:
    def __init__(self, store: EntityStore):
        self.store = store

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def effective_controls(self, row_id: str) -> List[EffectiveControl]:
        row: Row = self.store.get(EntityKind.ROW, row_id)
        effective = [
            EffectiveControl(control, None, control.net_probability, control.net_impact)
            for control in row.controls
        ]
        for link in self.store.list(EntityKind.CONTROL_LINK, {"row_id": row_id}):
            control = self.store.find(EntityKind.CONTROL, link.control_id)
            if control is None:
                logger.warning("Link {} points at missing control {}", link.id, link.control_id)
                continue
            probability, impact = resolve_link_scores(link, control)
            effective.append(EffectiveControl(control, link, probability, impact))
        return effective

    def link_counts(self) -> Dict[str, int]:
        return dict(Counter(link.control_id for link in self.store.list(EntityKind.CONTROL_LINK)))

    def link_count(self, control_id: str) -> int:
        return len(self.store.list(EntityKind.CONTROL_LINK, {"control_id": control_id}))

    def shared_edit_warning(self, control_id: str) -> bool:
        """Editing this control's own fields changes more than one row."""
        return self.link_count(control_id) > 1

    def find_link(self, control_id: str, row_id: str) -> Optional[ControlLink]:
        links = self.store.list(EntityKind.CONTROL_LINK, {"row_id": row_id, "control_id": control_id})
        return links[0] if links else None

    def available_controls(self, row_id: str) -> List[Control]:
        """Hub controls not yet linked to the row."""
        self.store.get(EntityKind.ROW, row_id)
        linked = {link.control_id for link in self.store.list(EntityKind.CONTROL_LINK, {"row_id": row_id})}
        return [
            control
            for control in self.store.list(EntityKind.CONTROL, {"owner_row_id": None})
            if control.id not in linked
        ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def link_control(
        self,
        control_id: str,
        row_id: str,
        role: Optional[Union[Role, str]] = None,
        net_probability: Optional[int] = None,
        net_impact: Optional[int] = None,
    ) -> ControlLink:
        if role is not None:
            ensure_can_edit_definitions(role, "link controls")
        self.store.get(EntityKind.ROW, row_id)
        control: Control = self.store.get(EntityKind.CONTROL, control_id)
        if control.is_embedded:
            raise InvalidLinkError(
                f"Control '{control_id}' is embedded in row '{control.owner_row_id}' and cannot be linked",
                control_id=control_id,
                row_id=row_id,
            )
        if self.find_link(control_id, row_id) is not None:
            raise DuplicateLinkError(row_id, control_id)

        try:
            link = ControlLink(
                row_id=row_id,
                control_id=control_id,
                net_probability=net_probability,
                net_impact=net_impact,
            )
        except ValidationError as exc:
            error = exc.errors()[0]
            raise InvalidFieldValueError(str(error["loc"][0]), error.get("input"), error["msg"]) from exc

        stored = self.store.add(link)
        logger.info("Linked control {} to row {}", control_id, row_id)
        return stored

    def unlink(self, link_id: str, role: Optional[Union[Role, str]] = None) -> None:
        if role is not None:
            ensure_can_edit_definitions(role, "unlink controls")
        self.store.remove(EntityKind.CONTROL_LINK, link_id)
        logger.info("Removed control link {}", link_id)

    def unlink_from_row(self, control_id: str, row_id: str, role: Optional[Union[Role, str]] = None) -> None:
        link = self.find_link(control_id, row_id)
        if link is None:
            raise EntityNotFoundError(EntityKind.CONTROL_LINK.value, f"{row_id}/{control_id}")
        self.unlink(link.id, role)

    def create_control(
        self,
        fields: Mapping[str, Any],
        row_id: Optional[str] = None,
        embed: bool = False,
        role: Optional[Union[Role, str]] = None,
    ) -> Control:
        """Create an embedded control in ``row_id``, or a hub control linked to it when given."""
        if role is not None:
            ensure_can_edit_definitions(role, "create controls")
        if embed and row_id is None:
            raise InvalidLinkError("An embedded control needs a row", embed=True)

        data = {key: value for key, value in fields.items() if key not in ("id", "owner_row_id", "ownerRowId")}
        if embed:
            row: Row = self.store.get(EntityKind.ROW, row_id)
            data.update(owner_row_id=row.id, position=len(row.controls))
        else:
            data.pop("position", None)
        try:
            control = Control.model_validate(data)
        except ValidationError as exc:
            error = exc.errors()[0]
            name = str(error["loc"][0]) if error.get("loc") else "control"
            raise InvalidFieldValueError(name, error.get("input"), error["msg"]) from exc

        stored = self.store.add(control)
        logger.info("Created {} control {} ({})", "embedded" if embed else "hub", stored.id, stored.name)
        if not embed and row_id is not None:
            self.link_control(stored.id, row_id)
        return stored

    def remove_control(self, control_id: str, role: Optional[Union[Role, str]] = None) -> None:
        """Delete a control; its links go with it."""
        if role is not None:
            ensure_can_edit_definitions(role, "delete controls")
        self.store.remove(EntityKind.CONTROL, control_id)
        logger.info("Removed control {}", control_id)
