"""
Optimistic edits of proposal line items (tag and equalization visibility).

An ``ItemEdit`` is applied to a local copy of the proposal sections first,
then written through a writer callable. When the write fails the local copy
goes back to the last confirmed snapshot.

Usage:
    session = ItemEditSession(sections, writer=write_item_edit)
    result = session.submit(ItemEdit.tag(item_id, ItemTag.OPCIONAL))
    if not result.ok:
        ...  # result.sections is the confirmed snapshot again
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from utils.core.log import get_logger
from tools.equalize.equalize_models import ItemTag, ProposalSection

TAG_FIELD = "tag"
HIDDEN_FIELD = "hidden_from_equalization"


@dataclass(frozen=True)
class ItemEdit:
    item_id: str
    field: str
    value: Any

    @classmethod
    def tag(cls, item_id: str, tag: Optional[ItemTag]) -> "ItemEdit":
        return cls(item_id=item_id, field=TAG_FIELD, value=tag)

    @classmethod
    def hidden(cls, item_id: str, hidden: bool) -> "ItemEdit":
        return cls(item_id=item_id, field=HIDDEN_FIELD, value=bool(hidden))

    def apply(self, sections: Sequence[ProposalSection]) -> list[ProposalSection]:
        """Return new sections with the edit applied; inputs are not modified."""
        updated = []
        for section in sections:
            items = [
                item.model_copy(update={self.field: self.value})
                if item.id == self.item_id
                else item
                for item in section.items
            ]
            updated.append(section.model_copy(update={"items": items}))
        return updated

    def describe(self) -> str:
        value = self.value.value if isinstance(self.value, ItemTag) else self.value
        return f"{self.field}={value!r} on item {self.item_id}"


@dataclass
class EditResult:
    ok: bool
    sections: list[ProposalSection]
    error: Optional[str] = None


class ItemEditSession:
    """Local view of a proposal's sections with optimistic edits."""

    def __init__(
        self,
        sections: Sequence[ProposalSection],
        writer: Callable[[ItemEdit], None],
    ):
        self._confirmed = list(sections)
        self._writer = writer
        self.sections = list(sections)

    @property
    def confirmed(self) -> list[ProposalSection]:
        return list(self._confirmed)

    def submit(self, edit: ItemEdit) -> EditResult:
        logger = get_logger()
        self.sections = edit.apply(self.sections)
        try:
            self._writer(edit)
        except Exception as exc:
            logger.error(f"Failed to write {edit.describe()}: {exc}")
            self.sections = list(self._confirmed)
            return EditResult(ok=False, sections=self.sections, error=str(exc))

        self._confirmed = list(self.sections)
        logger.debug(f"Confirmed {edit.describe()}")
        return EditResult(ok=True, sections=self.sections)
