"""
Pydantic models for WBS equalization data structures.

Row models mirror the database shape (column names kept as-is) so rows from
psycopg2 or the mock backend validate directly. Derived models are what the
rendering layer receives.

The comparison hierarchy is:
    TreeNode (WBS node, "EAP padrão")
    ├── values[proposta_id] -> ValueCell
    │   └── LinkedItem (proposal line item linked to this node)
    └── children -> TreeNode ...
"""

from __future__ import annotations

from enum import Enum
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

UNNAMED_CONTRACTOR = "Sem nome"


class ItemTag(str, Enum):
    """Classification tags a reviewer can put on a proposal line item."""

    CORTESIA = "cortesia"
    ESTIMATIVA = "estimativa"
    ESTIMATIVA_PENDENCIA = "estimativa + pendência"
    NAO_COTADO_SOB_DEMANDA = "não cotado + sob demanda"
    NAO_COTADO_PENDENCIA = "não cotado + pendência"
    OPCIONAL = "opcional"
    OPCIONAL_REVISAR_ESCOPO = "opcional + revisar escopo"
    REVISAR_ESCOPO = "revisar escopo"
    CONDICIONAL = "condicional"

    @property
    def label(self) -> str:
        return " + ".join(part.strip().title() for part in self.value.split("+"))


# Input rows


class WbsNode(BaseModel):
    """
    A node of the reference WBS ("eap_padrao" row).

    ``parent_id`` may point at a node that is not part of the snapshot; such
    nodes are promoted to roots by the tree builder.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    caminho: str = Field(description="Display code, e.g. '1.2.3'")
    item: str = Field(description="Human label")
    nivel: int = Field(description="Depth level, 1 = root level")
    parent_id: Optional[str] = None
    caminho_sort: Optional[str] = Field(
        default=None, description="Externally supplied display order key"
    )


class Proposal(BaseModel):
    """A contractor's priced bid, as used for comparison columns."""

    model_config = ConfigDict(extra="ignore")

    id: str
    construtora_nome: str = UNNAMED_CONTRACTOR
    valor_total: float = 0.0


class ProposalSummary(Proposal):
    """Proposal listing row with reference date, status and site."""

    data_referencia: Optional[date] = None
    status: Optional[str] = None
    obra_nome: Optional[str] = None


class LinkedItem(BaseModel):
    """A proposal line item as shown inside a comparison cell."""

    model_config = ConfigDict(extra="ignore")

    id: str
    item_description: Optional[str] = None
    item_total_price_subtotal: Optional[float] = None
    tag: Optional[ItemTag] = None

    @property
    def subtotal(self) -> float:
        return self.item_total_price_subtotal or 0.0


class ProposalItem(LinkedItem):
    """
    Full "eap_proposta" row.

    ``hidden_from_equalization`` excludes the item from every comparison total.
    """

    proposta_id: str
    section_id: Optional[int] = None
    section_name: Optional[str] = None
    section_total: Optional[float] = None
    item_number: Optional[str] = None
    item_code: Optional[str] = None
    item_quantity: Optional[float] = None
    item_unit: Optional[str] = None
    item_unit_price_material: Optional[float] = None
    item_unit_price_labor: Optional[float] = None
    item_unit_total_price_subtotal: Optional[float] = None
    item_total_price_material: Optional[float] = None
    item_total_price_labor: Optional[float] = None
    item_status: Optional[str] = None
    item_order: Optional[int] = None
    hidden_from_equalization: bool = False

    def to_linked(self) -> LinkedItem:
        return LinkedItem(
            id=self.id,
            item_description=self.item_description,
            item_total_price_subtotal=self.item_total_price_subtotal,
            tag=self.tag,
        )


class LinkageRow(BaseModel):
    """
    One "eap_equalizacao" record with its embedded proposal item.

    ``eap_proposta`` is None when the link points at an item that no longer
    resolves.
    """

    model_config = ConfigDict(extra="ignore")

    eap_padrao_id: str
    eap_proposta: Optional[ProposalItem] = None


# Derived structures


class ValueCell(BaseModel):
    """Items directly linked to a (WBS node, proposal) pair and their total."""

    model_config = ConfigDict(extra="forbid")

    items: list[LinkedItem] = Field(default_factory=list)
    total: float = 0.0


class TreeNode(BaseModel):
    """
    WBS node with per-proposal values.

    ``values[p].items`` only ever holds the node's own links; ``values[p].total``
    includes every descendant once the tree is aggregated.
    """

    model_config = ConfigDict(extra="forbid")

    id: str
    caminho: str
    item: str
    nivel: int
    children: list[TreeNode] = Field(default_factory=list)
    values: dict[str, ValueCell] = Field(default_factory=dict)

    def has_value(self) -> bool:
        return any(cell.total > 0 for cell in self.values.values())

    def has_linked_items(self) -> bool:
        return any(cell.items for cell in self.values.values())


class ProposalSection(BaseModel):
    """Items of one proposal section, in item order."""

    section_id: Optional[int] = None
    section_name: Optional[str] = None
    section_total: Optional[float] = None
    items: list[ProposalItem] = Field(default_factory=list)


TreeNode.model_rebuild()
