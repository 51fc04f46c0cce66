"""
Data access for equalization snapshots.

Reads the reference WBS, proposals and linkage records, and writes item
tag/visibility edits. Works with both PostgreSQL and the mock database backend.

tables
- eap_padrao: reference WBS (id, caminho, caminho_sort, item, nivel, parent_id)
- propostas: bids (id, construtora_id, obra_id, data_referencia, status, valor_total, created_at)
- eap_proposta: proposal line items (one row per spreadsheet line)
- eap_equalizacao: links (eap_padrao_id, eap_proposta_id)
"""

import uuid
from typing import Any, Dict, List, Optional

from utils.vault import secrets
from utils.core.log import get_logger
from utils.db.connection import get_db_connection, DB_TYPE, _mock_db, reset_mock_db
from tools.equalize.equalize_models import (
    UNNAMED_CONTRACTOR,
    ItemTag,
    LinkageRow,
    Proposal,
    ProposalItem,
    ProposalSummary,
    WbsNode,
)
from tools.equalize.equalize_edits import ItemEdit, TAG_FIELD, HIDDEN_FIELD

LINKAGE_ROW_LIMIT = secrets.get_int("linkage_row_limit", default=10000)

_PROPOSAL_SELECT = """
    SELECT p.id::text AS id,
           COALESCE(c.nome, %s) AS construtora_nome,
           COALESCE(p.valor_total, 0) AS valor_total,
           p.data_referencia,
           p.status,
           o.nome AS obra_nome
    FROM propostas p
    LEFT JOIN construtoras c ON c.id = p.construtora_id
    LEFT JOIN obras o ON o.id = p.obra_id
"""


def _fetch_all(query: str, params: tuple = ()) -> List[Dict[str, Any]]:
    log = get_logger()
    conn = get_db_connection()
    try:
        with conn.cursor() as cur:
            cur.execute(query, params)
            return [dict(row) for row in cur.fetchall()]
    except Exception as e:
        log.error(f"Query failed: {e}")
        raise
    finally:
        conn.close()


def _execute(query: str, params: tuple = ()) -> int:
    log = get_logger()
    conn = get_db_connection()
    try:
        with conn.cursor() as cur:
            cur.execute(query, params)
            affected = cur.rowcount
        conn.commit()
        return affected
    except Exception as e:
        conn.rollback()
        log.error(f"Update failed: {e}")
        raise
    finally:
        conn.close()


def _nulls_last(value: Any) -> tuple:
    return (value is None, value if value is not None else 0)


def _is_uuid(value: Any) -> bool:
    """Primary keys are UUID columns; anything else cannot match a row."""
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


# Reference WBS
def fetch_wbs_nodes() -> List[WbsNode]:
    """All reference WBS nodes in display order."""
    if DB_TYPE == "postgres":
        rows = _fetch_all(
            """
            SELECT id::text AS id, caminho, caminho_sort, item, nivel,
                   parent_id::text AS parent_id
            FROM eap_padrao
            ORDER BY caminho_sort ASC
        """
        )
    else:
        rows = sorted(
            _mock_db["eap_padrao"],
            key=lambda r: _nulls_last(r.get("caminho_sort")),
        )
    get_logger().debug(f"Fetched {len(rows)} WBS nodes")
    return [WbsNode.model_validate(r) for r in rows]


def fetch_wbs_node(wbs_id: str) -> Optional[WbsNode]:
    if DB_TYPE == "postgres":
        if not _is_uuid(wbs_id):
            return None
        rows = _fetch_all(
            """
            SELECT id::text AS id, caminho, caminho_sort, item, nivel,
                   parent_id::text AS parent_id
            FROM eap_padrao
            WHERE id = %s
        """,
            (wbs_id,),
        )
    else:
        rows = [r for r in _mock_db["eap_padrao"] if r["id"] == wbs_id]
    return WbsNode.model_validate(rows[0]) if rows else None


# Proposals
def _mock_proposal_row(row: Dict[str, Any]) -> Dict[str, Any]:
    contractor = _mock_db["construtoras"].get(row.get("construtora_id"))
    site = _mock_db["obras"].get(row.get("obra_id"))
    return {
        **row,
        "construtora_nome": contractor["nome"] if contractor else UNNAMED_CONTRACTOR,
        "obra_nome": site["nome"] if site else None,
    }


def fetch_proposals() -> List[Proposal]:
    """Proposals in comparison column order (oldest first)."""
    if DB_TYPE == "postgres":
        rows = _fetch_all(
            _PROPOSAL_SELECT + " ORDER BY p.created_at ASC", (UNNAMED_CONTRACTOR,)
        )
    else:
        rows = [_mock_proposal_row(r) for r in _mock_db["propostas"]]
    get_logger().debug(f"Fetched {len(rows)} proposals")
    return [Proposal.model_validate(r) for r in rows]


def fetch_proposal_summaries() -> List[ProposalSummary]:
    """Proposal listing, newest first."""
    if DB_TYPE == "postgres":
        rows = _fetch_all(
            _PROPOSAL_SELECT + " ORDER BY p.created_at DESC", (UNNAMED_CONTRACTOR,)
        )
    else:
        rows = [_mock_proposal_row(r) for r in reversed(_mock_db["propostas"])]
    return [ProposalSummary.model_validate(r) for r in rows]


def fetch_proposal(proposal_id: str) -> Optional[ProposalSummary]:
    if DB_TYPE == "postgres":
        if not _is_uuid(proposal_id):
            return None
        rows = _fetch_all(
            _PROPOSAL_SELECT + " WHERE p.id = %s", (UNNAMED_CONTRACTOR, proposal_id)
        )
    else:
        rows = [
            _mock_proposal_row(r) for r in _mock_db["propostas"] if r["id"] == proposal_id
        ]
    return ProposalSummary.model_validate(rows[0]) if rows else None


# Linkage
def fetch_linkage_rows(wbs_id: Optional[str] = None) -> List[LinkageRow]:
    """
    Linkage records with their embedded proposal item.

    Args:
        wbs_id: Restrict to one WBS node (detail view); all nodes when None

    Returns:
        LinkageRow list; ``eap_proposta`` is None for unresolved links
    """
    if DB_TYPE == "postgres":
        where = "WHERE e.eap_padrao_id = %s" if wbs_id else ""
        params = (wbs_id, LINKAGE_ROW_LIMIT) if wbs_id else (LINKAGE_ROW_LIMIT,)
        rows = _fetch_all(
            f"""
            SELECT e.eap_padrao_id::text AS eap_padrao_id,
                   CASE WHEN ep.id IS NULL THEN NULL ELSE to_jsonb(ep) END AS eap_proposta
            FROM eap_equalizacao e
            LEFT JOIN eap_proposta ep ON ep.id = e.eap_proposta_id
            {where}
            ORDER BY e.created_at ASC, e.id ASC
            LIMIT %s
        """,
            params,
        )
    else:
        rows = []
        for link in _mock_db["eap_equalizacao"]:
            if wbs_id and link["eap_padrao_id"] != wbs_id:
                continue
            item = _mock_db["eap_proposta"].get(link.get("eap_proposta_id"))
            rows.append(
                {
                    "eap_padrao_id": link["eap_padrao_id"],
                    "eap_proposta": dict(item) if item else None,
                }
            )
            if len(rows) >= LINKAGE_ROW_LIMIT:
                break

    if len(rows) >= LINKAGE_ROW_LIMIT:
        get_logger().warning(
            f"Linkage rows hit the configured limit ({LINKAGE_ROW_LIMIT}); totals may be partial"
        )
    return [LinkageRow.model_validate(r) for r in rows]


# Proposal items
def fetch_proposal_items(proposal_id: str) -> List[ProposalItem]:
    """Items of one proposal ordered by section, then item order."""
    if DB_TYPE == "postgres":
        rows = _fetch_all(
            """
            SELECT * FROM eap_proposta
            WHERE proposta_id = %s
            ORDER BY section_id ASC, item_order ASC
        """,
            (proposal_id,),
        )
        for row in rows:
            row["id"] = str(row["id"])
            row["proposta_id"] = str(row["proposta_id"])
    else:
        rows = sorted(
            (r for r in _mock_db["eap_proposta"].values() if r["proposta_id"] == proposal_id),
            key=lambda r: (_nulls_last(r.get("section_id")), _nulls_last(r.get("item_order"))),
        )
    return [ProposalItem.model_validate(r) for r in rows]


def fetch_item(item_id: str) -> Optional[ProposalItem]:
    if DB_TYPE == "postgres":
        if not _is_uuid(item_id):
            return None
        rows = _fetch_all("SELECT * FROM eap_proposta WHERE id = %s", (item_id,))
        for row in rows:
            row["id"] = str(row["id"])
            row["proposta_id"] = str(row["proposta_id"])
    else:
        item = _mock_db["eap_proposta"].get(item_id)
        rows = [item] if item else []
    return ProposalItem.model_validate(rows[0]) if rows else None


def _update_item(item_id: str, column: str, value: Any) -> bool:
    log = get_logger()
    if DB_TYPE == "postgres":
        updated = _execute(
            f"UPDATE eap_proposta SET {column} = %s WHERE id = %s", (value, item_id)
        ) > 0
    else:
        item = _mock_db["eap_proposta"].get(item_id)
        if item is not None:
            item[column] = value
        updated = item is not None
    if updated:
        log.debug(f"Updated {column} on item {item_id}")
    else:
        log.warning(f"Item {item_id} not found for {column} update")
    return updated


def update_item_tag(item_id: str, tag: Optional[ItemTag]) -> bool:
    return _update_item(item_id, TAG_FIELD, tag.value if tag else None)


def update_item_hidden(item_id: str, hidden: bool) -> bool:
    return _update_item(item_id, HIDDEN_FIELD, bool(hidden))


def write_item_edit(edit: ItemEdit) -> None:
    """Writer for ItemEditSession; raises when the item is gone."""
    if edit.field == TAG_FIELD:
        updated = update_item_tag(edit.item_id, edit.value)
    elif edit.field == HIDDEN_FIELD:
        updated = update_item_hidden(edit.item_id, edit.value)
    else:
        raise ValueError(f"Unsupported item field: {edit.field}")
    if not updated:
        raise LookupError(f"Item not found: {edit.item_id}")


# Mock seeding
def seed_mock_snapshot(
    wbs_nodes: List[Dict[str, Any]],
    proposals: List[Dict[str, Any]],
    items: List[Dict[str, Any]],
    links: List[Dict[str, Any]],
) -> None:
    """
    Replace the mock database content.

    ``proposals`` rows may carry ``construtora_nome``/``obra_nome`` directly;
    the lookup rows are created for them. ``links`` rows are
    ``{"eap_padrao_id": ..., "eap_proposta_id": ...}``.
    """
    reset_mock_db()
    _mock_db["eap_padrao"] = [dict(r) for r in wbs_nodes]

    for row in proposals:
        row = dict(row)
        contractor = row.pop("construtora_nome", None)
        if contractor is not None:
            row["construtora_id"] = str(uuid.uuid4())
            _mock_db["construtoras"][row["construtora_id"]] = {"nome": contractor}
        site = row.pop("obra_nome", None)
        if site is not None:
            row["obra_id"] = str(uuid.uuid4())
            _mock_db["obras"][row["obra_id"]] = {"nome": site}
        _mock_db["propostas"].append(row)

    _mock_db["eap_proposta"] = {r["id"]: dict(r) for r in items}
    _mock_db["eap_equalizacao"] = [dict(r) for r in links]
