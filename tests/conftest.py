"""
Global Pytest Configuration and Fixtures.

1. Puts the 'engine' directory on sys.path (the engine imports its packages
   as top-level 'tools' and 'utils').
2. Forces the mock database backend and a throwaway log directory before
   any engine module is imported.
3. Binds a context logger and resets the mock database around every test.
"""

import os
import sys
import logging
import tempfile
from typing import Any, Dict, List, Optional

import pytest

_ENGINE_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "engine"))
if _ENGINE_PATH not in sys.path:
    sys.path.insert(0, _ENGINE_PATH)

os.environ["DB_TYPE"] = "mock"
os.environ.pop("VAULT_ADDR", None)
os.environ.setdefault("EQUALIZER_LOG_DIR", tempfile.mkdtemp(prefix="equalizer-logs-"))

from utils.core.log import set_logger  # noqa: E402
from utils.db.connection import reset_mock_db  # noqa: E402


@pytest.fixture(autouse=True)
def tool_logger():
    set_logger(logging.getLogger("equalizer.tests"))
    reset_mock_db()
    yield
    reset_mock_db()


# -----------------------------------------------------------------------------
# Row builders
# -----------------------------------------------------------------------------
def wbs_row(
    node_id: str,
    parent_id: Optional[str] = None,
    nivel: int = 1,
    caminho: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "id": node_id,
        "caminho": caminho or node_id,
        "caminho_sort": caminho or node_id,
        "item": f"Item {node_id}",
        "nivel": nivel,
        "parent_id": parent_id,
    }


def item_row(
    item_id: str,
    proposta_id: str,
    subtotal: Optional[float],
    hidden: bool = False,
    **extra: Any,
) -> Dict[str, Any]:
    return {
        "id": item_id,
        "proposta_id": proposta_id,
        "item_description": f"Description {item_id}",
        "item_total_price_subtotal": subtotal,
        "hidden_from_equalization": hidden,
        **extra,
    }


def link_row(wbs_id: str, item: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {"eap_padrao_id": wbs_id, "eap_proposta": item}


@pytest.fixture
def sample_snapshot() -> Dict[str, List[Dict[str, Any]]]:
    """
    Small construction snapshot used by store, tool and API tests.

    1 Fundações
      1.1 Estacas          P1: 100 + 50   P2: 120
      1.2 Blocos           (no links)
    2 Estrutura
      2.1 Pilares          P2: 300 (hidden item of P1 worth 999)
    3 Cobertura            (no links)
    """
    wbs_nodes = [
        wbs_row("n1", caminho="1"),
        wbs_row("n11", "n1", 2, "1.1"),
        wbs_row("n12", "n1", 2, "1.2"),
        wbs_row("n2", caminho="2"),
        wbs_row("n21", "n2", 2, "2.1"),
        wbs_row("n3", caminho="3"),
    ]
    proposals = [
        {"id": "p1", "construtora_nome": "Alfa Engenharia", "valor_total": 150.0,
         "status": "pendente", "obra_nome": "Residencial Aurora"},
        {"id": "p2", "construtora_nome": "Beta Construções", "valor_total": 420.0,
         "status": "aprovada"},
    ]
    items = [
        item_row("i1", "p1", 100.0, section_id=1, section_name="Fundações", item_order=1),
        item_row("i2", "p1", 50.0, section_id=1, section_name="Fundações", item_order=2),
        item_row("i3", "p2", 120.0, section_id=1, section_name="Infra", item_order=1),
        item_row("i4", "p2", 300.0, section_id=2, section_name="Supra", item_order=1),
        item_row("i5", "p1", 999.0, hidden=True, section_id=2, section_name="Supra", item_order=1),
    ]
    links = [
        {"eap_padrao_id": "n11", "eap_proposta_id": "i1"},
        {"eap_padrao_id": "n11", "eap_proposta_id": "i2"},
        {"eap_padrao_id": "n11", "eap_proposta_id": "i3"},
        {"eap_padrao_id": "n21", "eap_proposta_id": "i4"},
        {"eap_padrao_id": "n21", "eap_proposta_id": "i5"},
        {"eap_padrao_id": "n12", "eap_proposta_id": "missing"},
    ]
    return {"wbs_nodes": wbs_nodes, "proposals": proposals, "items": items, "links": links}


@pytest.fixture
def seeded(sample_snapshot):
    from tools.equalize.equalize_store import seed_mock_snapshot

    seed_mock_snapshot(**sample_snapshot)
    return sample_snapshot
