"""
Integration tests for the equalization tool entry points (mock database).
"""

from tools.equalize.equalize import (
    equalization_main,
    equalization_detail_main,
    wbs_reference_main,
    proposals_main,
    proposal_detail_main,
    item_tag_main,
    item_hidden_main,
)
from tools.equalize import equalize_store as store


def _ids(nodes):
    out = []
    for node in nodes:
        out.append(node["id"])
        out.extend(_ids(node["children"]))
    return out


def test_equalization_tree_is_aggregated_and_filtered(seeded):
    result = equalization_main(package_id="pkg-1")

    assert result["empty"] is False
    assert [p["id"] for p in result["proposals"]] == ["p1", "p2"]
    assert _ids(result["tree"]) == ["n1", "n11", "n2", "n21"]

    n1, n2 = result["tree"]
    assert n1["values"]["p1"]["total"] == 150.0
    assert n1["values"]["p2"]["total"] == 120.0
    assert n1["values"]["p1"]["items"] == []
    assert n2["values"]["p1"]["total"] == 0
    assert n2["values"]["p2"]["total"] == 300.0

    n11 = n1["children"][0]
    assert [i["id"] for i in n11["values"]["p1"]["items"]] == ["i1", "i2"]


def test_equalization_rows_follow_tree_order(seeded):
    rows = equalization_main()["rows"]
    assert [r["id"] for r in rows] == ["n1", "n11", "n2", "n21"]
    assert rows[0]["cells"]["p2"]["is_lowest"] is True
    assert rows[0]["cells"]["p1"]["is_highest"] is True
    assert rows[0]["has_linked_items"] is False
    assert rows[1]["has_linked_items"] is True


def test_equalization_on_empty_database():
    result = equalization_main()
    assert result == {"empty": True, "proposals": [], "tree": [], "rows": []}


def test_hiding_an_item_removes_it_from_totals(seeded):
    item_hidden_main("i4", True)
    result = equalization_main()
    assert _ids(result["tree"]) == ["n1", "n11"]


def test_detail_for_node(seeded):
    detail = equalization_detail_main("n21")

    assert detail["node"]["caminho"] == "2.1"
    cols = {c["proposta_id"]: c for c in detail["columns"]}
    assert cols["p1"]["items"] == []
    assert cols["p1"]["highlight"] == "none"
    assert cols["p2"]["total"] == 300.0
    assert cols["p2"]["highlight"] == "lowest"


def test_detail_for_unknown_node(seeded):
    result = equalization_detail_main("ghost")
    assert result["status"] == "error"
    assert "ghost" in result["error"]
    assert result["notFound"] is True


def test_reference_and_proposal_views(seeded):
    assert len(wbs_reference_main()["nodes"]) == 6
    assert [p["id"] for p in proposals_main()["proposals"]] == ["p2", "p1"]

    detail = proposal_detail_main("p1")
    assert detail["proposal"]["construtora_nome"] == "Alfa Engenharia"
    assert [s["section_name"] for s in detail["sections"]] == ["Fundações", "Supra"]
    assert proposal_detail_main("nope")["status"] == "error"


def test_item_tag_edit(seeded):
    result = item_tag_main("i1", "estimativa + pendência")

    assert result["proposta_id"] == "p1"
    assert result["sections"][0]["items"][0]["tag"] == "estimativa + pendência"
    assert store.fetch_item("i1").tag.value == "estimativa + pendência"

    cleared = item_tag_main("i1", None)
    assert cleared["sections"][0]["items"][0]["tag"] is None


def test_item_tag_rejects_unknown_tag(seeded):
    result = item_tag_main("i1", "barato")
    assert result["status"] == "error"
    assert store.fetch_item("i1").tag is None


def test_item_edit_rolls_back_when_write_fails(seeded, monkeypatch):
    def broken_writer(edit):
        raise ConnectionError("connection reset")

    monkeypatch.setattr(store, "write_item_edit", broken_writer)
    result = item_hidden_main("i1", True)

    assert result["status"] == "error"
    assert result["rolledBack"] is True
    assert store.fetch_item("i1").hidden_from_equalization is False


def test_item_edit_unknown_item(seeded):
    assert item_hidden_main("ghost", True)["status"] == "error"
