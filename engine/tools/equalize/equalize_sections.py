from typing import Iterable

from tools.equalize.equalize_models import ProposalItem, ProposalSection


def group_items_by_section(items: Iterable[ProposalItem]) -> list[ProposalSection]:
    """
    Group proposal items by section, first-seen section order.

    Rows without a description are section headers/subtotals in the source
    spreadsheet: their section is kept but they are not listed as items.
    """
    sections: dict = {}
    for item in items:
        section = sections.get(item.section_id)
        if section is None:
            section = ProposalSection(
                section_id=item.section_id,
                section_name=item.section_name,
                section_total=item.section_total,
            )
            sections[item.section_id] = section
        if item.item_description:
            section.items.append(item)
    return list(sections.values())
