from __future__ import annotations

from typing import Optional

from lxml import etree, html

from .errors import NoResultTable, ScrapeError


NAME_TOKEN = "nimi"
CLUB_TOKEN = "seura"


def load_document(markup: str, *, competition_id: Optional[str] = None) -> html.HtmlElement:
    try:
        return html.fromstring(markup)
    except (etree.ParserError, ValueError) as exc:
        raise ScrapeError(f"Unreadable page markup: {exc}", competition_id=competition_id) from exc


def table_rows(table: html.HtmlElement) -> list[html.HtmlElement]:
    # Own rows only, not the rows of tables nested in its cells.
    return table.xpath("./tr|./thead/tr|./tbody/tr|./tfoot/tr")


def row_text(tr: html.HtmlElement) -> str:
    """Text of a row without the text of tables nested inside its cells."""
    depth = len(tr.xpath("ancestor::table"))
    return "".join(tr.xpath(f".//text()[count(ancestor::table) = {depth}]"))


def is_result_table(table: html.HtmlElement) -> bool:
    for tr in table_rows(table):
        text = row_text(tr).lower()
        if NAME_TOKEN in text and CLUB_TOKEN in text:
            return True
    return False


def find_result_tables(doc: html.HtmlElement) -> list[html.HtmlElement]:
    tables = [table for table in doc.xpath("//table") if is_result_table(table)]
    # A result table nested in another one is already serialized with its parent.
    return [table for table in tables if not any(is_result_table(outer) for outer in table.iterancestors("table"))]


def extract_competition_tables(markup: str, *, competition_id: Optional[str] = None) -> str:
    """Serialize every result table of the page, in document order, into one fragment.

    Layout tables (menus, sponsors, record lists) are dropped. The fragment is what the
    cache gate hashes, so it only changes when the results themselves change.
    """
    doc = load_document(markup, competition_id=competition_id)
    fragments = [html.tostring(table, encoding="unicode", with_tail=False) for table in find_result_tables(doc)]
    if not fragments:
        raise NoResultTable("No competition tables found in HTML", competition_id=competition_id)
    return "\n".join(fragments)
