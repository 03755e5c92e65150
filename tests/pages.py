from __future__ import annotations

from typing import Optional

import requests


SBD_TABLE = """
<table class="tulokset">
  <tr>
    <th rowspan="2">Sij</th><th rowspan="2">M/N</th><th rowspan="2">Sarja</th><th rowspan="2">Paino</th>
    <th rowspan="2">Nimi</th><th rowspan="2">Sv</th><th rowspan="2">Seura</th>
    <th colspan="3">Jalkakyykky</th><th colspan="3">Penkkipunnerrus</th><th colspan="3">Maastanosto</th>
    <th rowspan="2">Tulos</th><th rowspan="2">IPF GL</th>
  </tr>
  <tr>
    <th>1</th><th>2</th><th>3</th><th>1</th><th>2</th><th>3</th><th>1</th><th>2</th><th>3</th>
  </tr>
  <tr>
    <td>1.</td><td>M</td><td>83</td><td>82,5</td><td>Matti Meikäläinen</td><td>95</td><td>Voimaseura</td>
    <td>200</td><td>210</td><td style="text-decoration: line-through">215</td>
    <td>140</td><td>145</td><td>150</td>
    <td>250</td><td>260</td><td>270</td>
    <td>630</td><td>410,12</td>
  </tr>
  <tr>
    <td>1.</td><td>N</td><td>63</td><td>61,2</td><td>Liisa Virtanen</td><td>01</td><td>Kuntoklubi</td>
    <td>120</td><td>-</td><td>130</td>
    <td>70</td><td><s>75</s></td><td>75</td>
    <td>150</td><td>160</td><td>165</td>
    <td>370</td><td>380,5</td>
  </tr>
</table>
"""

# Single header row; sections are announced by one-cell banner rows.
BANNER_HEADER = """
  <tr>
    <th>Sij</th><th>Sarja</th><th>Paino</th><th>Nimi</th><th>Seura</th>
    <th colspan="3">Jalkakyykky</th><th colspan="3">Penkkipunnerrus</th><th colspan="3">Maastanosto</th>
    <th>Tulos</th><th>IPF GL</th>
  </tr>
"""

LAYOUT_TABLE = '<table class="nav"><tr><td>Etusivu</td><td>Kilpailut</td></tr></table>'


def banner_row(text: str, colspan: int = 16) -> str:
    return f'<tr><td colspan="{colspan}">{text}</td></tr>'


def lifter_row(
    position: str,
    name: str,
    *,
    weight_class: str = "-74",
    body_weight: str = "72,3",
    club: str = "Testiseura",
    squat: tuple[str, str, str] = ("100", "110", "120"),
    bench: tuple[str, str, str] = ("60", "65", "70"),
    deadlift: tuple[str, str, str] = ("130", "140", "150"),
    total: str = "340",
    points: str = "300",
) -> str:
    cells = [position, weight_class, body_weight, name, club, *squat, *bench, *deadlift, total, points]
    return "<tr>" + "".join(f"<td>{c}</td>" for c in cells) + "</tr>"


def banner_table(*rows: str) -> str:
    return "<table>" + BANNER_HEADER + "".join(rows) + "</table>"


def page(title: Optional[str], *tables: str) -> str:
    heading = f'<h1 class="entry-title">{title}</h1>' if title is not None else ""
    return f"<html><head><meta charset='utf-8'></head><body>{heading}{LAYOUT_TABLE}{''.join(tables)}</body></html>"


class FakeResponse:
    def __init__(self, text: str, *, status_code: int = 200, headers: Optional[dict[str, str]] = None):
        self.text = text
        self.status_code = status_code
        self.headers = headers if headers is not None else {"Content-Type": "text/html; charset=utf-8"}
        self.encoding: Optional[str] = None

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Serves canned pages by url and records every request."""

    def __init__(self, pages: dict[str, FakeResponse]):
        self.pages = pages
        self.calls: list[tuple[str, dict[str, str], float]] = []

    def get(self, url: str, headers: Optional[dict[str, str]] = None, timeout: float = 0) -> FakeResponse:
        self.calls.append((url, dict(headers or {}), timeout))
        if url not in self.pages:
            raise requests.ConnectionError(f"no route to {url}")
        return self.pages[url]
