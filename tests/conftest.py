from __future__ import annotations

import pytest

from pages import SBD_TABLE, banner_row, banner_table, lifter_row, page
from svnl.models import Competition


@pytest.fixture
def competition() -> Competition:
    return Competition(id="svnl-testikisa", url="https://example.test/Tulosarkisto/testikisa/", name="Testikisa", date="")


@pytest.fixture
def sbd_page() -> str:
    return page("SM-voimanosto 2025, Helsinki, 14.-15.6.2025", SBD_TABLE)


@pytest.fixture
def equipment_page() -> str:
    return page(
        "Testikisa, Pori, 1.3.2025",
        banner_table(
            banner_row("Klassinen"),
            lifter_row("1", "Aino Lahtinen"),
            banner_row("Varuste"),
            lifter_row("1", "Pekka Puku"),
        ),
    )
