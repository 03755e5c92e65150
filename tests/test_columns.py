from __future__ import annotations

from lxml import html

from svnl.columns import (
    POSITIONAL_DEFAULTS,
    ColumnMap,
    build_column_map,
    detect_column_map,
    detect_sub_header_totals,
    find_attempt_run,
    header_grid,
    is_bench_only_layout,
    is_header_row,
    numbered_attempt_start,
)


def _rows(markup: str) -> list[html.HtmlElement]:
    return html.fromstring(markup).xpath(".//tr")


class TestBuildColumnMap:
    def test_labelled_header_fields(self):
        header = ["sij", "m/n", "sarja", "paino", "nimi", "sv", "seura", "jalkakyykky", "", "", "penkkipunnerrus", "", "", "maastanosto", "", "", "tulos", "ipf gl"]
        cmap = build_column_map(header)

        assert cmap.position == 0
        assert cmap.gender == 1
        assert cmap.weight_class == 2
        assert cmap.body_weight == 3
        assert cmap.name == 4
        assert cmap.birth_year == 5
        assert cmap.club == 6
        assert (cmap.squat_start, cmap.bench_start, cmap.deadlift_start) == (7, 10, 13)
        assert cmap.total == 16
        assert cmap.points == 17

    def test_sub_header_runs_are_claimed_once(self):
        header = ["sij", "nimi", "seura", "jalkakyykky", "", "", "", "penkkipunnerrus", "", "", "", "maastanosto", "", "", "", "tulos"]
        sub = ["", "", "", "1", "2", "3", "paras", "1", "2", "3", "paras", "1", "2", "3", "paras", ""]
        cmap = build_column_map(header, sub)

        assert (cmap.squat_start, cmap.bench_start, cmap.deadlift_start) == (3, 7, 11)

    def test_sub_header_points_and_total(self):
        assert detect_sub_header_totals(["", "", "tulos", "ipf gl"]) == {"points": 3, "total": 2}
        assert detect_sub_header_totals(["", "yhteistulos", ""]) == {"total": 1}

    def test_bench_only_layout_clears_other_lifts(self):
        header = ["sij", "sarja", "paino", "nimi", "seura", "penkkipunnerrus", "", "", "tulos", "ipf gl"]
        cmap = build_column_map(header)

        assert is_bench_only_layout(header)
        assert cmap.bench_start == 5
        assert cmap.squat_start is None
        assert cmap.deadlift_start is None

    def test_abbreviated_labels(self):
        cmap = build_column_map(["sij", "nimi", "seura", "jk", "", "", "pp", "", "", "mn", "", ""])
        assert (cmap.squat_start, cmap.bench_start, cmap.deadlift_start) == (3, 6, 9)

    def test_unlabelled_attempt_run_is_bench(self):
        cmap = build_column_map(["sij", "nimi", "seura", "1", "2", "3", "tulos"])
        assert cmap.bench_start == 3

    def test_positional_defaults_for_missing_fields(self):
        cmap = build_column_map(["nimi", "seura"])

        assert cmap.name == 0
        assert cmap.index("position") == POSITIONAL_DEFAULTS["position"]
        assert cmap.index("total") == 18
        assert cmap.index("points") == 19
        assert cmap.index("gender") is None
        assert "body_weight" in cmap.defaulted_fields()
        assert "name" not in cmap.defaulted_fields()


def test_numbered_run_before_label():
    assert numbered_attempt_start(["1", "2", "3", "jk"], 3) == 0
    assert numbered_attempt_start(["nimi", "seura", "x", "jk"], 3) == 3


def test_find_attempt_run_skips_claimed():
    texts = ["1", "2", "3", "1.", "2.", "3."]
    assert find_attempt_run(texts, 0) == 0
    assert find_attempt_run(texts, 0, claimed=[0]) == 3


def test_header_grid_expands_spans():
    header, sub = header_grid(*_rows(
        "<table>"
        "<tr><th rowspan='2'>Nimi</th><th colspan='3'>Penkkipunnerrus</th><th rowspan='2'>Tulos</th></tr>"
        "<tr><th>1</th><th>2</th><th>3</th></tr>"
        "</table>"
    ))

    assert header == ("nimi", "penkkipunnerrus", "", "", "tulos")
    assert sub == ("", "1", "2", "3", "")


def test_detect_column_map_from_rows():
    header_row, sub_row = _rows(
        "<table>"
        "<tr><th rowspan='2'>Sij</th><th rowspan='2'>Nimi</th><th rowspan='2'>Seura</th><th colspan='3'>Penkkipunnerrus</th></tr>"
        "<tr><td>1</td><td>2</td><td>3</td></tr>"
        "</table>"
    )
    cmap = detect_column_map(header_row, sub_row)

    assert cmap.bench_start == 3
    assert cmap == ColumnMap(position=0, name=1, club=2, bench_start=3)


def test_is_header_row():
    th_row, td_attempts, data = _rows(
        "<table>"
        "<tr><th>x</th></tr>"
        "<tr><td></td><td>1</td><td>2</td><td>3</td></tr>"
        "<tr><td>1</td><td>Matti</td><td>Voimaseura</td><td>Lahden Painonnostajat</td></tr>"
        "</table>"
    )
    assert is_header_row(th_row)
    assert is_header_row(td_attempts)
    assert not is_header_row(data)


def test_td_label_row_is_header_row():
    (labels,) = _rows("<table><tr><td>Sij</td><td>Nimi</td><td>Seura</td><td>Tulos</td><td>IPF GL</td><td></td></tr></table>")
    assert is_header_row(labels)


def test_data_row_starting_like_a_label_is_not_header_row():
    club, surname = _rows(
        "<table>"
        "<tr><td>1</td><td>-74</td><td>72,3</td><td>Aino Lahtinen</td><td>Painonnostoseura Kotka</td><td>340</td></tr>"
        "<tr><td>2</td><td>-93</td><td>90,1</td><td>Mnatsakanyan Artur</td><td>Testiseura</td><td>600</td></tr>"
        "</table>"
    )
    assert not is_header_row(club)
    assert not is_header_row(surname)
