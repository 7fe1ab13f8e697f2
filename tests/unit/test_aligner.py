"""
Series alignment: row axis, indexing, absence and determinism.
"""
import json
from datetime import date

import pytest

from src.icarus.core.aligner import align
from src.icarus.core.exceptions import InputContractViolation
from src.icarus.core.window import BENCHMARK_KEY, WindowPolicy, resolve
from src.icarus.data.schemas import PricePoint, TrackedEntity

NOW = date(2024, 1, 31)


def entity(symbol, mention, history):
    return TrackedEntity(
        symbol=symbol,
        mention_date=date.fromisoformat(mention),
        price_history=history,
    )


def run(entities, benchmark, visible, policy, now=NOW):
    charted = [e for e in entities if e.symbol in {v.upper() for v in visible}]
    res = resolve(policy, charted, now)
    return align(entities, benchmark, visible, policy, res)


def test_since_mention_worked_example(scenario_histories):
    a = entity("A", "2024-01-10", scenario_histories["A"])
    series = run([a], scenario_histories["SPY"], {"A"}, WindowPolicy.SINCE_MENTION)

    assert series.columns == ["A", BENCHMARK_KEY]
    assert series.dates == [date(2024, 1, 10), date(2024, 1, 11), date(2024, 1, 15)]
    assert [row.values for row in series.rows] == [
        {"A": 100.0, BENCHMARK_KEY: 100.0},
        {"A": 105.0, BENCHMARK_KEY: 100.5},
        {"A": 110.0, BENCHMARK_KEY: 102.0},
    ]


def test_gap_before_first_price_rebases_on_first_available_close(points):
    b = entity("B", "2024-01-10", points(("2024-01-20", 50.0), ("2024-01-22", 55.0)))
    bench = points(
        ("2024-01-10", 500.0), ("2024-01-11", 501.0), ("2024-01-16", 505.0),
        ("2024-01-19", 506.0), ("2024-01-22", 510.0),
    )

    series = run([b], bench, {"B"}, WindowPolicy.SINCE_MENTION)

    assert series.baselines["B"].date == date(2024, 1, 20)
    assert series.baselines["B"].close == 50.0
    for row in series.rows:
        if row.date < date(2024, 1, 20):
            assert row.get("B") is None
    by_date = {row.date: row for row in series.rows}
    assert by_date[date(2024, 1, 20)].get("B") == 100.0
    assert by_date[date(2024, 1, 20)].get(BENCHMARK_KEY) is None
    assert by_date[date(2024, 1, 22)].get("B") == 110.0


def test_invisible_entity_contributes_nothing(points, scenario_histories):
    a = entity("A", "2024-01-10", scenario_histories["A"])
    c = entity("C", "2024-01-10", points(("2024-01-10", 10.0), ("2024-01-12", 12.0)))

    series = run([a, c], scenario_histories["SPY"], {"A"}, WindowPolicy.SINCE_MENTION)

    assert "C" not in series.columns
    assert date(2024, 1, 12) not in series.dates
    assert all("C" not in row.values for row in series.rows)


def test_visible_symbols_are_case_insensitive(scenario_histories):
    a = entity("A", "2024-01-10", scenario_histories["A"])
    series = run([a], scenario_histories["SPY"], {"a"}, WindowPolicy.ALL)
    assert series.columns == ["A", BENCHMARK_KEY]


def test_entity_without_data_after_baseline_is_omitted(points):
    stale = entity("OLD", "2023-06-01", points(("2023-11-30", 20.0), ("2023-12-01", 21.0)))
    live = entity("NEW", "2023-06-01", points(("2024-01-02", 10.0), ("2024-01-30", 11.0)))
    bench = points(("2024-01-02", 470.0), ("2024-01-30", 490.0))

    series = run([stale, live], bench, {"OLD", "NEW"}, WindowPolicy.ONE_MONTH)

    assert series.cutoff_date == date(2023, 12, 31)
    assert series.columns == ["NEW", BENCHMARK_KEY]
    assert "OLD" not in series.baselines


def test_row_axis_is_exact_union_of_filtered_dates(points):
    a = entity("A", "2024-01-02", points(
        ("2023-12-28", 9.0), ("2024-01-02", 10.0), ("2024-01-04", 11.0),
    ))
    b = entity("B", "2024-01-03", points(("2024-01-03", 20.0), ("2024-01-08", 21.0)))
    bench = points(("2024-01-02", 470.0), ("2024-01-05", 475.0), ("2024-01-08", 480.0))

    series = run([a, b], bench, {"A", "B"}, WindowPolicy.ALL)

    expected = sorted({
        d for d in (
            [p.date for p in a.price_history]
            + [p.date for p in b.price_history]
            + [p.date for p in bench]
        )
        if d >= series.cutoff_date
    })
    assert series.dates == expected
    assert date(2023, 12, 28) not in series.dates


def test_shared_baseline_for_all_policy(points):
    a = entity("A", "2024-01-02", points(("2024-01-02", 10.0), ("2024-01-05", 12.0)))
    b = entity("B", "2024-01-04", points(("2024-01-03", 50.0), ("2024-01-05", 55.0)))
    bench = points(("2024-01-02", 400.0), ("2024-01-05", 404.0))

    series = run([a, b], bench, {"A", "B"}, WindowPolicy.ALL)
    by_date = {row.date: row for row in series.rows}

    # B is based at its first close on/after the shared cutoff, not its mention.
    assert series.baselines["B"].date == date(2024, 1, 3)
    assert by_date[date(2024, 1, 3)].get("B") == 100.0
    assert by_date[date(2024, 1, 5)].get("B") == 110.0
    assert series.mention_markers == []


def test_since_mention_first_value_is_always_100(points):
    a = entity("A", "2024-01-02", points(
        ("2024-01-02", 10.0), ("2024-01-03", 10.7), ("2024-01-08", 13.1),
    ))
    d = entity("D", "2024-01-06", points(
        ("2023-12-29", 70.0), ("2024-01-03", 71.0), ("2024-01-08", 73.0),
        ("2024-01-09", 69.3),
    ))
    bench = points(("2024-01-02", 470.0), ("2024-01-08", 474.7))

    series = run([a, d], bench, {"A", "D"}, WindowPolicy.SINCE_MENTION)

    for key in series.columns:
        first_value = series.column(key)[0][1]
        assert first_value == 100.0

    # D traded between the cutoff and its mention; the row exists, D's cell does not.
    by_date = {row.date: row for row in series.rows}
    assert by_date[date(2024, 1, 3)].get("D") is None
    assert by_date[date(2024, 1, 3)].get("A") == 107.0
    assert by_date[date(2024, 1, 8)].get("D") == 100.0


def test_since_mention_emits_mention_markers(points):
    a = entity("A", "2024-01-02", points(("2024-01-02", 10.0), ("2024-01-03", 11.0)))
    d = entity("D", "2024-01-06", points(("2024-01-08", 70.0)))

    series = run([a, d], points(("2024-01-02", 470.0)), {"A", "D"}, WindowPolicy.SINCE_MENTION)

    markers = {m.symbol: m for m in series.mention_markers}
    assert set(markers) == {"A", "D"}
    assert markers["D"].mention_date == date(2024, 1, 6)
    assert markers["D"].baseline_date == date(2024, 1, 8)
    assert markers["D"].value == 100.0


def test_values_are_rounded_to_two_decimals(points):
    a = entity("A", "2024-01-02", points(
        ("2024-01-02", 3.0), ("2024-01-03", 3.1), ("2024-01-04", 7.123456),
    ))
    bench = points(("2024-01-02", 477.71), ("2024-01-03", 480.0))

    series = run([a], bench, {"A"}, WindowPolicy.ALL)
    values = {row.date: row.values for row in series.rows}

    assert values[date(2024, 1, 3)]["A"] == 103.33
    assert values[date(2024, 1, 4)]["A"] == 237.45
    assert values[date(2024, 1, 3)][BENCHMARK_KEY] == 100.48
    for row in series.rows:
        for v in row.values.values():
            assert v == round(v, 2)


def test_alignment_is_deterministic(scenario_histories, points):
    a = entity("A", "2024-01-10", scenario_histories["A"])
    b = entity("B", "2024-01-11", points(("2024-01-11", 33.33), ("2024-01-12", 34.56)))
    args = ([a, b], scenario_histories["SPY"], {"A", "B"}, WindowPolicy.SINCE_MENTION)

    first = json.dumps(run(*args).to_dict(), sort_keys=True)
    second = json.dumps(run(*args).to_dict(), sort_keys=True)
    assert first == second


def test_to_records_marks_absent_cells_as_none(points):
    a = entity("A", "2024-01-02", points(("2024-01-02", 10.0), ("2024-01-04", 11.0)))
    bench = points(("2024-01-02", 400.0), ("2024-01-03", 404.0))

    records = run([a], bench, {"A"}, WindowPolicy.ALL).to_records()

    assert records == [
        {"date": "2024-01-02", "A": 100.0, BENCHMARK_KEY: 100.0},
        {"date": "2024-01-03", "A": None, BENCHMARK_KEY: 101.0},
        {"date": "2024-01-04", "A": 110.0, BENCHMARK_KEY: None},
    ]


def test_missing_benchmark_drops_only_the_benchmark_column(points):
    a = entity("A", "2024-01-02", points(("2024-01-02", 10.0), ("2024-01-04", 11.0)))
    series = run([a], [], {"A"}, WindowPolicy.ALL)

    assert series.columns == ["A"]
    assert len(series.rows) == 2


def test_empty_union_yields_empty_series():
    series = run([], [], set(), WindowPolicy.ONE_YEAR)

    assert series.is_empty
    assert series.rows == []
    assert series.columns == []
    assert series.to_records() == []


def test_rows_survive_when_no_series_has_a_baseline(points):
    # Visible ticker traded after the cutoff but before its own mention.
    early = entity("E", "2024-01-25", points(("2024-01-05", 10.0)))
    anchor = entity("F", "2024-01-02", points(("2023-12-01", 5.0)))

    series = run([early, anchor], [], {"E", "F"}, WindowPolicy.SINCE_MENTION)

    assert series.columns == []
    assert series.dates == [date(2024, 1, 5)]
    assert series.rows[0].values == {}


def test_unsorted_benchmark_fails_fast(points):
    a = entity("A", "2024-01-02", points(("2024-01-02", 10.0)))
    bench = [
        PricePoint(date=date(2024, 1, 3), close=401.0),
        PricePoint(date=date(2024, 1, 2), close=400.0),
    ]
    res = resolve(WindowPolicy.ALL, [a], NOW)

    with pytest.raises(InputContractViolation):
        align([a], bench, {"A"}, WindowPolicy.ALL, res)


def test_duplicate_dates_in_unvalidated_entity_fail_fast(points):
    dup = TrackedEntity.model_construct(
        symbol="A",
        mention_date=date(2024, 1, 2),
        price_history=points(("2024-01-02", 10.0), ("2024-01-02", 10.5)),
    )
    res = resolve(WindowPolicy.ALL, [dup], NOW)

    with pytest.raises(InputContractViolation):
        align([dup], [], {"A"}, WindowPolicy.ALL, res)
