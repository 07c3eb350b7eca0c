from replyflow.sources.health import compute_source_health, health_status_for_score


def test_perfect_run_is_healthy_without_throttle():
    result = compute_source_health(
        fetch_succeeded=True,
        had_compliance_issue=False,
        parse_success_ratio=1.0,
        contact_yield_ratio=1.0,
        latency_ms=0,
        minutes_since_success=0,
        consecutive_failures=0,
    )

    assert result.score == 100
    assert result.status == "healthy"
    assert result.throttle_minutes == 0
    assert set(result.breakdown) == {
        "fetchReliability",
        "freshness",
        "parsingQuality",
        "compliance",
        "stability",
    }


def test_unparseable_source_drops_to_warning():
    result = compute_source_health(
        fetch_succeeded=True,
        had_compliance_issue=False,
        parse_success_ratio=0.0,
        contact_yield_ratio=0.0,
        latency_ms=0,
        minutes_since_success=0,
        consecutive_failures=0,
    )

    assert result.score == 75
    assert result.status == "warning"
    assert result.throttle_minutes == 60


def test_repeated_failures_are_critical():
    result = compute_source_health(
        fetch_succeeded=False,
        had_compliance_issue=False,
        parse_success_ratio=0,
        contact_yield_ratio=0,
        latency_ms=10000,
        minutes_since_success=9999,
        consecutive_failures=3,
    )

    assert result.breakdown["fetchReliability"] == 16
    assert result.breakdown["freshness"] == 0
    assert result.breakdown["stability"] == 50
    assert result.score == 29
    assert result.status == "critical"
    assert result.throttle_minutes == 180


def test_components_are_clamped():
    result = compute_source_health(
        fetch_succeeded=False,
        had_compliance_issue=True,
        parse_success_ratio=0,
        contact_yield_ratio=0,
        latency_ms=100000,
        minutes_since_success=9999,
        consecutive_failures=20,
    )

    assert result.breakdown["fetchReliability"] == 0
    assert result.breakdown["stability"] == 0
    assert result.breakdown["compliance"] == 30
    assert result.score == 6


def test_status_thresholds():
    assert health_status_for_score(80) == "healthy"
    assert health_status_for_score(79) == "warning"
    assert health_status_for_score(55) == "warning"
    assert health_status_for_score(54) == "critical"
