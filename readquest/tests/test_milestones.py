from readquest.features.streaks.milestones import milestone_label, newly_reached, next_milestone


def test_crossing_reports_each_threshold_once():
    reached = newly_reached(2, 14)
    assert [m.milestone_type for m in reached] == ["3days", "7days", "14days"]


def test_recorded_milestones_are_skipped():
    reached = newly_reached(0, 8, already_recorded=["3days"])
    assert [m.milestone_type for m in reached] == ["7days"]


def test_no_milestone_when_streak_does_not_grow():
    assert newly_reached(7, 7) == []
    assert newly_reached(10, 4) == []


def test_next_milestone():
    assert next_milestone(0).days == 3
    assert next_milestone(7).milestone_type == "14days"
    assert next_milestone(365) is None


def test_labels():
    assert milestone_label("7days") == "7 Days - One Week"
    assert milestone_label("unknown") == "unknown"
