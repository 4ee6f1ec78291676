"""
Test the construction and management of condition sets
"""

# Standard
from datetime import datetime, timedelta

# Local
from recon8 import status
from recon8.constants import (
    AVAILABLE_CONDITION,
    CONDITION_FALSE,
    CONDITION_TRUE,
    FAILING_CONDITION,
    PROGRESSING_CONDITION,
)

## make_condition ##############################################################


def test_make_condition():
    """Make sure all fields are populated with kubernetes string statuses"""
    now = datetime(2024, 1, 1)
    cond = status.make_condition(AVAILABLE_CONDITION, True, "Reason", "msg", now)
    assert cond == {
        "type": AVAILABLE_CONDITION,
        "status": CONDITION_TRUE,
        "reason": "Reason",
        "message": "msg",
        status.TIMESTAMP_KEY: now.isoformat(),
    }
    assert status.make_condition(FAILING_CONDITION, False, "R")["status"] == CONDITION_FALSE


## set_condition ###############################################################


def test_set_condition_appends_new():
    conditions = []
    status.set_condition(conditions, status.make_condition(AVAILABLE_CONDITION, True, "A"))
    status.set_condition(conditions, status.make_condition(FAILING_CONDITION, False, "B"))
    assert [cond["type"] for cond in conditions] == [
        AVAILABLE_CONDITION,
        FAILING_CONDITION,
    ]


def test_set_condition_replaces_in_place():
    """Replacing a condition keeps the order of the list and only one entry
    per type
    """
    conditions = []
    for type_name in [AVAILABLE_CONDITION, PROGRESSING_CONDITION, FAILING_CONDITION]:
        status.set_condition(conditions, status.make_condition(type_name, False, "Init"))
    status.set_condition(
        conditions, status.make_condition(PROGRESSING_CONDITION, True, "Moving", "msg")
    )
    assert [cond["type"] for cond in conditions] == [
        AVAILABLE_CONDITION,
        PROGRESSING_CONDITION,
        FAILING_CONDITION,
    ]
    assert conditions[1]["reason"] == "Moving"
    assert conditions[1]["message"] == "msg"


def test_set_condition_transition_time():
    """The transition time only moves when the status value changes"""
    old_time = datetime.now() - timedelta(days=1)
    conditions = [status.make_condition(AVAILABLE_CONDITION, True, "A", "", old_time)]

    status.set_condition(conditions, status.make_condition(AVAILABLE_CONDITION, True, "B"))
    assert conditions[0][status.TIMESTAMP_KEY] == old_time.isoformat()
    assert conditions[0]["reason"] == "B"

    status.set_condition(conditions, status.make_condition(AVAILABLE_CONDITION, False, "C"))
    assert conditions[0][status.TIMESTAMP_KEY] != old_time.isoformat()


## get_condition ###############################################################


def test_get_condition():
    cond = status.make_condition(FAILING_CONDITION, True, "Broken")
    current = {"conditions": [cond]}
    assert status.get_condition(FAILING_CONDITION, current) == cond
    assert status.get_condition(AVAILABLE_CONDITION, current) == {}
    assert status.get_condition(AVAILABLE_CONDITION, {}) == {}
    assert status.is_condition_true(FAILING_CONDITION, current)
    assert not status.is_condition_true(AVAILABLE_CONDITION, current)


## status_changed ##############################################################


def test_status_changed_ignores_timestamps():
    cond = status.make_condition(AVAILABLE_CONDITION, True, "A", "", datetime(2024, 1, 1))
    later = dict(cond)
    later[status.TIMESTAMP_KEY] = datetime(2024, 2, 1).isoformat()
    assert not status.status_changed({"conditions": [cond]}, {"conditions": [later]})


def test_status_changed_detects_changes():
    cond = status.make_condition(AVAILABLE_CONDITION, True, "A")
    changed = dict(cond, reason="B")
    assert status.status_changed({"conditions": [cond]}, {"conditions": [changed]})
    assert status.status_changed({}, {status.VERSION_FIELD: "1.2.3"})
    assert status.status_changed(None, {})
