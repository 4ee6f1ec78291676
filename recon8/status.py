"""
This module holds the common functionality used to represent the operator
condition set stored in a status subresource.

Conditions are kept as kubernetes-style dicts in an ordered list:
{
    "type": "Available",
    "status": "True",
    "reason": "ManagedDeploymentsAvailable",
    "message": "...",
    "lastTransitionTime": "2024-01-01T00:00:00",
}

Each condition type appears at most once. Setting a condition replaces the
existing entry in place so the relative order of the list is preserved.
"""

# Standard
from datetime import datetime
from typing import List, Optional

# Third Party
from deepdiff import DeepDiff

# First Party
import alog

# Local
from .constants import CONDITION_FALSE, CONDITION_TRUE

log = alog.use_channel("STTUS")

## Public ######################################################################

# The key in the condition used for the timestamp
TIMESTAMP_KEY = "lastTransitionTime"

# The top level status field holding the reported version
VERSION_FIELD = "version"

# The top level status field holding the last generation that was synced
OBSERVED_GENERATION_FIELD = "observedGeneration"


def make_condition(
    type_name: str,
    status: bool,
    reason: str,
    message: str = "",
    last_transition_time: Optional[datetime] = None,
) -> dict:
    """Create the dict representation of a single condition

    Args:
        type_name:  str
            The condition type (Available, Progressing, Failing, ...)
        status:  bool
            The boolean value of the condition
        reason:  str
            Short machine readable token explaining the value
        message:  str
            Free-form human readable text
        last_transition_time:  Optional[datetime]
            The transition time to record. Defaults to now.

    Returns:
        condition:  dict
            The condition dict
    """
    last_transition_time = last_transition_time or datetime.now()
    return {
        "type": type_name,
        "status": CONDITION_TRUE if status else CONDITION_FALSE,
        "reason": reason,
        "message": message,
        TIMESTAMP_KEY: last_transition_time.isoformat(),
    }


def set_condition(conditions: List[dict], new_condition: dict):
    """Set a condition in the given list, in place. If a condition of the same
    type already exists it is replaced at its current position, otherwise the
    new condition is appended. The transition time is only moved when the
    status value actually changes.

    Args:
        conditions:  List[dict]
            The condition list owned by the caller
        new_condition:  dict
            The condition to set
    """
    type_name = new_condition["type"]
    for idx, existing in enumerate(conditions):
        if existing.get("type") != type_name:
            continue
        updated = dict(new_condition)
        if existing.get("status") == new_condition.get("status") and existing.get(
            TIMESTAMP_KEY
        ):
            updated[TIMESTAMP_KEY] = existing[TIMESTAMP_KEY]
        else:
            log.debug2(
                "Condition %s transitioned %s -> %s",
                type_name,
                existing.get("status"),
                new_condition.get("status"),
            )
        conditions[idx] = updated
        return

    log.debug2("Adding new condition %s", type_name)
    conditions.append(dict(new_condition))


def get_condition(type_name: str, current_status: dict) -> dict:
    """Extract the given condition type from a status object

    Args:
        type_name:  str
            The condition type to fetch
        current_status:  dict
            The dict representation of the status

    Returns:
        condition:  dict
            The condition object if found, empty dict otherwise
    """
    cond = [
        cond
        for cond in current_status.get("conditions", [])
        if cond.get("type") == type_name
    ]
    if cond:
        assert len(cond) == 1, f"Found multiple condition entries for {type_name}"
        return cond[0]
    return {}


def is_condition_true(type_name: str, current_status: dict) -> bool:
    """Check whether the given condition is present with status True"""
    return get_condition(type_name, current_status).get("status") == CONDITION_TRUE


def status_changed(current_status: dict, new_status: dict) -> bool:
    """Compare two status objects to determine if there is a meaningful change
    between the current status and the proposed new status. A meaningful change
    is defined as any change besides a timestamp.

    Args:
        current_status:  dict
            The raw status dict from the current object
        new_status:  dict
            The proposed new status

    Returns:
        status_changed:  bool
            True if there is a meaningful change between the current status and
            the new status
    """
    if not isinstance(current_status, dict) or not isinstance(new_status, dict):
        return True

    return bool(
        DeepDiff(
            current_status,
            new_status,
            exclude_obj_callback=lambda _, path: path.endswith(f"{TIMESTAMP_KEY}']"),
        )
    )
